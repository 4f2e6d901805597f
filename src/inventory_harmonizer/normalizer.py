"""
Endpoint normalization.

Turns one source record into a single-source NormalizedEndpoint fragment.
The hostname key is the only field that drives grouping.
"""

from typing import Optional

from ._types import Endpoint, NormalizedEndpoint


def normalize_hostname(hostname: Optional[str]) -> str:
    """Return the merge key for a hostname (lowercase, trimmed)."""
    return hostname.strip().lower() if hostname else ""


def _clean(value: Optional[str]) -> Optional[str]:
    """Trim a free-text field; blank collapses to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_endpoint(endpoint: Endpoint) -> NormalizedEndpoint:
    """
    Normalize a single source record.

    Caller must filter out blank hostnames beforehand.

    Args:
        endpoint: Record from one source adapter

    Returns:
        NormalizedEndpoint carrying exactly one source
    """
    return NormalizedEndpoint(
        hostname=normalize_hostname(endpoint.hostname),
        ip=(endpoint.ip or "").strip(),
        uuid=(endpoint.uuid or "").strip(),
        os=_clean(endpoint.os),
        last_seen=_clean(endpoint.last_seen),
        sources=[endpoint.source],
        source_origins={endpoint.source: endpoint.origin},
        user_email=_clean(endpoint.user_email),
    )
