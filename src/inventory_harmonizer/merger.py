"""
Multi-source merge.

Folds every source's endpoint list into one hostname-keyed map. Sources are
processed in the declared SourceId order, never in arrival order, so the
"first non-empty value wins" backfill rule is reproducible.
"""

import logging
from typing import Dict, Mapping, Optional, Sequence

from ._types import SOURCE_ORDER, Endpoint, NormalizedEndpoint, SourceId
from .normalizer import normalize_endpoint, normalize_hostname

logger = logging.getLogger(__name__)

# Fields filled from later sources only while still empty on the entity.
BACKFILL_FIELDS = ("ip", "uuid", "os", "last_seen", "user_email")


def merge_sources(
    source_lists: Mapping[SourceId, Optional[Sequence[Endpoint]]],
) -> Dict[str, NormalizedEndpoint]:
    """
    Merge per-source endpoint lists into one map keyed by hostname.

    Args:
        source_lists: Endpoint list per source. Absent or None entries are
            treated as "this source reported zero devices".

    Returns:
        Dict of normalized hostname -> NormalizedEndpoint, in first-seen order
    """
    merged: Dict[str, NormalizedEndpoint] = {}
    skipped = 0

    for source in SOURCE_ORDER:
        for endpoint in source_lists.get(source) or ():
            key = normalize_hostname(endpoint.hostname)
            if not key:
                skipped += 1
                continue

            existing = merged.get(key)
            if existing is None:
                merged[key] = normalize_endpoint(endpoint)
            else:
                _fold(existing, endpoint)

    if skipped:
        logger.debug(f"Skipped {skipped} record(s) without hostname")

    return merged


def _fold(entity: NormalizedEndpoint, endpoint: Endpoint) -> None:
    """Fold a later observation of the same hostname into the entity."""
    if endpoint.source not in entity.sources:
        entity.sources.append(endpoint.source)
    # First origin seen for a source wins, matching the backfill rule.
    entity.source_origins.setdefault(endpoint.source, endpoint.origin)

    fragment = normalize_endpoint(endpoint)
    for name in BACKFILL_FIELDS:
        if not getattr(entity, name):
            value = getattr(fragment, name)
            if value:
                setattr(entity, name, value)
