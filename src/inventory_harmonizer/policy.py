"""
Hostname-based compliance policy.

Every entity is classified from its hostname alone, using an ordered rule
table evaluated top to bottom:

    rule               family            exact pattern          required
    linux-workstation  exa-arklx*        exa-arklx-NNN          VM, XDR, ZTN, DIR
    workstation        exa*              exa-<site>-NNN         all five

A hostname in a rule's family that fails the exact pattern is a naming
violation: it keeps the family's required set and carries a reason string.
Anything outside every family is a server and only needs vulnerability
management and XDR. Zero-trust network is reported for servers but never
enforced. Unrecognized or empty hostnames therefore fail open to the
server policy.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ._types import DeviceCategory, NormalizedEndpoint, SourceId
from .exceptions import ConfigError


SERVER_REQUIRED_SOURCES: Tuple[SourceId, ...] = (
    SourceId.VULNERABILITY_MGMT,
    SourceId.XDR,
)


@dataclass(frozen=True)
class PolicyRule:
    """One row of the workstation policy table."""
    name: str
    family: str    # regex anchored at hostname start
    pattern: str   # regex the whole hostname must match
    required_sources: Tuple[SourceId, ...]
    _family_re: re.Pattern = field(init=False, repr=False, compare=False)
    _pattern_re: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_family_re", re.compile(self.family, re.IGNORECASE))
        object.__setattr__(self, "_pattern_re", re.compile(self.pattern, re.IGNORECASE))

    def in_family(self, hostname: str) -> bool:
        return bool(self._family_re.match(hostname))

    def matches_exactly(self, hostname: str) -> bool:
        return bool(self._pattern_re.fullmatch(hostname))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyRule":
        """Build a rule from config (YAML) data."""
        try:
            sources = tuple(SourceId(s) for s in data["required_sources"])
            rule = cls(
                name=str(data["name"]),
                family=str(data["family"]),
                pattern=str(data["pattern"]),
                required_sources=sources,
            )
        except KeyError as e:
            raise ConfigError(f"Policy rule missing field: {e.args[0]}") from e
        except ValueError as e:
            raise ConfigError(f"Invalid policy rule {data.get('name')!r}: {e}") from e
        except re.error as e:
            raise ConfigError(f"Invalid regex in policy rule {data.get('name')!r}: {e}") from e

        if not rule.required_sources:
            raise ConfigError(f"Policy rule {rule.name!r} requires no sources")
        return rule


DEFAULT_RULES: Tuple[PolicyRule, ...] = (
    PolicyRule(
        name="linux-workstation",
        family=r"exa[-_ ]?arklx",
        pattern=r"exa-arklx-\d{3}",
        required_sources=(
            SourceId.VULNERABILITY_MGMT,
            SourceId.XDR,
            SourceId.ZERO_TRUST_NETWORK,
            SourceId.DIRECTORY_DEVICE,
        ),
    ),
    PolicyRule(
        name="workstation",
        family=r"exa(?![a-z])",
        pattern=r"exa-[a-z]{2,8}-\d{3}",
        required_sources=(
            SourceId.VULNERABILITY_MGMT,
            SourceId.XDR,
            SourceId.ZERO_TRUST_NETWORK,
            SourceId.PRIVILEGED_ACCESS,
            SourceId.DIRECTORY_DEVICE,
        ),
    ),
)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one hostname."""
    category: DeviceCategory
    required_sources: Tuple[SourceId, ...]
    rule_name: Optional[str] = None
    naming_reason: Optional[str] = None

    @property
    def is_workstation(self) -> bool:
        return self.category != DeviceCategory.SERVER


class CompliancePolicy:
    """
    Ordered rule table plus the server fallback.

    Classification depends on the hostname string only, never on which
    sources actually reported the entity.
    """

    def __init__(
        self,
        rules: Optional[Sequence[PolicyRule]] = None,
        server_required: Sequence[SourceId] = SERVER_REQUIRED_SOURCES,
    ):
        self.rules: Tuple[PolicyRule, ...] = tuple(DEFAULT_RULES if rules is None else rules)
        self.server_required: Tuple[SourceId, ...] = tuple(server_required)

    @classmethod
    def from_dicts(cls, rules: Iterable[Dict[str, Any]]) -> "CompliancePolicy":
        return cls([PolicyRule.from_dict(r) for r in rules])

    def classify(self, hostname: Optional[str]) -> Classification:
        """
        Classify a hostname against the rule table.

        Args:
            hostname: Raw or normalized hostname

        Returns:
            Classification with category and required source set
        """
        name = (hostname or "").strip().lower()

        if name:
            for rule in self.rules:
                if not rule.in_family(name):
                    continue
                if rule.matches_exactly(name):
                    return Classification(
                        category=DeviceCategory.WORKSTATION,
                        required_sources=rule.required_sources,
                        rule_name=rule.name,
                    )
                return Classification(
                    category=DeviceCategory.NAMING_VIOLATION,
                    required_sources=rule.required_sources,
                    rule_name=rule.name,
                    naming_reason=(
                        f"Naming violation: '{name}' does not match the "
                        f"{rule.name} pattern {rule.pattern}"
                    ),
                )

        return Classification(
            category=DeviceCategory.SERVER,
            required_sources=self.server_required,
        )

    def required_sources(self, hostname: Optional[str]) -> Tuple[SourceId, ...]:
        return self.classify(hostname).required_sources

    def missing_sources(self, entity: NormalizedEndpoint) -> List[SourceId]:
        """Required sources the entity lacks, in policy declaration order."""
        return [s for s in self.required_sources(entity.hostname) if s not in entity.sources]

    def is_compliant(self, entity: NormalizedEndpoint) -> bool:
        return not self.missing_sources(entity)

    def categorize(self, entity: NormalizedEndpoint) -> Classification:
        """Classify an entity and stamp the result onto it."""
        result = self.classify(entity.hostname)
        entity.category = result.category
        entity.naming_violation = result.naming_reason
        return result


DEFAULT_POLICY = CompliancePolicy()


def classify(hostname: Optional[str]) -> Classification:
    return DEFAULT_POLICY.classify(hostname)


def required_sources(hostname: Optional[str]) -> Tuple[SourceId, ...]:
    return DEFAULT_POLICY.required_sources(hostname)


def missing_sources(entity: NormalizedEndpoint) -> List[SourceId]:
    return DEFAULT_POLICY.missing_sources(entity)


def is_compliant(entity: NormalizedEndpoint) -> bool:
    return DEFAULT_POLICY.is_compliant(entity)
