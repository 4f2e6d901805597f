"""
Comparison Engine - Multi-Source Inventory Reconciliation.

Merges the five per-source endpoint lists, classifies and risk-scores every
entity, then derives the comparison sets used for coverage and offboarding
review:

- only_in[X]:        reported by X and nothing else
- missing_from[X]:   X is required by the entity's policy but absent
- in_all_sources:    every source the entity's own policy requires is present
- non_compliant:     at least one required source missing
- terminated_*:      roster correlation (entity-level and account-level)
- workstations / servers / naming_violations: policy buckets

Each set is an independent filter over the same entity list, so sets may
overlap. Entity order is merge-insertion order throughout.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ._types import (
    SOURCE_ORDER,
    ComparisonResult,
    DeviceCategory,
    Endpoint,
    NormalizedEndpoint,
    SourceId,
    TerminatedEmployee,
)
from .merger import merge_sources
from .policy import DEFAULT_POLICY, CompliancePolicy
from .risk import apply_risk, terminated_email_set

logger = logging.getLogger(__name__)


def aggregate(
    merged: Mapping[str, NormalizedEndpoint],
    terminated_employees: Iterable[TerminatedEmployee],
    raw_sources: Optional[Mapping[SourceId, Optional[Sequence[Endpoint]]]] = None,
    policy: CompliancePolicy = DEFAULT_POLICY,
) -> ComparisonResult:
    """
    Classify, score and aggregate a merged endpoint map.

    Args:
        merged: Output of merge_sources (hostname -> entity)
        terminated_employees: Full roster, including completed offboardings
        raw_sources: Pre-merge per-source records, used for account-level
            roster checks and per-source counts
        policy: Compliance policy

    Returns:
        ComparisonResult
    """
    roster = list(terminated_employees)
    terminated_emails = terminated_email_set(roster)
    raw_sources = raw_sources or {}

    entities: List[NormalizedEndpoint] = list(merged.values())
    required: Dict[str, tuple] = {}
    terminated_hosts = set()

    for entity in entities:
        classification = policy.categorize(entity)
        required[entity.hostname] = classification.required_sources
        assessment = apply_risk(entity, terminated_emails, policy)
        if assessment.terminated:
            terminated_hosts.add(entity.hostname)

    def lacks_required(entity: NormalizedEndpoint) -> bool:
        return any(s not in entity.sources for s in required[entity.hostname])

    only_in = {
        source: [e for e in entities if e.sources == [source]]
        for source in SOURCE_ORDER
    }
    missing_from = {
        source: [
            e for e in entities
            if source not in e.sources and source in required[e.hostname]
        ]
        for source in SOURCE_ORDER
    }
    in_all_sources = [e for e in entities if not lacks_required(e)]
    non_compliant = [e for e in entities if lacks_required(e)]
    terminated_active = [e for e in entities if e.hostname in terminated_hosts]

    result = ComparisonResult(
        all_endpoints=entities,
        only_in=only_in,
        in_all_sources=in_all_sources,
        missing_from=missing_from,
        non_compliant=non_compliant,
        terminated_with_active_endpoints=terminated_active,
        terminated_in_directory=_roster_in_source(
            roster, raw_sources.get(SourceId.DIRECTORY_DEVICE)
        ),
        terminated_in_privileged_access=_roster_in_source(
            roster, raw_sources.get(SourceId.PRIVILEGED_ACCESS)
        ),
        workstations=[e for e in entities if e.is_workstation],
        servers=[e for e in entities if e.category == DeviceCategory.SERVER],
        naming_violations=[
            e for e in entities if e.category == DeviceCategory.NAMING_VIOLATION
        ],
        source_counts={s: len(raw_sources.get(s) or ()) for s in SOURCE_ORDER},
    )

    logger.info(
        f"Reconciled {len(entities)} endpoints: {len(non_compliant)} non-compliant, "
        f"{len(in_all_sources)} fully synced, {len(result.naming_violations)} naming violations"
    )
    if terminated_active:
        logger.warning(
            f"{len(terminated_active)} endpoint(s) still assigned to terminated employees"
        )

    return result


def _roster_in_source(
    roster: Sequence[TerminatedEmployee],
    records: Optional[Sequence[Endpoint]],
) -> List[TerminatedEmployee]:
    """
    Roster entries whose email appears in one source's raw records.

    Checked against accounts, not merged entities: a terminated user may
    still hold a live account with no device hostname attached.
    """
    if not records:
        return []
    emails = {
        r.user_email.strip().lower()
        for r in records
        if r.user_email and r.user_email.strip()
    }
    return [e for e in roster if e.email and e.email.strip().lower() in emails]


def reconcile(
    source_lists: Mapping[SourceId, Optional[Sequence[Endpoint]]],
    terminated_employees: Iterable[TerminatedEmployee] = (),
    policy: CompliancePolicy = DEFAULT_POLICY,
) -> ComparisonResult:
    """
    Run one full reconciliation: merge then aggregate.

    Takes every source's already-resolved list in a single synchronous call.
    A source that was not fetched is simply absent (treated as empty).
    """
    merged = merge_sources(source_lists)
    return aggregate(merged, terminated_employees, raw_sources=source_lists, policy=policy)


class ReconciliationEngine:
    """
    Reconcile endpoint inventories under a fixed compliance policy.

    Features:
    - Hostname-keyed merge with provenance per source
    - Hostname-pattern policy (workstation / server / naming violation)
    - Terminated-employee correlation
    - Per-source gap and exclusivity sets
    """

    def __init__(self, policy: Optional[CompliancePolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def reconcile(
        self,
        source_lists: Mapping[SourceId, Optional[Sequence[Endpoint]]],
        terminated_employees: Iterable[TerminatedEmployee] = (),
    ) -> ComparisonResult:
        return reconcile(source_lists, terminated_employees, self.policy)
