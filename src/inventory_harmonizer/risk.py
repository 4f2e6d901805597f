"""
Risk evaluation for reconciled endpoints.

Single priority chain, first match wins:

1. HIGH   - endpoint user is on the terminated-employee roster
2. MEDIUM - endpoint is missing a source its policy requires
3. LOW    - hostname only breaks the workstation naming convention
4. NONE   - compliant and not linked to a terminated employee

A naming violation adds its reason text at every level but on its own
never raises the level above LOW.
"""

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional

from ._types import NormalizedEndpoint, RiskLevel, TerminatedEmployee
from .policy import DEFAULT_POLICY, CompliancePolicy

TERMINATED_REASON = "Terminated employee with active endpoint access"


@dataclass(frozen=True)
class RiskAssessment:
    """Risk verdict for one entity."""
    level: RiskLevel
    reason: Optional[str] = None
    terminated: bool = False  # matched the roster


def terminated_email_set(employees: Iterable[TerminatedEmployee]) -> frozenset:
    """Lowercased roster emails for case-insensitive lookup."""
    return frozenset(
        e.email.strip().lower() for e in employees if e.email and e.email.strip()
    )


def evaluate_risk(
    entity: NormalizedEndpoint,
    terminated_emails: AbstractSet[str],
    policy: CompliancePolicy = DEFAULT_POLICY,
) -> RiskAssessment:
    """
    Assess one entity.

    Pure and idempotent: the result depends only on the entity's hostname,
    sources and user email.

    Args:
        entity: Merged endpoint
        terminated_emails: Lowercased roster emails (see terminated_email_set)
        policy: Compliance policy to check required sources against

    Returns:
        RiskAssessment with level and human-readable reason
    """
    classification = policy.classify(entity.hostname)
    missing = [s for s in classification.required_sources if s not in entity.sources]
    email = (entity.user_email or "").strip().lower()

    reasons = []
    terminated = bool(email) and email in terminated_emails

    if terminated:
        level = RiskLevel.HIGH
        reasons.append(f"{TERMINATED_REASON} ({email})")
    elif missing:
        level = RiskLevel.MEDIUM
        reasons.append("Missing required sources: " + ", ".join(s.value for s in missing))
    elif classification.naming_reason:
        level = RiskLevel.LOW
    else:
        level = RiskLevel.NONE

    if classification.naming_reason:
        reasons.append(classification.naming_reason)

    return RiskAssessment(
        level=level,
        reason="; ".join(reasons) or None,
        terminated=terminated,
    )


def apply_risk(
    entity: NormalizedEndpoint,
    terminated_emails: AbstractSet[str],
    policy: CompliancePolicy = DEFAULT_POLICY,
) -> RiskAssessment:
    """Evaluate and write level/reason onto the entity."""
    assessment = evaluate_risk(entity, terminated_emails, policy)
    entity.risk_level = assessment.level
    entity.risk_reason = assessment.reason
    return assessment
