"""
Alert generation from a ComparisonResult.

One summary alert per non-empty collection. Empty collections never
produce an alert, so an empty result yields an empty list.
"""

from datetime import datetime
from typing import List, Optional, Union

from ._types import SOURCE_ORDER, Alert, AlertType, ComparisonResult, SourceId, now_utc


def _alert_id(slug: str, run_id: str) -> str:
    return f"alert-{slug}-{run_id}"


def generate_alerts(
    result: ComparisonResult,
    timestamp: Optional[Union[str, datetime]] = None,
    run_id: Optional[str] = None,
) -> List[Alert]:
    """
    Build the alert list for one reconciliation run.

    Args:
        result: Aggregated comparison
        timestamp: Alert timestamp (defaults to result.generated_at)
        run_id: Suffix that scopes alert ids to the run (defaults to the
            timestamp's epoch milliseconds)

    Returns:
        Alerts in fixed order: offboarding, compliance, per-source gaps,
        then informational coverage summaries
    """
    when = timestamp if timestamp is not None else result.generated_at
    if isinstance(when, datetime):
        stamp = when.isoformat()
        default_run = str(int(when.timestamp() * 1000))
    else:
        stamp = when
        default_run = str(int(now_utc().timestamp() * 1000))
    run = run_id or default_run

    alerts: List[Alert] = []

    terminated_active = result.terminated_with_active_endpoints
    if terminated_active:
        alerts.append(Alert(
            id=_alert_id("terminated-active", run),
            type=AlertType.ERROR,
            title="Terminated employees with active endpoints",
            message=(
                f"{len(terminated_active)} endpoint(s) still assigned to "
                f"terminated employees"
            ),
            timestamp=stamp,
        ))

    if result.terminated_in_directory:
        alerts.append(Alert(
            id=_alert_id("terminated-directory", run),
            type=AlertType.ERROR,
            title=f"Terminated employees still in {SourceId.DIRECTORY_DEVICE.label}",
            message=(
                f"{len(result.terminated_in_directory)} terminated employee(s) "
                f"still present in the directory"
            ),
            timestamp=stamp,
            source=SourceId.DIRECTORY_DEVICE,
        ))

    if result.terminated_in_privileged_access:
        alerts.append(Alert(
            id=_alert_id("terminated-pam", run),
            type=AlertType.ERROR,
            title=f"Terminated employees still in {SourceId.PRIVILEGED_ACCESS.label}",
            message=(
                f"{len(result.terminated_in_privileged_access)} terminated employee(s) "
                f"still hold privileged access"
            ),
            timestamp=stamp,
            source=SourceId.PRIVILEGED_ACCESS,
        ))

    if result.non_compliant:
        alerts.append(Alert(
            id=_alert_id("non-compliant", run),
            type=AlertType.ERROR,
            title="Non-compliant endpoints",
            message=(
                f"{len(result.non_compliant)} endpoint(s) missing one or more "
                f"required tools"
            ),
            timestamp=stamp,
        ))

    for source in SOURCE_ORDER:
        missing = result.missing(source)
        if not missing:
            continue
        alerts.append(Alert(
            id=_alert_id(f"missing-{source.value}", run),
            type=AlertType.WARNING,
            title=f"Endpoints missing from {source.label}",
            message=f"{len(missing)} endpoint(s) not found in {source.label}",
            timestamp=stamp,
            source=source,
        ))

    for source in SOURCE_ORDER:
        exclusive = result.only(source)
        if not exclusive:
            continue
        alerts.append(Alert(
            id=_alert_id(f"only-{source.value}", run),
            type=AlertType.INFO,
            title=f"Endpoints only in {source.label}",
            message=f"{len(exclusive)} endpoint(s) reported by {source.label} alone",
            timestamp=stamp,
            source=source,
        ))

    if result.in_all_sources:
        alerts.append(Alert(
            id=_alert_id("in-all-sources", run),
            type=AlertType.INFO,
            title="Endpoints synchronized",
            message=(
                f"{len(result.in_all_sources)} endpoint(s) present in every "
                f"required source"
            ),
            timestamp=stamp,
        ))

    return alerts
