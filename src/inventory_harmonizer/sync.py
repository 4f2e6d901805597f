"""
Sync orchestration.

One run:
1. Load the terminated-employee roster from the store
2. Fetch every adapter concurrently
3. Reconcile once over all fetched lists
4. Generate alerts once
5. Persist alerts, endpoint snapshot, sync log and last-sync time

A failing adapter contributes an empty list and marks the run partial.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ._types import (
    SOURCE_ORDER,
    Alert,
    ComparisonResult,
    Endpoint,
    SourceId,
    SyncLog,
    SyncStatus,
    now_utc,
)
from .adapters import SourceAdapter
from .alerts import generate_alerts
from .comparison import reconcile
from .exceptions import AdapterError
from .policy import DEFAULT_POLICY, CompliancePolicy
from .storage import ReconciliationStore

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Everything one sync run produced."""
    result: ComparisonResult
    alerts: List[Alert]
    sync_log: SyncLog
    errors: Dict[SourceId, str]

    @property
    def status(self) -> SyncStatus:
        return self.sync_log.status


class SyncService:
    """Runs reconciliation against a set of source adapters."""

    def __init__(
        self,
        store: ReconciliationStore,
        policy: Optional[CompliancePolicy] = None,
    ):
        self.store = store
        self.policy = policy or DEFAULT_POLICY

    async def _fetch(self, adapter: SourceAdapter) -> Tuple[SourceId, List[Endpoint], Optional[str]]:
        try:
            endpoints = await adapter.fetch()
            return adapter.source, endpoints, None
        except AdapterError as e:
            logger.error(f"Source {adapter.source.label} failed: {e}")
            return adapter.source, [], str(e)

    async def run(self, adapters: Sequence[SourceAdapter]) -> SyncOutcome:
        """
        Execute one sync run.

        Args:
            adapters: At most one adapter per source

        Returns:
            SyncOutcome with result, alerts and the recorded sync log
        """
        started = now_utc()
        run_id = f"{int(started.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"

        seen = set()
        for adapter in adapters:
            if adapter.source in seen:
                raise ValueError(f"Duplicate adapter for source {adapter.source.value}")
            seen.add(adapter.source)

        roster = self.store.load_terminated_employees()

        fetched = await asyncio.gather(*(self._fetch(a) for a in adapters))

        source_lists: Dict[SourceId, List[Endpoint]] = {}
        errors: Dict[SourceId, str] = {}
        for source, endpoints, error in fetched:
            source_lists[source] = endpoints
            if error is not None:
                errors[source] = error

        result = reconcile(source_lists, roster, self.policy)
        alerts = generate_alerts(result, timestamp=started, run_id=run_id)

        sync_log = self._build_log(run_id, started.isoformat(), result, errors, len(adapters))

        self.store.save_alerts(alerts)
        self.store.save_snapshot(result)
        self.store.add_sync_log(sync_log)
        self.store.set_last_sync(started.isoformat())

        logger.info(
            f"Sync {run_id} finished ({sync_log.status.value}): "
            f"{len(result.all_endpoints)} endpoints, {len(alerts)} alerts"
        )

        return SyncOutcome(result=result, alerts=alerts, sync_log=sync_log, errors=errors)

    def _build_log(
        self,
        run_id: str,
        timestamp: str,
        result: ComparisonResult,
        errors: Dict[SourceId, str],
        adapter_count: int,
    ) -> SyncLog:
        counts = {s: result.source_counts.get(s, 0) for s in SOURCE_ORDER}

        if adapter_count and len(errors) == adapter_count:
            status = SyncStatus.ERROR
            message = "All sources failed"
        elif errors:
            status = SyncStatus.PARTIAL
            failed = ", ".join(s.label for s in SOURCE_ORDER if s in errors)
            message = f"Sync completed with errors ({failed})"
        else:
            status = SyncStatus.SUCCESS
            message = f"Synchronized {len(result.all_endpoints)} endpoints"

        details = "\n".join(errors[s] for s in SOURCE_ORDER if s in errors) or None

        return SyncLog(
            id=f"sync-{run_id}",
            timestamp=timestamp,
            status=status,
            message=message,
            details=details,
            endpoint_counts=counts,
        )
