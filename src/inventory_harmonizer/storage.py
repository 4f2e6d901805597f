"""
Persistence for reconciliation state.

The reconciliation core never touches storage. The sync service talks to a
ReconciliationStore, which holds:

- the terminated-employee roster
- the latest alert set
- the sync log history (newest first, trimmed to retention)
- the last-sync timestamp
- the latest endpoint snapshot, upserted by hostname

Two implementations: InMemoryStore for tests and one-shot CLI runs, and
SqliteStore (WAL mode) for the persistent state directory.
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ._types import (
    Alert,
    AlertType,
    ComparisonResult,
    NormalizedEndpoint,
    SourceId,
    SyncLog,
    TerminatedEmployee,
)
from .exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_SYNC_LOG_RETENTION = 100


class ReconciliationStore(ABC):
    """Storage port used by the sync service."""

    @abstractmethod
    def load_terminated_employees(self) -> List[TerminatedEmployee]:
        ...

    @abstractmethod
    def save_terminated_employees(self, employees: Sequence[TerminatedEmployee]) -> None:
        ...

    @abstractmethod
    def save_alerts(self, alerts: Sequence[Alert]) -> None:
        """Replace the stored alert set."""

    @abstractmethod
    def get_alerts(self) -> List[Alert]:
        ...

    @abstractmethod
    def clear_alerts(self) -> None:
        ...

    @abstractmethod
    def add_sync_log(self, log: SyncLog) -> None:
        ...

    @abstractmethod
    def get_sync_logs(self) -> List[SyncLog]:
        """Sync logs, newest first."""

    @abstractmethod
    def get_last_sync(self) -> Optional[str]:
        ...

    @abstractmethod
    def set_last_sync(self, timestamp: str) -> None:
        ...

    @abstractmethod
    def save_snapshot(self, result: ComparisonResult) -> int:
        """Upsert every endpoint in the result. Returns rows written."""


class InMemoryStore(ReconciliationStore):
    """Process-local store."""

    def __init__(self, sync_log_retention: int = DEFAULT_SYNC_LOG_RETENTION):
        self.sync_log_retention = sync_log_retention
        self._employees: List[TerminatedEmployee] = []
        self._alerts: List[Alert] = []
        self._logs: List[SyncLog] = []
        self._last_sync: Optional[str] = None
        self.snapshot: Dict[str, NormalizedEndpoint] = {}

    def load_terminated_employees(self) -> List[TerminatedEmployee]:
        return list(self._employees)

    def save_terminated_employees(self, employees: Sequence[TerminatedEmployee]) -> None:
        self._employees = list(employees)

    def save_alerts(self, alerts: Sequence[Alert]) -> None:
        self._alerts = list(alerts)

    def get_alerts(self) -> List[Alert]:
        return list(self._alerts)

    def clear_alerts(self) -> None:
        self._alerts = []

    def add_sync_log(self, log: SyncLog) -> None:
        self._logs.insert(0, log)
        del self._logs[self.sync_log_retention:]

    def get_sync_logs(self) -> List[SyncLog]:
        return list(self._logs)

    def get_last_sync(self) -> Optional[str]:
        return self._last_sync

    def set_last_sync(self, timestamp: str) -> None:
        self._last_sync = timestamp

    def save_snapshot(self, result: ComparisonResult) -> int:
        for ep in result.all_endpoints:
            self.snapshot[ep.hostname] = ep
        return len(result.all_endpoints)


class SqliteStore(ReconciliationStore):
    """
    SQLite-backed store.

    Features:
    - WAL mode for crash safety
    - JSON columns for list/dict fields
    - Sync log trimmed to retention on every insert
    """

    def __init__(self, db_path: Path, sync_log_retention: int = DEFAULT_SYNC_LOG_RETENTION):
        """
        Initialize store.

        Args:
            db_path: Path to SQLite database file
            sync_log_retention: Number of sync logs kept
        """
        self.db_path = Path(db_path)
        self.sync_log_retention = sync_log_retention
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e

    def _init_db(self):
        """Initialize SQLite database with schema."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {self.db_path.parent}: {e}") from e

        conn = self._connect()
        try:
            conn.execute('PRAGMA journal_mode=WAL')
            conn.execute('PRAGMA synchronous=NORMAL')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS terminated_employees (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    termination_date TEXT NOT NULL,
                    notes TEXT
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS alerts (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    source TEXT
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS sync_logs (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT NOT NULL,
                    details TEXT,
                    endpoint_counts TEXT
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS endpoints (
                    hostname TEXT PRIMARY KEY,
                    ip TEXT,
                    uuid TEXT,
                    os TEXT,
                    last_seen TEXT,
                    user_email TEXT,
                    sources TEXT NOT NULL,
                    source_origins TEXT NOT NULL,
                    risk_level TEXT NOT NULL,
                    risk_reason TEXT,
                    category TEXT,
                    updated_at TEXT NOT NULL
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            ''')

            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize {self.db_path}: {e}") from e
        finally:
            conn.close()

        logger.info(f"Initialized reconciliation store at {self.db_path}")

    def _execute(self, statements):
        """Run (sql, params) pairs in one transaction."""
        conn = self._connect()
        try:
            for sql, params in statements:
                conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Write to {self.db_path} failed: {e}") from e
        finally:
            conn.close()

    def _query(self, sql: str, params=()) -> list:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Read from {self.db_path} failed: {e}") from e
        finally:
            conn.close()

    # Roster

    def load_terminated_employees(self) -> List[TerminatedEmployee]:
        rows = self._query('''
            SELECT id, name, email, termination_date, notes
            FROM terminated_employees
            ORDER BY termination_date DESC, id
        ''')
        return [
            TerminatedEmployee(
                id=r[0], name=r[1], email=r[2], termination_date=r[3], notes=r[4]
            )
            for r in rows
        ]

    def save_terminated_employees(self, employees: Sequence[TerminatedEmployee]) -> None:
        statements = [('DELETE FROM terminated_employees', ())]
        statements.extend(
            ('''
                INSERT OR REPLACE INTO terminated_employees
                (id, name, email, termination_date, notes)
                VALUES (?, ?, ?, ?, ?)
            ''', (e.id, e.name, e.email, e.termination_date, e.notes))
            for e in employees
        )
        self._execute(statements)
        logger.info(f"Saved {len(employees)} terminated employee(s)")

    # Alerts

    def save_alerts(self, alerts: Sequence[Alert]) -> None:
        statements = [('DELETE FROM alerts', ())]
        statements.extend(
            ('''
                INSERT OR REPLACE INTO alerts (id, type, title, message, timestamp, source)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (
                a.id, a.type.value, a.title, a.message, a.timestamp,
                a.source.value if a.source else None,
            ))
            for a in alerts
        )
        self._execute(statements)

    def get_alerts(self) -> List[Alert]:
        rows = self._query(
            'SELECT id, type, title, message, timestamp, source FROM alerts ORDER BY rowid'
        )
        return [
            Alert(
                id=r[0],
                type=AlertType(r[1]),
                title=r[2],
                message=r[3],
                timestamp=r[4],
                source=SourceId(r[5]) if r[5] else None,
            )
            for r in rows
        ]

    def clear_alerts(self) -> None:
        self._execute([('DELETE FROM alerts', ())])

    # Sync logs

    def add_sync_log(self, log: SyncLog) -> None:
        counts = (
            json.dumps({s.value: n for s, n in log.endpoint_counts.items()})
            if log.endpoint_counts is not None else None
        )
        self._execute([
            ('''
                INSERT OR REPLACE INTO sync_logs
                (id, timestamp, status, message, details, endpoint_counts)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (log.id, log.timestamp, log.status.value, log.message, log.details, counts)),
            ('''
                DELETE FROM sync_logs WHERE seq NOT IN (
                    SELECT seq FROM sync_logs ORDER BY seq DESC LIMIT ?
                )
            ''', (self.sync_log_retention,)),
        ])

    def get_sync_logs(self) -> List[SyncLog]:
        rows = self._query('''
            SELECT id, timestamp, status, message, details, endpoint_counts
            FROM sync_logs ORDER BY seq DESC
        ''')
        return [
            SyncLog.from_dict({
                "id": r[0],
                "timestamp": r[1],
                "status": r[2],
                "message": r[3],
                "details": r[4],
                "endpointCounts": json.loads(r[5]) if r[5] else None,
            })
            for r in rows
        ]

    # Settings

    def get_last_sync(self) -> Optional[str]:
        rows = self._query("SELECT value FROM settings WHERE key = 'last_sync'")
        return rows[0][0] if rows else None

    def set_last_sync(self, timestamp: str) -> None:
        self._execute([(
            "INSERT OR REPLACE INTO settings (key, value) VALUES ('last_sync', ?)",
            (timestamp,),
        )])

    # Snapshot

    def save_snapshot(self, result: ComparisonResult) -> int:
        updated_at = result.generated_at.isoformat()
        statements = [
            ('''
                INSERT OR REPLACE INTO endpoints
                (hostname, ip, uuid, os, last_seen, user_email, sources,
                 source_origins, risk_level, risk_reason, category, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                ep.hostname,
                ep.ip,
                ep.uuid,
                ep.os,
                ep.last_seen,
                ep.user_email,
                json.dumps([s.value for s in ep.sources]),
                json.dumps({s.value: o.value for s, o in ep.source_origins.items()}),
                ep.risk_level.value,
                ep.risk_reason,
                ep.category.value if ep.category else None,
                updated_at,
            ))
            for ep in result.all_endpoints
        ]
        if statements:
            self._execute(statements)
        logger.debug(f"Snapshot saved: {len(statements)} endpoint(s)")
        return len(statements)

    def get_snapshot(self) -> List[Dict[str, object]]:
        """Stored endpoint rows as plain dicts, ordered by hostname."""
        rows = self._query('''
            SELECT hostname, ip, uuid, os, last_seen, user_email, sources,
                   risk_level, risk_reason, category, updated_at
            FROM endpoints ORDER BY hostname
        ''')
        return [
            {
                "hostname": r[0],
                "ip": r[1],
                "uuid": r[2],
                "os": r[3],
                "lastSeen": r[4],
                "userEmail": r[5],
                "sources": json.loads(r[6]),
                "riskLevel": r[7],
                "riskReason": r[8],
                "category": r[9],
                "updatedAt": r[10],
            }
            for r in rows
        ]
