"""
Single source of truth for all shared types in inventory-harmonizer.

IMPORTANT: Import types from this module, not from individual files.

Usage:
    from inventory_harmonizer._types import (
        Endpoint, NormalizedEndpoint, TerminatedEmployee,
        SourceId, OriginKind, RiskLevel,
        now_utc
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def now_utc() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class SourceId(str, Enum):
    """
    The five tool categories whose inventories are reconciled.

    Declaration order is the merge order.
    """
    VULNERABILITY_MGMT = "vulnerability-mgmt"
    XDR = "xdr"
    ZERO_TRUST_NETWORK = "zero-trust-network"
    PRIVILEGED_ACCESS = "privileged-access"
    DIRECTORY_DEVICE = "directory-device"

    @property
    def label(self) -> str:
        """Display name of the tool behind this category."""
        return SOURCE_LABELS[self]


SOURCE_ORDER = tuple(SourceId)

SOURCE_LABELS: Dict[SourceId, str] = {
    SourceId.VULNERABILITY_MGMT: "Vicarius",
    SourceId.XDR: "Cortex XDR",
    SourceId.ZERO_TRUST_NETWORK: "Cloudflare WARP",
    SourceId.PRIVILEGED_ACCESS: "PAM",
    SourceId.DIRECTORY_DEVICE: "JumpCloud",
}


class OriginKind(str, Enum):
    """Where a source's data came from for this run."""
    API = "api"
    FILE_IMPORT = "file-import"
    SAMPLE = "sample"


class RiskLevel(str, Enum):
    """Risk severity for a reconciled endpoint."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DeviceCategory(str, Enum):
    """Policy classification derived from the hostname."""
    WORKSTATION = "workstation"
    SERVER = "server"
    NAMING_VIOLATION = "naming_violation"  # workstation family, bad name


class AlertType(str, Enum):
    """Alert severity."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SyncStatus(str, Enum):
    """Outcome of a sync run."""
    SUCCESS = "success"
    PARTIAL = "partial"  # at least one source failed
    ERROR = "error"


# =============================================================================
# DATACLASSES (for internal use, no validation)
# =============================================================================


@dataclass(frozen=True)
class Endpoint:
    """One device observation reported by a single source."""
    hostname: str
    ip: str
    uuid: str
    source: SourceId
    origin: OriginKind = OriginKind.API
    os: Optional[str] = None
    last_seen: Optional[str] = None
    user_email: Optional[str] = None
    id: Optional[str] = None


@dataclass
class NormalizedEndpoint:
    """
    Canonical, hostname-keyed entity merged across all sources.

    Rebuilt from scratch on every reconciliation run.
    """
    hostname: str
    ip: str = ""
    uuid: str = ""
    os: Optional[str] = None
    last_seen: Optional[str] = None
    sources: List[SourceId] = field(default_factory=list)
    source_origins: Dict[SourceId, OriginKind] = field(default_factory=dict)
    user_email: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.NONE
    risk_reason: Optional[str] = None

    # Filled by the policy pass
    category: Optional[DeviceCategory] = None
    naming_violation: Optional[str] = None

    @property
    def is_workstation(self) -> bool:
        return self.category in (DeviceCategory.WORKSTATION, DeviceCategory.NAMING_VIOLATION)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API/export."""
        return {
            "hostname": self.hostname,
            "ip": self.ip,
            "uuid": self.uuid,
            "os": self.os,
            "lastSeen": self.last_seen,
            "sources": [s.value for s in self.sources],
            "sourceOrigins": {s.value: o.value for s, o in self.source_origins.items()},
            "userEmail": self.user_email,
            "riskLevel": self.risk_level.value,
            "riskReason": self.risk_reason,
            "category": self.category.value if self.category else None,
            "namingViolation": self.naming_violation,
        }


@dataclass(frozen=True)
class TerminatedEmployee:
    """An offboarded employee from the roster."""
    id: str
    name: str
    email: str
    termination_date: str
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "terminationDate": self.termination_date,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Alert:
    """Summary alert produced from one reconciliation run."""
    id: str
    type: AlertType
    title: str
    message: str
    timestamp: str
    source: Optional[SourceId] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp,
            "source": self.source.value if self.source else None,
        }


@dataclass(frozen=True)
class ComparisonResult:
    """
    Every derived collection over one merge pass.

    Collections may overlap and keep merge-insertion order.
    """
    all_endpoints: List[NormalizedEndpoint]
    only_in: Dict[SourceId, List[NormalizedEndpoint]]
    in_all_sources: List[NormalizedEndpoint]
    missing_from: Dict[SourceId, List[NormalizedEndpoint]]
    non_compliant: List[NormalizedEndpoint]
    terminated_with_active_endpoints: List[NormalizedEndpoint]
    terminated_in_directory: List[TerminatedEmployee]
    terminated_in_privileged_access: List[TerminatedEmployee]
    workstations: List[NormalizedEndpoint]
    servers: List[NormalizedEndpoint]
    naming_violations: List[NormalizedEndpoint]
    source_counts: Dict[SourceId, int] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=now_utc)

    def only(self, source: SourceId) -> List[NormalizedEndpoint]:
        return self.only_in.get(source, [])

    def missing(self, source: SourceId) -> List[NormalizedEndpoint]:
        return self.missing_from.get(source, [])

    def summary(self) -> Dict[str, Any]:
        """Counts per collection."""
        return {
            "total": len(self.all_endpoints),
            "in_all_sources": len(self.in_all_sources),
            "non_compliant": len(self.non_compliant),
            "terminated_with_active_endpoints": len(self.terminated_with_active_endpoints),
            "terminated_in_directory": len(self.terminated_in_directory),
            "terminated_in_privileged_access": len(self.terminated_in_privileged_access),
            "workstations": len(self.workstations),
            "servers": len(self.servers),
            "naming_violations": len(self.naming_violations),
            "only_in": {s.value: len(self.only(s)) for s in SOURCE_ORDER},
            "missing_from": {s.value: len(self.missing(s)) for s in SOURCE_ORDER},
            "source_counts": {s.value: self.source_counts.get(s, 0) for s in SOURCE_ORDER},
        }


@dataclass
class SyncLog:
    """Audit record of one sync run."""
    id: str
    timestamp: str
    status: SyncStatus
    message: str
    details: Optional[str] = None
    endpoint_counts: Optional[Dict[SourceId, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "endpointCounts": (
                {s.value: n for s, n in self.endpoint_counts.items()}
                if self.endpoint_counts is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncLog":
        counts = data.get("endpointCounts")
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            status=SyncStatus(data["status"]),
            message=data["message"],
            details=data.get("details"),
            endpoint_counts=(
                {SourceId(s): int(n) for s, n in counts.items()}
                if counts is not None else None
            ),
        )


# =============================================================================
# PYDANTIC MODELS (for adapter/roster validation)
# =============================================================================


class EndpointModel(BaseModel):
    """Validates a raw endpoint record handed over by an adapter."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    hostname: str = ""
    ip: str = ""
    uuid: str = ""
    os: Optional[str] = None
    last_seen: Optional[str] = Field(default=None, alias="lastSeen")
    source: SourceId
    origin: OriginKind = OriginKind.API
    user_email: Optional[str] = Field(default=None, alias="userEmail")

    @field_validator("ip", "uuid", mode="before")
    @classmethod
    def coerce_to_str(cls, v):
        return "" if v is None else str(v)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return None if v is None else str(v)

    @field_validator("hostname", mode="before")
    @classmethod
    def coerce_hostname(cls, v):
        return "" if v is None else str(v)

    def to_endpoint(self) -> Endpoint:
        return Endpoint(
            id=self.id,
            hostname=self.hostname,
            ip=self.ip or "",
            uuid=self.uuid or "",
            os=self.os,
            last_seen=self.last_seen,
            source=self.source,
            origin=self.origin,
            user_email=self.user_email,
        )


class TerminatedEmployeeModel(BaseModel):
    """Validates a roster entry."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    email: str = Field(min_length=3)
    termination_date: str = Field(alias="terminationDate")
    notes: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)

    def to_employee(self) -> TerminatedEmployee:
        return TerminatedEmployee(
            id=self.id,
            name=self.name,
            email=self.email.strip(),
            termination_date=self.termination_date,
            notes=self.notes,
        )


__all__ = [
    "now_utc",
    "SourceId",
    "SOURCE_ORDER",
    "SOURCE_LABELS",
    "OriginKind",
    "RiskLevel",
    "DeviceCategory",
    "AlertType",
    "SyncStatus",
    "Endpoint",
    "NormalizedEndpoint",
    "TerminatedEmployee",
    "Alert",
    "ComparisonResult",
    "SyncLog",
    "EndpointModel",
    "TerminatedEmployeeModel",
]
