"""Inventory Harmonizer - Multi-Source Endpoint Reconciliation"""

__version__ = "0.1.0"

# Core types
from ._types import (
    SOURCE_ORDER,
    Alert,
    AlertType,
    ComparisonResult,
    DeviceCategory,
    Endpoint,
    NormalizedEndpoint,
    OriginKind,
    RiskLevel,
    SourceId,
    SyncLog,
    SyncStatus,
    TerminatedEmployee,
)

# Reconciliation core
from .normalizer import normalize_endpoint, normalize_hostname
from .merger import merge_sources
from .policy import CompliancePolicy, PolicyRule, DEFAULT_POLICY
from .risk import evaluate_risk, terminated_email_set
from .comparison import ReconciliationEngine, aggregate, reconcile
from .alerts import generate_alerts

# Users and export
from .users import compare_users, calculate_user_stats
from .export import endpoints_to_csv, users_to_csv

# Configuration, adapters, storage and sync
from .config import HarmonizerConfig, load_config, load_config_file
from .adapters import HttpSourceAdapter, StaticSourceAdapter, resolve_adapter
from .storage import InMemoryStore, SqliteStore
from .sync import SyncService, SyncOutcome

__all__ = [
    # Version
    "__version__",

    # Types
    "SOURCE_ORDER",
    "Alert",
    "AlertType",
    "ComparisonResult",
    "DeviceCategory",
    "Endpoint",
    "NormalizedEndpoint",
    "OriginKind",
    "RiskLevel",
    "SourceId",
    "SyncLog",
    "SyncStatus",
    "TerminatedEmployee",

    # Core
    "normalize_endpoint",
    "normalize_hostname",
    "merge_sources",
    "CompliancePolicy",
    "PolicyRule",
    "DEFAULT_POLICY",
    "evaluate_risk",
    "terminated_email_set",
    "ReconciliationEngine",
    "aggregate",
    "reconcile",
    "generate_alerts",

    # Users / export
    "compare_users",
    "calculate_user_stats",
    "endpoints_to_csv",
    "users_to_csv",

    # Config / adapters / storage / sync
    "HarmonizerConfig",
    "load_config",
    "load_config_file",
    "HttpSourceAdapter",
    "StaticSourceAdapter",
    "resolve_adapter",
    "InMemoryStore",
    "SqliteStore",
    "SyncService",
    "SyncOutcome",
]
