"""
Data Models Package

This package contains all Pydantic models used in the Car Fund Tracker.
All data flowing through the system must conform to these schemas.
"""

from car_fund.models.state import (
    BALANCE_FIELDS,
    CONFIG_FIELDS,
    DEFAULT_CONFIG,
    TRANSFER_TYPES,
    EntryType,
    LedgerEntry,
    StateDocument,
    StateMeta,
    coerce_number,
    default_document,
    normalize_document,
    now_ms,
    round_half_up,
    today_iso,
)
from car_fund.models.operations import (
    AppliedOperation,
    Operation,
    OperationResult,
    SettingsUpdate,
)
from car_fund.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # State models
    "BALANCE_FIELDS",
    "CONFIG_FIELDS",
    "DEFAULT_CONFIG",
    "TRANSFER_TYPES",
    "EntryType",
    "LedgerEntry",
    "StateDocument",
    "StateMeta",
    "coerce_number",
    "default_document",
    "normalize_document",
    "now_ms",
    "round_half_up",
    "today_iso",
    # Operation models
    "AppliedOperation",
    "Operation",
    "OperationResult",
    "SettingsUpdate",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
