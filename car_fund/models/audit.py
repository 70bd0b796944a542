"""
Audit Models for Car Fund Tracker

Every change to the money buckets and every sync attempt is logged.
This provides:
1. A readable history of what happened to the balances
2. Debugging information when sync goes wrong
3. A trace of declined operations the user may not have noticed

DESIGN DECISION: Audit events are append-only structured log records.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    OPERATION_APPLIED = "operation_applied"
    OPERATION_DECLINED = "operation_declined"
    SETTINGS_UPDATED = "settings_updated"

    # Local state
    STATE_CREATED = "state_created"
    STATE_REPAIRED = "state_repaired"
    STATE_RESET = "state_reset"
    STATE_EXPORTED = "state_exported"
    STATE_IMPORTED = "state_imported"
    IMPORT_REJECTED = "import_rejected"

    # Sync
    SYNC_PULLED = "sync_pulled"
    SYNC_PUSHED = "sync_pushed"
    SYNC_FAILED = "sync_failed"

    # Session
    SIGN_IN_REQUESTED = "sign_in_requested"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'state', 'account')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.operation_applied(entry, warnings)
        event = AuditEventBuilder.sync_failed("pull", "timeout")
    """

    @staticmethod
    def operation_applied(
        entry_id: str,
        entry_type: str,
        amount: float,
        warnings: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_APPLIED,
            entity_type="entry",
            entity_id=entry_id,
            description=f"Recorded {entry_type} of {amount:g}",
            details={
                "type": entry_type,
                "amount": amount,
                "warnings": warnings,
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_declined(
        entry_type: str,
        amount: float,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_DECLINED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            description=f"Declined {entry_type}: {reason}",
            details={
                "type": entry_type,
                "amount": amount,
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(
        changes: dict[str, float],
        cash_delta: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="state",
            description=f"Settings updated ({len(changes)} fields)",
            details={
                "changes": changes,
                "cash_delta": cash_delta,
            },
            is_user_action=True,
        )

    @staticmethod
    def state_created(cash: float) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_CREATED,
            entity_type="state",
            description="Default state created",
            details={"cash": cash},
        )

    @staticmethod
    def state_repaired(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_REPAIRED,
            severity=AuditSeverity.WARNING,
            entity_type="state",
            description="Stored state was unreadable and has been replaced by defaults",
            error_message=reason,
        )

    @staticmethod
    def state_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="state",
            description="All local state erased",
            is_user_action=True,
        )

    @staticmethod
    def state_exported(entry_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_EXPORTED,
            entity_type="state",
            description=f"State exported with {entry_count} entries",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def state_imported(entry_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_IMPORTED,
            entity_type="state",
            description=f"State imported with {entry_count} entries",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="state",
            description="Import rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def sync_succeeded(
        direction: str,
        account_id: str,
        status: str,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.SYNC_PULLED
            if direction == "pull"
            else AuditEventType.SYNC_PUSHED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="account",
            entity_id=account_id,
            description=status,
            details={"direction": direction},
        )

    @staticmethod
    def sync_failed(
        direction: str,
        error_message: str,
        account_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="account",
            entity_id=account_id,
            description=f"Sync {direction} failed",
            error_message=error_message,
            details={"direction": direction},
        )

    @staticmethod
    def sign_in_requested(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_IN_REQUESTED,
            entity_type="account",
            description=f"Sign-in link sent to {email}",
            is_user_action=True,
        )

    @staticmethod
    def signed_in(account_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_IN,
            entity_type="account",
            entity_id=account_id,
            description=f"Signed in as {email}",
            is_user_action=True,
        )

    @staticmethod
    def signed_out(account_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            entity_type="account",
            entity_id=account_id,
            description="Signed out",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
