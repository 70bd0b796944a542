"""
Audit Logger

DESIGN DECISION: Every change to the buckets and every sync attempt
is logged. This provides:
1. A readable history next to the ledger
2. Debugging capability for sync problems
3. A record of declined operations

The audit logger:
- Is synchronous (local-only, it never touches the network)
- Gracefully handles failures (doesn't crash the app if logging fails)
- Keeps the most recent events in memory for display
"""

import logging
from collections import deque
from typing import Optional

import structlog

from car_fund.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from car_fund.models.state import LedgerEntry


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at the given level."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log and keeps the last
    `history_size` events for the UI.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("car_fund.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written. Never raises.
        """
        self._history.append(event)

        try:
            log_dict = event.to_log_dict()
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            logging.getLogger(__name__).error("audit logging failed: %s", e)
            return False

        return True

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    def log_operation_applied(self, entry: LedgerEntry, warnings: list[str]) -> None:
        self.log(AuditEventBuilder.operation_applied(
            entry_id=entry.id,
            entry_type=entry.type,
            amount=entry.amount,
            warnings=warnings,
        ))

    def log_operation_declined(self, entry_type: str, amount: float, reason: str) -> None:
        self.log(AuditEventBuilder.operation_declined(
            entry_type=entry_type,
            amount=amount,
            reason=reason,
        ))

    def log_settings_updated(self, changes: dict[str, float], cash_delta: float) -> None:
        self.log(AuditEventBuilder.settings_updated(changes=changes, cash_delta=cash_delta))

    def log_state_created(self, cash: float) -> None:
        self.log(AuditEventBuilder.state_created(cash))

    def log_state_repaired(self, reason: str) -> None:
        self.log(AuditEventBuilder.state_repaired(reason))

    def log_state_reset(self) -> None:
        self.log(AuditEventBuilder.state_reset())

    def log_state_exported(self, entry_count: int) -> None:
        self.log(AuditEventBuilder.state_exported(entry_count))

    def log_state_imported(self, entry_count: int) -> None:
        self.log(AuditEventBuilder.state_imported(entry_count))

    def log_import_rejected(self, reason: str) -> None:
        self.log(AuditEventBuilder.import_rejected(reason))

    def log_sync_succeeded(self, direction: str, account_id: str, status: str) -> None:
        self.log(AuditEventBuilder.sync_succeeded(
            direction=direction,
            account_id=account_id,
            status=status,
        ))

    def log_sync_failed(
        self,
        direction: str,
        error_message: str,
        account_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.sync_failed(
            direction=direction,
            error_message=error_message,
            account_id=account_id,
        ))

    def log_sign_in_requested(self, email: str) -> None:
        self.log(AuditEventBuilder.sign_in_requested(email))

    def log_signed_in(self, account_id: str, email: str) -> None:
        self.log(AuditEventBuilder.signed_in(account_id=account_id, email=email))

    def log_signed_out(self, account_id: Optional[str]) -> None:
        self.log(AuditEventBuilder.signed_out(account_id))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        ))
