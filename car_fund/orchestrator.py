"""
Main Orchestrator for Car Fund Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Operations (request → validate → engine → save → audit)
2. Settings, reset, export and import
3. Sync (sign-in, sync now, sign-out)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every mutation goes through the engine and then StateStore.save
- Nothing raises to the UI: a failure is a declined OperationResult
  or a sync status string
- Every outcome is audited

Local operations are synchronous; only the sync paths are async.
"""

import datetime as dt
from typing import Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from car_fund.audit import AuditLogger, configure_logging
from car_fund.config import get_settings, validate_all_settings
from car_fund.engine import (
    OperationDeclined,
    apply_hours_worked,
    apply_monthly_costs,
    apply_operation,
    preview_warnings,
    update_settings,
)
from car_fund.models.operations import AppliedOperation, Operation, OperationResult, SettingsUpdate
from car_fund.models.state import EntryType, StateDocument, default_document
from car_fund.projections import CompletionEstimate, estimate_completion, progress_percent
from car_fund.queries import (
    LedgerFilter,
    LedgerView,
    allocation_hint,
    dashboard_warnings,
    query_ledger,
)
from car_fund.services.auth import AuthError, LocalSessionProvider, SessionProvider, SmtpLinkSender
from car_fund.services.storage import JsonFileStorage
from car_fund.store import ImportRejectedError, StateStore
from car_fund.sync import SyncCoordinator


logger = structlog.get_logger(__name__)

STATUS_NO_CLOUD = "Cloud sync is off (local only)"

# Default descriptions for the one-click operations
SALARY_LABEL = "Salary deposit"
DEBT_LABEL = "Debt payment"
MOVE_TO_CAR_LABEL = "Allocate to car fund"
MOVE_TO_BUFFER_LABEL = "Allocate to buffer"
MOVE_BUFFER_TO_CAR_LABEL = "Move buffer to car fund"
MOVE_CAR_TO_BUFFER_LABEL = "Move car fund to buffer"


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    return str(details[0].get("msg", error))


class Dashboard(BaseModel):
    """Everything the dashboard shows, computed from one loaded document."""
    state: StateDocument
    progress_percent: int
    remaining: float
    estimate: CompletionEstimate
    warnings: list[str]
    allocation_hint: str


class CarFundTracker:
    """
    Orchestrates operations on the state document.

    Flow for every operation:
    1. Build the request (validation errors → declined)
    2. Load the current document
    3. Apply the engine function (OperationDeclined or an invalid
       entry → declined)
    4. Save (normalize, stamp, write, schedule push)
    5. Audit

    Args:
        store: Local state store
        audit_logger: Optional audit trail
        coordinator: Sync coordinator; None runs in no-cloud mode
        session: Session provider behind the coordinator
        currency: Display currency
        sign_in_redirect_url: Where sign-in links point
    """

    def __init__(
        self,
        store: StateStore,
        audit_logger: Optional[AuditLogger] = None,
        coordinator: Optional[SyncCoordinator] = None,
        session: Optional[SessionProvider] = None,
        currency: str = "EUR",
        sign_in_redirect_url: str = "http://localhost:8501/",
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._coordinator = coordinator
        self._session = session
        self._currency = currency
        self._sign_in_redirect_url = sign_in_redirect_url

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    @property
    def cloud_enabled(self) -> bool:
        return self._coordinator is not None

    def load(self) -> StateDocument:
        return self._store.load()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def record(
        self,
        entry_type: Union[EntryType, str],
        amount: float,
        date: Optional[str] = None,
        desc: str = "",
    ) -> OperationResult:
        """Record one ledger entry of any type."""
        try:
            operation = Operation(type=entry_type, amount=amount, date=date, desc=desc)
        except ValidationError as e:
            return self._declined(getattr(entry_type, "value", str(entry_type)), amount, _first_error(e))

        return self._commit(
            lambda state: apply_operation(state, operation),
            entry_type=operation.type.value,
            amount=operation.amount,
        )

    def add_salary(self, amount: float, date: Optional[str] = None) -> OperationResult:
        return self.record(EntryType.INCOME, amount, date=date, desc=SALARY_LABEL)

    def add_expense(self, amount: float, desc: str = "", date: Optional[str] = None) -> OperationResult:
        return self.record(EntryType.EXPENSE, amount, date=date, desc=desc)

    def pay_debt(self, amount: float, desc: str = DEBT_LABEL, date: Optional[str] = None) -> OperationResult:
        return self.record(EntryType.DEBT, amount, date=date, desc=desc)

    def move_to_car(self, amount: float) -> OperationResult:
        return self.record(EntryType.MOVE_TO_CAR, amount, desc=MOVE_TO_CAR_LABEL)

    def move_to_buffer(self, amount: float) -> OperationResult:
        return self.record(EntryType.MOVE_TO_BUFFER, amount, desc=MOVE_TO_BUFFER_LABEL)

    def move_buffer_to_car(self, amount: float) -> OperationResult:
        return self.record(EntryType.MOVE_BUFFER_TO_CAR, amount, desc=MOVE_BUFFER_TO_CAR_LABEL)

    def move_car_to_buffer(self, amount: float) -> OperationResult:
        return self.record(EntryType.MOVE_CAR_TO_BUFFER, amount, desc=MOVE_CAR_TO_BUFFER_LABEL)

    def apply_hours(self, hours: float) -> OperationResult:
        """Log freelance hours at the configured hourly rate."""
        return self._commit(
            lambda state: apply_hours_worked(state, hours),
            entry_type=EntryType.INCOME.value,
            amount=hours,
        )

    def apply_monthly_costs(self) -> OperationResult:
        """Log this month's living costs as one expense."""
        return self._commit(
            apply_monthly_costs,
            entry_type=EntryType.EXPENSE.value,
            amount=0.0,
        )

    def preview(
        self,
        entry_type: Union[EntryType, str],
        amount: float,
    ) -> list[str]:
        """
        Soft warnings the operation would raise.

        The UI asks for confirmation when this is non-empty.
        """
        try:
            operation = Operation(type=entry_type, amount=amount)
        except ValidationError:
            return []
        return preview_warnings(self._store.load(), operation)

    def _commit(self, apply, entry_type: str, amount: float) -> OperationResult:
        state = self._store.load()
        try:
            applied: AppliedOperation = apply(state)
        except OperationDeclined as e:
            return self._declined(entry_type, amount, e.reason)
        except ValidationError as e:
            return self._declined(entry_type, amount, _first_error(e))

        saved = self._store.save(applied.state)
        if self._audit_logger:
            self._audit_logger.log_operation_applied(applied.entry, applied.warnings)
        logger.info(
            "operation_applied",
            entry_type=applied.entry.type,
            amount=applied.entry.amount,
            warnings=len(applied.warnings),
        )

        return OperationResult(
            success=True,
            message=f"Recorded: {applied.entry.desc or applied.entry.type}",
            entry=applied.entry,
            warnings=applied.warnings,
            state=saved,
        )

    def _declined(self, entry_type: str, amount: float, reason: str) -> OperationResult:
        logger.info("operation_declined", entry_type=entry_type, reason=reason)
        if self._audit_logger:
            self._audit_logger.log_operation_declined(entry_type, amount, reason)
        return OperationResult(success=False, message=reason)

    # -------------------------------------------------------------------------
    # Settings, reset, export/import
    # -------------------------------------------------------------------------

    def update_settings(self, update: Union[SettingsUpdate, dict]) -> OperationResult:
        """Save new configuration values."""
        try:
            if not isinstance(update, SettingsUpdate):
                update = SettingsUpdate.model_validate(update)
        except ValidationError as e:
            return OperationResult(success=False, message=_first_error(e))

        state = self._store.load()
        updated = update_settings(state, update)
        saved = self._store.save(updated)

        if self._audit_logger:
            self._audit_logger.log_settings_updated(
                changes=update.changes(),
                cash_delta=saved.cash - state.cash,
            )
        return OperationResult(success=True, message="Settings saved.", state=saved)

    def reset_all(self) -> OperationResult:
        """
        Erase everything and start again from defaults.

        The fresh defaults are saved like any edit, so the reset also
        reaches the cloud copy.
        """
        self._store.reset_all()
        saved = self._store.save(default_document())
        return OperationResult(success=True, message="Everything was reset.", state=saved)

    def export_json(self) -> str:
        return self._store.export_json()

    def import_json(self, payload: Union[str, bytes]) -> OperationResult:
        try:
            state = self._store.import_json(payload)
        except ImportRejectedError as e:
            return OperationResult(success=False, message=str(e))
        return OperationResult(
            success=True,
            message=f"Imported {len(state.entries)} entries.",
            state=state,
        )

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def dashboard(self, today: Optional[dt.date] = None) -> Dashboard:
        state = self._store.load()
        return Dashboard(
            state=state,
            progress_percent=progress_percent(state),
            remaining=max(0.0, state.goal - state.car_fund),
            estimate=estimate_completion(state, today=today),
            warnings=dashboard_warnings(state, self._currency),
            allocation_hint=allocation_hint(state, self._currency),
        )

    def ledger(
        self,
        search: str = "",
        ledger_filter: Union[LedgerFilter, str] = LedgerFilter.ALL,
    ) -> LedgerView:
        return query_ledger(
            self._store.load(),
            search=search,
            ledger_filter=LedgerFilter(ledger_filter),
            currency=self._currency,
        )

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    @property
    def sync_status(self) -> str:
        if self._coordinator is None:
            return STATUS_NO_CLOUD
        return self._coordinator.status

    @property
    def signed_in_email(self) -> Optional[str]:
        if self._coordinator is None or self._coordinator.account is None:
            return None
        return self._coordinator.account.email

    async def start(self) -> str:
        """Attach sync and reconcile an existing session."""
        if self._coordinator is None:
            return STATUS_NO_CLOUD
        return await self._coordinator.bootstrap()

    async def sync_now(self) -> str:
        if self._coordinator is None:
            return STATUS_NO_CLOUD
        return await self._coordinator.pull_and_reconcile()

    @property
    def session_token(self) -> Optional[str]:
        """Token that restores this browser's session, if signed in."""
        if not isinstance(self._session, LocalSessionProvider):
            return None
        return self._session.session_token

    async def begin_sign_in(self, email: str) -> str:
        """
        Mail a sign-in link to `email`.

        Returns the sync status. The link itself only goes to the inbox.
        """
        if self._coordinator is None:
            return STATUS_NO_CLOUD
        await self._coordinator.begin_sign_in(email, self._sign_in_redirect_url)
        return self._coordinator.status

    async def complete_sign_in(self, token: str) -> str:
        """Finish sign-in from a link; the coordinator then pulls."""
        if self._coordinator is None:
            return STATUS_NO_CLOUD
        if not isinstance(self._session, LocalSessionProvider):
            return "Auth error: sign-in links are handled by the identity provider"
        try:
            await self._session.complete_sign_in(token)
        except AuthError as e:
            logger.warning("sign_in_failed", error=str(e))
            return f"Auth error: {e}"
        return self._coordinator.status

    async def sign_out(self) -> str:
        if self._coordinator is None:
            return STATUS_NO_CLOUD
        return await self._coordinator.sign_out()

    async def shutdown(self) -> None:
        """Push any pending edit now, then stop syncing."""
        if self._coordinator is None:
            return
        await self._coordinator.flush()
        self._coordinator.close()


def create_app_components(
    use_cloud: Optional[bool] = None,
    session_token: Optional[str] = None,
) -> CarFundTracker:
    """
    Factory function to create all application components.

    Call once per browser session: each tracker has its own sign-in
    session, while local state is shared.

    Args:
        use_cloud: Force cloud sync on or off. None follows
                   CAR_FUND_SYNC_ENABLED.
        session_token: Restores a session opened earlier by this browser

    Returns:
        A tracker; in no-cloud mode it has no sync coordinator.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    tracker_settings = settings.tracker
    audit_logger = AuditLogger()
    store = StateStore(JsonFileStorage(tracker_settings.state_path), audit_logger=audit_logger)

    sync_settings = settings.sync
    if use_cloud is None:
        use_cloud = sync_settings.enabled

    coordinator = None
    session = None
    if use_cloud:
        validation = validate_all_settings()
        if validation.get("google_sheets"):
            # Imported here so local-only use never touches gspread
            from car_fund.services.storage.google_sheets import (
                GoogleSheetsClient,
                GoogleSheetsRemoteStore,
            )

            client = GoogleSheetsClient(
                settings.google_sheets,
                request_timeout=sync_settings.request_timeout_seconds,
            )
            sender = None
            if validation.get("mail"):
                sender = SmtpLinkSender(
                    settings.mail,
                    timeout=sync_settings.request_timeout_seconds,
                )
            else:
                logger.warning(
                    "sign_in_email_unavailable",
                    error=validation.get("mail_error", "not configured"),
                )
            session = LocalSessionProvider(
                sender=sender,
                storage=JsonFileStorage(tracker_settings.session_path),
            )
            session.restore_session(session_token)
            coordinator = SyncCoordinator(
                store,
                GoogleSheetsRemoteStore(client),
                session,
                audit_logger=audit_logger,
                debounce_seconds=sync_settings.debounce_seconds,
                request_timeout=sync_settings.request_timeout_seconds,
            )
            coordinator.attach()
        else:
            # Storage not configured - continue without it
            logger.warning(
                "cloud_sync_unavailable",
                error=validation.get("google_sheets_error", "not configured"),
            )

    return CarFundTracker(
        store,
        audit_logger=audit_logger,
        coordinator=coordinator,
        session=session,
        currency=tracker_settings.currency,
        sign_in_redirect_url=settings.app.sign_in_redirect_url,
    )
