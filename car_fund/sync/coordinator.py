"""
Sync Coordinator

Mirrors the local state document to a remote store for one account.

PROTOCOL (whole-document last-writer-wins):
1. Fetch the remote record for the signed-in account
2. No record: push local as the initial remote copy
3. Remote meta.lastModified strictly newer: replace local with it
4. Otherwise: push local, overwriting the remote copy

Every local save schedules a debounced push. Every sign-in triggers
a pull-and-reconcile.

DESIGN DECISION: Remote failures never propagate. They become the
coordinator's status string (and an audit event). Local storage stays
authoritative and is only ever replaced by a strictly newer remote
document.

KNOWN RISK: two devices editing between syncs lose one side's changes.
There is no merge.
"""

import asyncio
from collections.abc import Awaitable
from datetime import datetime
from typing import Optional, TypeVar

import structlog

from car_fund.audit import AuditLogger
from car_fund.models.state import StateDocument
from car_fund.services.auth import (
    Account,
    AuthError,
    AuthEvent,
    SessionProvider,
    SignInRequest,
)
from car_fund.services.storage import RemoteStateStore
from car_fund.store import StateStore
from car_fund.sync.debounce import DebouncedTask


logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_DEBOUNCE_SECONDS = 0.8

STATUS_NOT_SIGNED_IN = "Not signed in"
STATUS_SIGNED_OUT = "Signed out"
STATUS_LOADED = "Loaded cloud state"
STATUS_SEEDED = "No cloud state; uploaded local"
STATUS_LOCAL_NEWER = "Local newer; uploaded"
STATUS_SAVED = "Saved to cloud"
STATUS_LINK_SENT = "Check your email for the sign-in link"


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SyncCoordinator:
    """
    Owns the remote client, the session and the debounced push.

    Args:
        store: Local state store
        remote: Remote state store
        session: Account/session provider
        audit_logger: Optional audit trail
        debounce_seconds: Quiet period before an automatic push
        request_timeout: Seconds before a remote call counts as failed
    """

    def __init__(
        self,
        store: StateStore,
        remote: RemoteStateStore,
        session: SessionProvider,
        audit_logger: Optional[AuditLogger] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        request_timeout: Optional[float] = None,
    ):
        self._store = store
        self._remote = remote
        self._session = session
        self._audit_logger = audit_logger
        self._request_timeout = request_timeout
        self._pending_push = DebouncedTask(
            debounce_seconds,
            self._run_scheduled_push,
            name="car-fund-push",
        )
        self._detach: list = []
        self._status = STATUS_NOT_SIGNED_IN
        self._last_synced_at: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to local saves and to auth events."""
        if self._detach:
            return
        self._detach = [
            self._store.add_save_listener(self.schedule_push),
            self._session.on_auth_state_change(self._on_auth_change),
        ]

    async def bootstrap(self) -> str:
        """Attach and, if a session was restored, pull-and-reconcile."""
        self.attach()
        if self._session.get_current_account() is None:
            return self._set_status(STATUS_NOT_SIGNED_IN)
        return await self.pull_and_reconcile()

    async def flush(self) -> Optional[str]:
        """Run a pending push now instead of waiting for the timer."""
        if not self._pending_push.cancel():
            return None
        return await self.push()

    def close(self) -> None:
        """Cancel pending work and unsubscribe. Nothing is pushed."""
        self._pending_push.cancel()
        for detach in self._detach:
            detach()
        self._detach = []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def status(self) -> str:
        return self._status

    @property
    def last_synced_at(self) -> Optional[datetime]:
        return self._last_synced_at

    @property
    def account(self) -> Optional[Account]:
        return self._session.get_current_account()

    @property
    def push_pending(self) -> bool:
        return self._pending_push.pending

    def _set_status(self, status: str) -> str:
        self._status = status
        logger.info("sync_status", status=status)
        return status

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    def schedule_push(self, state: Optional[StateDocument] = None) -> None:
        """
        Save listener: (re)start the debounce window.

        The scheduled push reads local state when it fires, so only the
        last save of a burst is sent. Nothing is scheduled while signed out.
        """
        if self._session.get_current_account() is None:
            return
        self._pending_push.schedule()

    def _run_scheduled_push(self) -> None:
        # Timer thread: no running event loop here
        asyncio.run(self.push())

    async def push(self, success_status: str = STATUS_SAVED) -> str:
        """Upsert the current local document for the signed-in account."""
        account = self._session.get_current_account()
        if account is None:
            return self._set_status(STATUS_NOT_SIGNED_IN)

        state = self._store.load()
        try:
            record = await self._remote_call(
                self._remote.upsert(account.account_id, state.to_dict())
            )
        except Exception as e:
            logger.warning("push_failed", account_id=account.account_id, error=_describe(e))
            if self._audit_logger:
                self._audit_logger.log_sync_failed("push", _describe(e), account.account_id)
            return self._set_status(f"Save failed: {_describe(e)}")

        self._last_synced_at = record.server_updated_at
        if self._audit_logger:
            self._audit_logger.log_sync_succeeded("push", account.account_id, success_status)
        return self._set_status(success_status)

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    async def pull_and_reconcile(self) -> str:
        """
        Bring local and remote into agreement.

        Returns the terminal status. Never raises.
        """
        account = self._session.get_current_account()
        if account is None:
            return self._set_status(STATUS_NOT_SIGNED_IN)

        local = self._store.load()
        try:
            record = await self._remote_call(self._remote.fetch(account.account_id))
        except Exception as e:
            logger.warning("pull_failed", account_id=account.account_id, error=_describe(e))
            if self._audit_logger:
                self._audit_logger.log_sync_failed("pull", _describe(e), account.account_id)
            return self._set_status(f"Pull failed: {_describe(e)}")

        if record is None:
            return await self.push(STATUS_SEEDED)

        remote = self._store.normalize(record.state_document)
        if remote.last_modified > local.last_modified:
            self._store.overwrite(remote)
            self._last_synced_at = record.server_updated_at
            logger.info(
                "remote_state_loaded",
                remote_last_modified=remote.last_modified,
                local_last_modified=local.last_modified,
            )
            if self._audit_logger:
                self._audit_logger.log_sync_succeeded("pull", account.account_id, STATUS_LOADED)
            return self._set_status(STATUS_LOADED)

        return await self.push(STATUS_LOCAL_NEWER)

    async def _remote_call(self, call: Awaitable[T]) -> T:
        """
        Await a remote call, bounded by the request timeout.

        A timeout only stops waiting. A blocking client running in a
        worker thread (gspread) may still finish the write afterwards,
        so an upsert reported as "Save failed" can land late. The row
        it writes is a document this device saved, and the next
        pull-and-reconcile compares stamps again: a late, older copy is
        overwritten by the newer local document.
        """
        if self._request_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._request_timeout)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def begin_sign_in(self, email: str, redirect_to: str) -> Optional[SignInRequest]:
        """
        Have a sign-in link mailed to `email`; failures become an auth status.

        The link goes to the inbox only. The returned request says where
        it went and when it expires.
        """
        try:
            request = await self._session.begin_sign_in(email, redirect_to)
        except AuthError as e:
            self._set_status(f"Auth error: {_describe(e)}")
            return None
        if self._audit_logger:
            self._audit_logger.log_sign_in_requested(request.email)
        self._set_status(STATUS_LINK_SENT)
        return request

    async def sign_out(self) -> str:
        await self._session.sign_out()
        return self._status

    async def _on_auth_change(self, event: AuthEvent, account: Optional[Account]) -> None:
        if event == AuthEvent.SIGNED_IN and account is not None:
            if self._audit_logger:
                self._audit_logger.log_signed_in(account.account_id, account.email)
            await self.pull_and_reconcile()
        elif event == AuthEvent.SIGNED_OUT:
            self._pending_push.cancel()
            if self._audit_logger:
                self._audit_logger.log_signed_out(None)
            self._set_status(STATUS_SIGNED_OUT)
