"""
Account / Session Provider

DESIGN DECISION: Sync only needs four things from an identity system:
1. Who is signed in right now (if anyone)
2. A way to start passwordless sign-in for an e-mail address
3. A way to sign out
4. A stream of sign-in / sign-out events

SessionProvider is that seam. LocalSessionProvider implements it
without an external identity service: sign-in mails a one-time link
to the address (never to the caller), and following the link opens a
session.

SECURITY:
- The link is only ever handed to the link sender, never returned or
  logged, so asking for a link proves nothing by itself
- Link and session tokens are stored as SHA-256 digests
- Each provider holds one browser's session. Pending links and open
  sessions live in shared storage, so a link can be completed from a
  new tab and a session restored after a restart

Account ids are derived from the e-mail address, so the same person
gets the same remote row on every device.
"""

import hashlib
import json
import secrets
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit
from uuid import NAMESPACE_URL, uuid5

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from car_fund.services.auth.mailer import DeliveryError, SignInLinkSender
from car_fund.services.storage.interface import LocalStateStorage


logger = structlog.get_logger(__name__)

ACCOUNT_NAMESPACE = uuid5(NAMESPACE_URL, "car-fund-tracker/account")

DEFAULT_LINK_TTL_SECONDS = 15 * 60
DEFAULT_SESSION_TTL_SECONDS = 30 * 24 * 60 * 60

# Providers in one process share the session file
_RECORDS_LOCK = threading.Lock()


class AuthEvent(str, Enum):
    """Session transitions published to subscribers."""
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


class AuthError(Exception):
    """Sign-in could not be started or completed."""
    pass


def account_id_for_email(email: str) -> str:
    """Stable account id for an e-mail address."""
    return str(uuid5(ACCOUNT_NAMESPACE, email.strip().lower()))


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class Account(BaseModel):
    """An authenticated account."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    account_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, max_length=254)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError(f"Not an e-mail address: {v}")
        return v.lower()

    @classmethod
    def for_email(cls, email: str) -> "Account":
        return cls(account_id=account_id_for_email(email), email=email)


class SignInRequest(BaseModel):
    """A pending passwordless sign-in. The link itself went to the inbox."""
    model_config = ConfigDict(frozen=True)

    email: str
    expires_at: datetime


AuthListener = Callable[[AuthEvent, Optional[Account]], Awaitable[None]]


class SessionProvider(ABC):
    """
    Abstract account/session provider.

    Listeners are awaited in subscription order. A failing listener is
    logged and skipped; it never breaks the sign-in or sign-out itself.
    """

    def __init__(self):
        self._listeners: list[AuthListener] = []

    @abstractmethod
    def get_current_account(self) -> Optional[Account]:
        """The signed-in account, or None."""
        pass

    @abstractmethod
    async def begin_sign_in(self, email: str, redirect_to: str) -> SignInRequest:
        """
        Send a passwordless sign-in link to an e-mail address.

        Raises:
            AuthError: If sign-in can't be started
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session (a no-op when nobody is signed in)."""
        pass

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """
        Subscribe to sign-in / sign-out events.

        Returns:
            A function that removes the subscription
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: AuthEvent, account: Optional[Account]) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event, account)
            except Exception as e:
                logger.error(
                    "auth_listener_failed",
                    auth_event=event.value,
                    error=str(e),
                )


class LocalSessionProvider(SessionProvider):
    """
    Session provider that needs no identity service.

    begin_sign_in() mails a one-time token embedded in a link to
    redirect_to; complete_sign_in() with that token opens a session
    and returns it through `session_token`. restore_session() reopens
    it later from that token. Link tokens expire after
    link_ttl_seconds and work once.

    Args:
        sender: Delivers sign-in links; without one sign-in is refused
        storage: Where pending links and sessions are kept. None keeps
                 them in this provider's memory only.
        link_ttl_seconds: Lifetime of a sign-in link
        session_ttl_seconds: Lifetime of a session
    """

    def __init__(
        self,
        sender: Optional[SignInLinkSender] = None,
        storage: Optional[LocalStateStorage] = None,
        link_ttl_seconds: float = DEFAULT_LINK_TTL_SECONDS,
        session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
    ):
        super().__init__()
        self._sender = sender
        self._storage = storage
        self._link_ttl = link_ttl_seconds
        self._session_ttl = session_ttl_seconds
        self._memory: dict[str, dict] = {"pending": {}, "sessions": {}}
        self._current: Optional[Account] = None
        self._session_token: Optional[str] = None

    def get_current_account(self) -> Optional[Account]:
        return self._current

    @property
    def session_token(self) -> Optional[str]:
        """Token for the open session; hand it back to restore_session()."""
        return self._session_token

    async def begin_sign_in(self, email: str, redirect_to: str) -> SignInRequest:
        email = (email or "").strip()
        if not email:
            raise AuthError("Enter your email.")
        try:
            account = Account.for_email(email)
        except ValueError:
            raise AuthError(f"Not a valid email address: {email}")
        if self._sender is None:
            raise AuthError("Sign-in email is not configured.")

        token = secrets.token_urlsafe(24)
        expires = time.time() + self._link_ttl

        def add_pending(records):
            _prune(records)
            records["pending"][_digest(token)] = {"email": account.email, "expiresAt": expires}

        self._update_records(add_pending)

        try:
            await self._sender.send(account.email, _with_query(redirect_to, token=token))
        except DeliveryError as e:
            self._update_records(lambda records: records["pending"].pop(_digest(token), None))
            raise AuthError(str(e))

        logger.info("sign_in_link_sent", email=account.email)
        return SignInRequest(
            email=account.email,
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )

    async def complete_sign_in(self, token: str) -> Account:
        """
        Finish a sign-in started by begin_sign_in().

        Raises:
            AuthError: If the token is unknown, used or expired
        """
        pending = self._update_records(
            lambda records: records["pending"].pop(_digest(token or ""), None)
        )
        if pending is None:
            raise AuthError("Sign-in link is invalid or was already used.")
        if time.time() > pending.get("expiresAt", 0):
            raise AuthError("Sign-in link has expired. Request a new one.")

        account = Account.for_email(pending["email"])
        session_token = secrets.token_urlsafe(32)

        def add_session(records):
            _prune(records)
            records["sessions"][_digest(session_token)] = {
                "email": account.email,
                "expiresAt": time.time() + self._session_ttl,
            }

        self._update_records(add_session)

        self._current = account
        self._session_token = session_token
        logger.info("signed_in", account_id=account.account_id)
        await self._emit(AuthEvent.SIGNED_IN, account)
        return account

    def restore_session(self, session_token: Optional[str]) -> Optional[Account]:
        """
        Reopen a session from its token, without emitting an event.

        Returns:
            The account, or None if the token is unknown or expired
        """
        if not session_token:
            return None
        with _RECORDS_LOCK:
            record = self._read_records()["sessions"].get(_digest(session_token))
        if record is None or time.time() > record.get("expiresAt", 0):
            logger.info("session_not_restored")
            return None

        self._current = Account.for_email(record["email"])
        self._session_token = session_token
        logger.info("session_restored", account_id=self._current.account_id)
        return self._current

    async def sign_out(self) -> None:
        if self._current is None:
            return
        logger.info("signed_out", account_id=self._current.account_id)
        if self._session_token:
            revoked = _digest(self._session_token)
            self._update_records(lambda records: records["sessions"].pop(revoked, None))
        self._current = None
        self._session_token = None
        await self._emit(AuthEvent.SIGNED_OUT, None)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def _update_records(self, change):
        """Apply `change` to the records and persist them. Returns its result."""
        with _RECORDS_LOCK:
            records = self._read_records()
            result = change(records)
            self._write_records(records)
        return result

    def _read_records(self) -> dict[str, dict]:
        if self._storage is None:
            return self._memory

        raw = self._storage.read()
        if raw is None:
            return {"pending": {}, "sessions": {}}
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("session records are not a JSON object")
        except ValueError as e:
            logger.warning("session_records_corrupt", error=str(e))
            return {"pending": {}, "sessions": {}}
        return {
            "pending": dict(data.get("pending") or {}),
            "sessions": dict(data.get("sessions") or {}),
        }

    def _write_records(self, records: dict[str, dict]) -> None:
        if self._storage is None:
            self._memory = records
        else:
            self._storage.write(json.dumps(records, indent=2))


def _prune(records: dict[str, dict]) -> None:
    """Drop expired links and sessions."""
    now = time.time()
    for kind in ("pending", "sessions"):
        records[kind] = {
            key: record
            for key, record in records[kind].items()
            if record.get("expiresAt", 0) >= now
        }


def _with_query(url: str, **params: str) -> str:
    parts = urlsplit(url)
    query = "&".join(filter(None, [parts.query, urlencode(params)]))
    return urlunsplit(parts._replace(query=query))
