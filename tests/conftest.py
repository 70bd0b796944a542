"""
Shared fixtures for Car Fund Tracker tests.

No real API calls: the remote store and the session provider are
in-memory stand-ins, and local state lives under tmp_path.
"""

import asyncio
import copy
import time
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

import pytest

from car_fund.audit import AuditLogger
from car_fund.services.auth import DeliveryError, LocalSessionProvider, SignInLinkSender
from car_fund.services.storage import (
    ConnectionError,
    JsonFileStorage,
    RemoteRecord,
    RemoteStateStore,
)
from car_fund.store import StateStore


class InMemoryRemoteStore(RemoteStateStore):
    """Remote store that keeps rows in a dict and records every upsert."""

    def __init__(self):
        self.records: dict[str, RemoteRecord] = {}
        self.upserts: list[RemoteRecord] = []
        self.fetches = 0
        self.fail_with: Optional[Exception] = None

    async def fetch(self, account_id: str) -> Optional[RemoteRecord]:
        self.fetches += 1
        if self.fail_with:
            raise self.fail_with
        return self.records.get(account_id)

    async def upsert(self, account_id: str, state_document: dict[str, Any]) -> RemoteRecord:
        if self.fail_with:
            raise self.fail_with
        record = RemoteRecord(
            account_id=account_id,
            state_document=copy.deepcopy(state_document),
            server_updated_at=datetime.now(timezone.utc),
        )
        self.records[account_id] = record
        self.upserts.append(record)
        return record

    def go_offline(self) -> None:
        self.fail_with = ConnectionError("network unreachable")


class RecordingLinkSender(SignInLinkSender):
    """Link sender that keeps every message instead of mailing it."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send(self, email: str, link: str) -> None:
        if self.fail:
            raise DeliveryError("Could not send the sign-in email: mail server down")
        self.sent.append((email, link))

    def token_for(self, email: str) -> str:
        """Token from the latest link mailed to `email`."""
        link = [link for to, link in self.sent if to == email][-1]
        return parse_qs(urlsplit(link).query)["token"][0]


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "state" / "car_fund_state.json"


@pytest.fixture
def storage(state_path):
    return JsonFileStorage(state_path)


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def store(storage, audit_logger, clock):
    return StateStore(storage, audit_logger=audit_logger, clock=clock)


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def outbox():
    return RecordingLinkSender()


@pytest.fixture
def session(outbox):
    return LocalSessionProvider(sender=outbox)


class SlowRemoteStore(InMemoryRemoteStore):
    """Remote store whose reads take a full second."""

    async def fetch(self, account_id: str) -> Optional[RemoteRecord]:
        await asyncio.sleep(1)
        return await super().fetch(account_id)


@pytest.fixture
def slow_remote():
    return SlowRemoteStore()


class LateWriteRemoteStore(InMemoryRemoteStore):
    """Remote store whose writes run in a worker thread and take a while."""

    def __init__(self, write_seconds: float = 0.3):
        super().__init__()
        self.write_seconds = write_seconds

    async def upsert(self, account_id: str, state_document: dict[str, Any]) -> RemoteRecord:
        def write() -> RemoteRecord:
            time.sleep(self.write_seconds)
            return asyncio.run(InMemoryRemoteStore.upsert(self, account_id, state_document))

        return await asyncio.to_thread(write)


@pytest.fixture
def late_remote():
    return LateWriteRemoteStore()
