"""
Tests for the local session provider and sign-in link delivery.
"""

import asyncio
import json

import pytest

from car_fund.services.auth import (
    Account,
    AuthError,
    AuthEvent,
    LocalSessionProvider,
    account_id_for_email,
)
from car_fund.services.auth.mailer import SIGN_IN_SUBJECT, build_sign_in_message
from car_fund.services.storage import JsonFileStorage


REDIRECT = "http://localhost:8501/"
EMAIL = "driver@example.com"


def sign_in(session: LocalSessionProvider, outbox, email: str = EMAIL) -> Account:
    asyncio.run(session.begin_sign_in(email, REDIRECT))
    return asyncio.run(session.complete_sign_in(outbox.token_for(email)))


@pytest.fixture
def session_storage(tmp_path):
    return JsonFileStorage(tmp_path / "sessions.json")


@pytest.fixture
def shared_session(outbox, session_storage):
    return LocalSessionProvider(sender=outbox, storage=session_storage)


class TestAccounts:
    """Tests for account identity."""

    def test_account_id_is_stable(self):
        assert account_id_for_email("Driver@Example.com") == account_id_for_email(" driver@example.com ")

    def test_account_email_is_lowercased(self):
        assert Account.for_email("Driver@Example.COM").email == "driver@example.com"

    def test_account_rejects_non_email(self):
        with pytest.raises(ValueError):
            Account.for_email("not-an-email")


class TestSignInLinks:
    """Tests for the one-time link sign-in flow."""

    def test_starts_signed_out(self, session):
        assert session.get_current_account() is None
        assert session.session_token is None

    def test_begin_sign_in_requires_email(self, session):
        with pytest.raises(AuthError, match="Enter your email."):
            asyncio.run(session.begin_sign_in("   ", REDIRECT))

    def test_begin_sign_in_rejects_invalid_email(self, session):
        with pytest.raises(AuthError, match="Not a valid email address"):
            asyncio.run(session.begin_sign_in("nobody", REDIRECT))

    def test_link_goes_only_to_the_inbox(self, session, outbox):
        request = asyncio.run(session.begin_sign_in("Victim@Example.com", REDIRECT))

        assert request.email == "victim@example.com"
        assert set(request.model_dump()) == {"email", "expires_at"}
        assert [to for to, _ in outbox.sent] == ["victim@example.com"]
        token = outbox.token_for("victim@example.com")
        assert token not in request.model_dump_json()

    def test_requester_cannot_sign_in_as_someone_else(self, session):
        asyncio.run(session.begin_sign_in("victim@example.com", REDIRECT))

        with pytest.raises(AuthError, match="invalid or was already used"):
            asyncio.run(session.complete_sign_in("guessed-token"))
        assert session.get_current_account() is None

    def test_sign_in_link_points_at_redirect(self, session, outbox):
        asyncio.run(session.begin_sign_in(EMAIL, "http://host/app?tab=sync"))
        _, link = outbox.sent[-1]
        assert link.startswith("http://host/app?tab=sync&token=")

    def test_sign_in_refused_without_sender(self):
        session = LocalSessionProvider()
        with pytest.raises(AuthError, match="not configured"):
            asyncio.run(session.begin_sign_in(EMAIL, REDIRECT))

    def test_failed_delivery_is_an_auth_error(self, session, outbox):
        outbox.fail = True
        with pytest.raises(AuthError, match="mail server down"):
            asyncio.run(session.begin_sign_in(EMAIL, REDIRECT))
        assert outbox.sent == []

    def test_complete_sign_in(self, session, outbox):
        account = sign_in(session, outbox)
        assert session.get_current_account() == account
        assert account.account_id == account_id_for_email(EMAIL)
        assert session.session_token

    def test_token_works_once(self, session, outbox):
        asyncio.run(session.begin_sign_in(EMAIL, REDIRECT))
        token = outbox.token_for(EMAIL)
        asyncio.run(session.complete_sign_in(token))

        with pytest.raises(AuthError, match="invalid or was already used"):
            asyncio.run(session.complete_sign_in(token))

    def test_expired_token(self, outbox):
        session = LocalSessionProvider(sender=outbox, link_ttl_seconds=-1)
        asyncio.run(session.begin_sign_in(EMAIL, REDIRECT))

        with pytest.raises(AuthError, match="expired"):
            asyncio.run(session.complete_sign_in(outbox.token_for(EMAIL)))
        assert session.get_current_account() is None

    def test_sign_out(self, session, outbox):
        sign_in(session, outbox)
        asyncio.run(session.sign_out())
        assert session.get_current_account() is None
        assert session.session_token is None


class TestSessions:
    """Tests for sessions kept per browser and restored from storage."""

    def test_other_providers_stay_signed_out(self, shared_session, outbox, session_storage):
        sign_in(shared_session, outbox)
        other_browser = LocalSessionProvider(sender=outbox, storage=session_storage)
        assert other_browser.get_current_account() is None

    def test_restore_session(self, shared_session, outbox, session_storage):
        account = sign_in(shared_session, outbox)

        after_restart = LocalSessionProvider(sender=outbox, storage=session_storage)
        assert after_restart.restore_session(shared_session.session_token) == account
        assert after_restart.get_current_account() == account

    def test_link_completes_in_another_provider(self, shared_session, outbox, session_storage):
        asyncio.run(shared_session.begin_sign_in(EMAIL, REDIRECT))

        new_tab = LocalSessionProvider(sender=outbox, storage=session_storage)
        account = asyncio.run(new_tab.complete_sign_in(outbox.token_for(EMAIL)))

        assert new_tab.get_current_account() == account
        assert shared_session.get_current_account() is None

    def test_tokens_are_not_stored_in_clear(self, shared_session, outbox, session_storage):
        sign_in(shared_session, outbox)
        stored = session_storage.read()
        assert shared_session.session_token not in stored
        assert set(json.loads(stored)) == {"pending", "sessions"}

    def test_sign_out_revokes_session(self, shared_session, outbox, session_storage):
        sign_in(shared_session, outbox)
        token = shared_session.session_token
        asyncio.run(shared_session.sign_out())

        assert LocalSessionProvider(storage=session_storage).restore_session(token) is None

    def test_expired_session(self, outbox, session_storage):
        session = LocalSessionProvider(sender=outbox, storage=session_storage, session_ttl_seconds=-1)
        sign_in(session, outbox)

        restored = LocalSessionProvider(storage=session_storage)
        assert restored.restore_session(session.session_token) is None
        assert restored.get_current_account() is None

    @pytest.mark.parametrize("token", [None, "", "unknown"])
    def test_unknown_session(self, session_storage, token):
        assert LocalSessionProvider(storage=session_storage).restore_session(token) is None

    def test_corrupt_session_file(self, session_storage):
        session_storage.write("{broken")
        assert LocalSessionProvider(storage=session_storage).restore_session("anything") is None

    def test_restore_emits_nothing(self, shared_session, outbox, session_storage):
        sign_in(shared_session, outbox)
        events = []

        async def listener(event, account):
            events.append(event)

        restored = LocalSessionProvider(storage=session_storage)
        restored.on_auth_state_change(listener)
        restored.restore_session(shared_session.session_token)
        assert events == []


class TestAuthEvents:
    """Tests for the auth event stream."""

    def test_listeners_receive_transitions(self, session, outbox):
        events = []

        async def listener(event, account):
            events.append((event, account.email if account else None))

        session.on_auth_state_change(listener)
        sign_in(session, outbox)
        asyncio.run(session.sign_out())

        assert events == [
            (AuthEvent.SIGNED_IN, EMAIL),
            (AuthEvent.SIGNED_OUT, None),
        ]

    def test_sign_out_when_signed_out_emits_nothing(self, session):
        events = []

        async def listener(event, account):
            events.append(event)

        session.on_auth_state_change(listener)
        asyncio.run(session.sign_out())
        assert events == []

    def test_unsubscribe(self, session, outbox):
        events = []

        async def listener(event, account):
            events.append(event)

        unsubscribe = session.on_auth_state_change(listener)
        unsubscribe()
        sign_in(session, outbox)
        assert events == []

    def test_failing_listener_does_not_block_sign_in(self, session, outbox):
        async def broken(event, account):
            raise RuntimeError("listener exploded")

        session.on_auth_state_change(broken)
        account = sign_in(session, outbox)
        assert session.get_current_account() == account


class TestSignInMessage:
    """Tests for the e-mail carrying the link."""

    def test_message(self):
        message = build_sign_in_message("tracker@example.com", EMAIL, "http://host/?token=abc")

        assert message["Subject"] == SIGN_IN_SUBJECT
        assert message["From"] == "tracker@example.com"
        assert message["To"] == EMAIL
        assert "http://host/?token=abc" in message.get_content()

