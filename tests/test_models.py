"""
Tests for Car Fund Tracker

Test strategy:
1. Unit tests for individual components (models, engine, projections)
2. Integration tests for flows (with in-memory remote and session)
3. No real API calls in tests
"""

import math

import pytest
from pydantic import ValidationError

from car_fund.models.state import (
    DEFAULT_CONFIG,
    TRANSFER_TYPES,
    EntryType,
    LedgerEntry,
    StateDocument,
    StateMeta,
    coerce_number,
    default_document,
    normalize_document,
    round_half_up,
)
from car_fund.models.operations import Operation, SettingsUpdate
from car_fund.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


NOW = 1_700_000_000_000


class TestCoercion:
    """Tests for numeric coercion helpers."""

    def test_numbers_pass_through(self):
        assert coerce_number(12) == 12.0
        assert coerce_number(12.5) == 12.5

    def test_numeric_strings_are_parsed(self):
        assert coerce_number("42") == 42.0
        assert coerce_number(" 7.5 ") == 7.5

    def test_garbage_becomes_zero(self):
        """Anything that is not a finite number is treated as 0."""
        for value in (None, "abc", "", [], {}, True, False, float("nan"), float("inf"), "inf"):
            assert coerce_number(value) == 0.0

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2
        assert round_half_up(0) == 0


class TestEntryModels:
    """Tests for ledger entry models."""

    def test_entry_types(self):
        values = {t.value for t in EntryType}
        assert values == {
            "income",
            "expense",
            "debt",
            "move_to_car",
            "move_to_buffer",
            "move_buffer_to_car",
            "move_car_to_buffer",
        }

    def test_transfer_types(self):
        assert EntryType.INCOME not in TRANSFER_TYPES
        assert EntryType.MOVE_BUFFER_TO_CAR in TRANSFER_TYPES
        assert len(TRANSFER_TYPES) == 4

    def test_entry_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            LedgerEntry(type="income", amount=-1)

    def test_entry_is_frozen(self):
        entry = LedgerEntry(type="income", amount=10)
        with pytest.raises(ValidationError):
            entry.amount = 20

    def test_unknown_type_is_kept(self):
        """Unknown types are carried as-is with no balance semantics."""
        entry = LedgerEntry(type="gift", amount=10)
        assert entry.type == "gift"
        assert entry.entry_type is None

    def test_parsed_date(self):
        assert LedgerEntry(type="income", amount=1, date="2024-03-01").parsed_date.isoformat() == "2024-03-01"
        assert LedgerEntry(type="income", amount=1, date="yesterday").parsed_date is None


class TestStateDocument:
    """Tests for the state document and its defaults."""

    def test_default_document_seeds_cash(self):
        state = default_document(now=NOW)
        assert state.cash == 1486
        assert state.buffer == 0
        assert state.car_fund == 0
        assert state.entries == ()
        assert state.last_modified == NOW

    def test_default_config_values(self):
        state = default_document(now=NOW)
        for name, value in DEFAULT_CONFIG.items():
            assert getattr(state, name) == value

    def test_monthly_costs(self):
        state = default_document(now=NOW)
        assert state.monthly_costs == 500 + 200 + 250 + 150 + 100

    def test_to_dict_uses_camel_case(self):
        data = default_document(now=NOW).to_dict()
        assert data["startingSavings"] == 1486
        assert data["carFund"] == 0
        assert data["meta"] == {"lastModified": NOW}
        assert "car_fund" not in data

    def test_populate_by_alias_or_name(self):
        a = StateDocument(carFund=10, meta=StateMeta(lastModified=NOW))
        b = StateDocument(car_fund=10, meta=StateMeta(last_modified=NOW))
        assert a == b

    def test_meta_stamp_must_be_positive(self):
        with pytest.raises(ValueError):
            StateMeta(last_modified=0)


class TestNormalize:
    """Tests for document normalization."""

    def test_non_mapping_becomes_empty_document(self):
        state = normalize_document("not a document", now=NOW)
        assert state.cash == 0
        assert state.entries == ()
        assert state.last_modified == NOW

    def test_numeric_fields_are_coerced(self):
        state = normalize_document(
            {"goal": "5000", "cash": None, "buffer": "lots", "carFund": 12},
            now=NOW,
        )
        assert state.goal == 5000
        assert state.cash == 0
        assert state.buffer == 0
        assert state.car_fund == 12

    def test_missing_or_invalid_stamp_becomes_now(self):
        assert normalize_document({}, now=NOW).last_modified == NOW
        assert normalize_document({"meta": {"lastModified": -4}}, now=NOW).last_modified == NOW
        assert normalize_document({"meta": "x"}, now=NOW).last_modified == NOW

    def test_existing_stamp_is_kept(self):
        state = normalize_document({"meta": {"lastModified": 123}}, now=NOW)
        assert state.last_modified == 123

    def test_entries_must_be_a_list(self):
        assert normalize_document({"entries": "nope"}, now=NOW).entries == ()

    def test_malformed_entries_are_repaired_or_dropped(self):
        state = normalize_document(
            {
                "entries": [
                    {"id": "a", "date": "2024-01-02", "type": "expense", "amount": -50, "desc": "  food  "},
                    "junk",
                    42,
                    {"type": "income", "amount": "100"},
                ]
            },
            now=NOW,
        )
        assert len(state.entries) == 2
        first, second = state.entries
        assert first.amount == 50
        assert first.desc == "food"
        assert second.amount == 100
        assert second.id

    def test_balances_are_not_recomputed(self):
        """Normalization never rebuilds balances from the ledger."""
        state = normalize_document(
            {"cash": 10, "entries": [{"id": "x", "type": "income", "amount": 999, "date": "2024-01-01"}]},
            now=NOW,
        )
        assert state.cash == 10

    def test_normalize_is_idempotent(self):
        raw = {
            "goal": "3500",
            "cash": "12.5",
            "entries": [
                {"type": "income", "amount": "100", "date": "2024-01-01"},
                {"id": "b", "type": "weird", "amount": None},
            ],
        }
        once = normalize_document(raw, now=NOW)
        twice = normalize_document(once.to_dict(), now=NOW + 5000)
        assert twice == once
        assert twice.to_json() == once.to_json()

    def test_generated_ids_are_stable(self):
        raw = {"entries": [{"type": "income", "amount": 5, "date": "2024-01-01"}]}
        first = normalize_document(raw, now=NOW).entries[0].id
        second = normalize_document(raw, now=NOW).entries[0].id
        assert first == second


class TestOperationModels:
    """Tests for operation request models."""

    def test_operation_creation(self):
        op = Operation(type="income", amount=1800, desc="  Salary  ")
        assert op.type == EntryType.INCOME
        assert op.desc == "Salary"
        assert op.date is None

    def test_operation_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            Operation(type="gift", amount=10)

    def test_operation_date_validation(self):
        assert Operation(type="income", amount=1, date="2024-02-29").date == "2024-02-29"
        assert Operation(type="income", amount=1, date="").date is None
        with pytest.raises(ValidationError, match="Not an ISO date"):
            Operation(type="income", amount=1, date="2024-13-01")

    def test_operation_allows_non_positive_amount(self):
        """Non-positive amounts are declined by the engine, not the model."""
        assert Operation(type="income", amount=0).amount == 0

    def test_settings_update_changes(self):
        update = SettingsUpdate(goal=4000, bufferTarget=900)
        assert update.changes() == {"goal": 4000, "buffer_target": 900}

    def test_settings_update_rejects_nan(self):
        with pytest.raises(ValidationError):
            SettingsUpdate(goal=math.nan)


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.STATE_RESET,
            description="State reset",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.state_imported(3)
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "state_imported"
        assert "timestamp" in log_dict
        assert "event_id" in log_dict

    def test_audit_event_builder_operation_applied(self):
        event = AuditEventBuilder.operation_applied(
            entry_id="abc",
            entry_type="income",
            amount=1800,
            warnings=[],
        )
        assert event.event_type == AuditEventType.OPERATION_APPLIED
        assert event.entity_id == "abc"
        assert event.is_user_action is True

    def test_audit_event_builder_sync_direction(self):
        pulled = AuditEventBuilder.sync_succeeded("pull", "acct", "Loaded cloud state")
        pushed = AuditEventBuilder.sync_succeeded("push", "acct", "Saved to cloud")
        assert pulled.event_type == AuditEventType.SYNC_PULLED
        assert pushed.event_type == AuditEventType.SYNC_PUSHED

    def test_audit_event_builder_sync_failed(self):
        event = AuditEventBuilder.sync_failed("push", "timeout", "acct")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "timeout"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
