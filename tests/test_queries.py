"""
Tests for the ledger view and dashboard hints.
"""

import pytest

from car_fund.models.state import LedgerEntry, default_document
from car_fund.queries import (
    LedgerFilter,
    allocation_hint,
    dashboard_warnings,
    entry_label,
    format_money,
    query_ledger,
)


@pytest.fixture
def state():
    entries = (
        LedgerEntry(id="1", date="2024-06-05", type="move_buffer_to_car", amount=100, desc="Move buffer to car fund"),
        LedgerEntry(id="2", date="2024-06-04", type="move_to_car", amount=200, desc="Allocate to car fund"),
        LedgerEntry(id="3", date="2024-06-03", type="debt", amount=150, desc="Debt payment"),
        LedgerEntry(id="4", date="2024-06-02", type="expense", amount=80.5, desc="Groceries"),
        LedgerEntry(id="5", date="2024-06-01", type="income", amount=1800, desc="Salary deposit"),
        LedgerEntry(id="6", date="2024-05-30", type="gift", amount=20, desc="Birthday"),
    )
    return default_document(now=1000).model_copy(update={"entries": entries})


class TestFormatting:
    """Tests for labels and money formatting."""

    def test_format_money(self):
        assert format_money(1486) == "€1,486"
        assert format_money(-20, "EUR") == "-€20"
        assert format_money(5, "usd") == "$5"
        assert format_money(5, "CHF") == "CHF 5"

    def test_entry_labels(self):
        assert entry_label("income") == "Income"
        assert entry_label("expense") == "Expense"
        assert entry_label("debt") == "Debt"
        assert entry_label("move_car_to_buffer") == "Move"
        assert entry_label("gift") == "gift"


class TestQueryLedger:
    """Tests for filtering and totals."""

    def test_all_entries_newest_first(self, state):
        view = query_ledger(state)
        assert [row.entry.id for row in view.rows] == ["1", "2", "3", "4", "5", "6"]
        assert view.totals.count == 6

    def test_signed_amounts(self, state):
        rows = {row.entry.id: row for row in query_ledger(state).rows}
        assert rows["5"].display_amount == "+€1,800"
        assert rows["3"].display_amount == "−€150"
        assert rows["2"].display_amount == "€200"
        assert rows["6"].label == "gift"

    def test_totals_cover_visible_rows(self, state):
        totals = query_ledger(state).totals
        assert totals.income == 1800
        assert totals.expense == 80.5
        assert totals.debt == 150

    @pytest.mark.parametrize(
        "ledger_filter, expected",
        [
            (LedgerFilter.INCOME, ["5"]),
            (LedgerFilter.EXPENSE, ["4"]),
            (LedgerFilter.DEBT, ["3"]),
            (LedgerFilter.MOVE, ["1", "2"]),
            ("all", ["1", "2", "3", "4", "5", "6"]),
        ],
    )
    def test_filters(self, state, ledger_filter, expected):
        view = query_ledger(state, ledger_filter=ledger_filter)
        assert [row.entry.id for row in view.rows] == expected

    def test_search_is_case_insensitive(self, state):
        view = query_ledger(state, search="  GROCER ")
        assert [row.entry.id for row in view.rows] == ["4"]
        assert view.totals.expense == 80.5
        assert view.totals.income == 0

    def test_search_and_filter_combine(self, state):
        view = query_ledger(state, search="car", ledger_filter=LedgerFilter.MOVE)
        assert [row.entry.id for row in view.rows] == ["1", "2"]

    def test_no_match(self, state):
        view = query_ledger(state, search="holiday")
        assert not view.data_found
        assert view.totals.count == 0

    def test_limit(self, state):
        assert len(query_ledger(state, limit=2).rows) == 2

    def test_summary(self, state):
        summary = query_ledger(state).summary()
        assert summary == "Totals (visible): Income €1,800 • Expenses €80 • Debt €150 • Entries 6"


class TestDashboardHints:
    """Tests for warnings and the allocation hint."""

    def test_buffer_below_target_warning(self, state):
        warnings = dashboard_warnings(state)
        assert len(warnings) == 1
        assert warnings[0].startswith("Buffer below target (€0 / €1,200)")

    def test_negative_cash_warning(self, state):
        state = state.model_copy(update={"cash": -5.0, "buffer": 1200.0})
        assert dashboard_warnings(state) == [
            "Cash is negative. You allocated more than you actually have."
        ]

    def test_no_warnings(self, state):
        assert dashboard_warnings(state.model_copy(update={"buffer": 1500.0})) == []

    def test_allocation_hint(self, state):
        hint = allocation_hint(state)
        assert hint.startswith("Cash: €1,486 • Buffer: €0 • Car fund: €0")
        assert "prioritize buffer" in hint

        safe = allocation_hint(state.model_copy(update={"buffer": 1200.0}))
        assert "buffer target met" in safe
