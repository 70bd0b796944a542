"""
Ledger View

DESIGN DECISION: The view is DETERMINISTIC and read-only.
It only reports what is in the state document: filtered rows,
labels, visible totals and dashboard hints. It never changes
balances or entries.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from car_fund.models.state import TRANSFER_TYPES, EntryType, LedgerEntry, StateDocument


class LedgerFilter(str, Enum):
    """Categorical filter offered by the ledger view."""
    ALL = "all"
    INCOME = "income"
    EXPENSE = "expense"
    DEBT = "debt"
    MOVE = "move"


ENTRY_LABELS = {
    EntryType.INCOME.value: "Income",
    EntryType.EXPENSE.value: "Expense",
    EntryType.DEBT.value: "Debt",
    **{t.value: "Move" for t in TRANSFER_TYPES},
}

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}

MINUS = "−"


def format_money(amount: float, currency: str = "EUR") -> str:
    """Whole-unit amount with its currency symbol, e.g. '€1,486'."""
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.0f}"


def entry_label(entry_type: str) -> str:
    """Display label for an entry type; unknown types show as-is."""
    return ENTRY_LABELS.get(entry_type, entry_type)


def entry_sign(entry_type: str) -> str:
    """'+' for income, minus for expense and debt, '' for transfers."""
    if entry_type == EntryType.INCOME.value:
        return "+"
    if entry_type in (EntryType.EXPENSE.value, EntryType.DEBT.value):
        return MINUS
    return ""


def matches_filter(entry: LedgerEntry, ledger_filter: LedgerFilter) -> bool:
    if ledger_filter == LedgerFilter.ALL:
        return True
    if ledger_filter == LedgerFilter.MOVE:
        return entry.entry_type in TRANSFER_TYPES
    return entry.type == ledger_filter.value


class LedgerRow(BaseModel):
    """One entry as presented in the ledger table."""
    model_config = ConfigDict(frozen=True)

    entry: LedgerEntry
    label: str
    sign: str = ""
    display_amount: str


class LedgerTotals(BaseModel):
    """Totals over the visible (filtered) rows."""
    income: float = 0.0
    expense: float = 0.0
    debt: float = 0.0
    count: int = 0


class LedgerView(BaseModel):
    """Result of a ledger query."""
    rows: list[LedgerRow] = Field(default_factory=list)
    totals: LedgerTotals = Field(default_factory=LedgerTotals)
    search: str = ""
    filter: LedgerFilter = LedgerFilter.ALL

    @property
    def data_found(self) -> bool:
        return len(self.rows) > 0

    def summary(self, currency: str = "EUR") -> str:
        return (
            f"Totals (visible): Income {format_money(self.totals.income, currency)} • "
            f"Expenses {format_money(self.totals.expense, currency)} • "
            f"Debt {format_money(self.totals.debt, currency)} • "
            f"Entries {self.totals.count}"
        )


def query_ledger(
    state: StateDocument,
    search: str = "",
    ledger_filter: LedgerFilter = LedgerFilter.ALL,
    currency: str = "EUR",
    limit: Optional[int] = None,
) -> LedgerView:
    """
    Filter the ledger, newest first.

    The search is a case-insensitive substring match on the description.
    Totals cover exactly the rows returned.
    """
    needle = search.strip().lower()
    ledger_filter = LedgerFilter(ledger_filter)

    rows = []
    totals = LedgerTotals()
    for entry in state.entries:
        if needle and needle not in entry.desc.lower():
            continue
        if not matches_filter(entry, ledger_filter):
            continue

        sign = entry_sign(entry.type)
        rows.append(LedgerRow(
            entry=entry,
            label=entry_label(entry.type),
            sign=sign,
            display_amount=sign + format_money(entry.amount, currency),
        ))

        if entry.type == EntryType.INCOME.value:
            totals.income += entry.amount
        elif entry.type == EntryType.EXPENSE.value:
            totals.expense += entry.amount
        elif entry.type == EntryType.DEBT.value:
            totals.debt += entry.amount

        if limit is not None and len(rows) >= limit:
            break

    totals.count = len(rows)
    return LedgerView(rows=rows, totals=totals, search=search, filter=ledger_filter)


def dashboard_warnings(state: StateDocument, currency: str = "EUR") -> list[str]:
    """Standing warnings about the bucket balances."""
    warnings = []
    if state.buffer < state.buffer_target:
        warnings.append(
            f"Buffer below target ({format_money(state.buffer, currency)} / "
            f"{format_money(state.buffer_target, currency)}). Consider topping it up first."
        )
    if state.cash < 0:
        warnings.append("Cash is negative. You allocated more than you actually have.")
    return warnings


def allocation_hint(state: StateDocument, currency: str = "EUR") -> str:
    """Where the next spare money should go."""
    balances = (
        f"Cash: {format_money(state.cash, currency)} • "
        f"Buffer: {format_money(state.buffer, currency)} • "
        f"Car fund: {format_money(state.car_fund, currency)}"
    )
    if state.buffer < state.buffer_target:
        advice = (
            "Recommendation: prioritize buffer until it reaches "
            f"{format_money(state.buffer_target, currency)}."
        )
    else:
        advice = "You're safe: buffer target met. You can push the car fund."
    return f"{balances} {advice}"
