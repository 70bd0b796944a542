"""Ledger query package."""

from car_fund.queries.ledger_view import (
    LedgerFilter,
    LedgerRow,
    LedgerTotals,
    LedgerView,
    allocation_hint,
    dashboard_warnings,
    entry_label,
    format_money,
    query_ledger,
)

__all__ = [
    "LedgerFilter",
    "LedgerRow",
    "LedgerTotals",
    "LedgerView",
    "allocation_hint",
    "dashboard_warnings",
    "entry_label",
    "format_money",
    "query_ledger",
]
