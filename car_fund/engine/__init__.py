"""Transaction engine package."""

from car_fund.engine.transactions import (
    BUCKET_FLOWS,
    MONTHLY_COSTS_LABEL,
    OperationDeclined,
    apply_hours_worked,
    apply_monthly_costs,
    apply_operation,
    preview_warnings,
    update_settings,
)

__all__ = [
    "BUCKET_FLOWS",
    "MONTHLY_COSTS_LABEL",
    "OperationDeclined",
    "apply_hours_worked",
    "apply_monthly_costs",
    "apply_operation",
    "preview_warnings",
    "update_settings",
]
