"""Projection package."""

from car_fund.projections.calculator import (
    BUFFER_DISCOUNT,
    DAYS_PER_MONTH,
    RATE_WINDOW_DAYS,
    CompletionEstimate,
    estimate_completion,
    net_rate_per_month,
    progress_percent,
)

__all__ = [
    "BUFFER_DISCOUNT",
    "DAYS_PER_MONTH",
    "RATE_WINDOW_DAYS",
    "CompletionEstimate",
    "estimate_completion",
    "net_rate_per_month",
    "progress_percent",
]
