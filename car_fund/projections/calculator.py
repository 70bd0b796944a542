"""
Projection Calculator

Read-only statistics derived from a state document:
- net savings rate per month (from the last 60 days of the ledger)
- estimated date the car fund reaches its goal
- progress towards the goal

DESIGN DECISION: The projection is deliberately crude. It is a straight
line from the recent net rate, with a flat 30-day month and a fixed
discount while the buffer is under target. No smoothing, no
seasonality. The constants below ARE the behaviour; change them and the
estimates change.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from car_fund.models.state import EntryType, StateDocument, round_half_up


RATE_WINDOW_DAYS = 60
RATE_WINDOW_MONTHS = 2
DAYS_PER_MONTH = 30
# Part of real income goes to the buffer first while it's under target
BUFFER_DISCOUNT = 0.75


class CompletionEstimate(BaseModel):
    """
    When the car fund is expected to reach its goal.

    estimated_date is None when the net rate is zero or negative:
    at that rate the goal is never reached.
    """

    remaining: float = Field(..., ge=0, description="Goal minus car fund, floored at 0")
    monthly_rate: float = Field(..., description="Net rate per month before any discount")
    adjusted_rate: float = Field(..., description="Rate used for the projection")
    buffer_discounted: bool = False
    months_needed: Optional[float] = None
    days_needed: Optional[int] = None
    estimated_date: Optional[date] = None

    @property
    def is_known(self) -> bool:
        return self.estimated_date is not None


def net_rate_per_month(state: StateDocument, now: Optional[datetime] = None) -> float:
    """
    Net income per month over the trailing 60 days.

    Income counts positive, expenses and debt payments negative.
    Transfers are ignored: they only move money between buckets.
    Entries with an unparseable date are skipped.
    """
    now = now or datetime.now()
    cutoff = now - timedelta(days=RATE_WINDOW_DAYS)

    net = 0.0
    for entry in state.entries:
        entry_date = entry.parsed_date
        if entry_date is None:
            continue
        if datetime.combine(entry_date, time.min) < cutoff:
            continue

        if entry.type == EntryType.INCOME:
            net += entry.amount
        elif entry.type in (EntryType.EXPENSE, EntryType.DEBT):
            net -= entry.amount

    return net / RATE_WINDOW_MONTHS


def estimate_completion(
    state: StateDocument,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> CompletionEstimate:
    """Project the date the car fund reaches the goal."""
    today = today or date.today()
    remaining = max(0.0, state.goal - state.car_fund)
    rate = net_rate_per_month(state, now=now)

    if rate <= 0:
        return CompletionEstimate(
            remaining=remaining,
            monthly_rate=rate,
            adjusted_rate=rate,
        )

    discounted = state.buffer < state.buffer_target
    adjusted = rate * BUFFER_DISCOUNT if discounted else rate

    months_needed = remaining / adjusted
    days_needed = math.ceil(months_needed * DAYS_PER_MONTH)

    return CompletionEstimate(
        remaining=remaining,
        monthly_rate=rate,
        adjusted_rate=adjusted,
        buffer_discounted=discounted,
        months_needed=months_needed,
        days_needed=days_needed,
        estimated_date=today + timedelta(days=days_needed),
    )


def progress_percent(state: StateDocument) -> int:
    """Car fund as a whole percentage of the goal, capped at 100."""
    if state.goal <= 0:
        return 0
    return min(100, round_half_up(state.car_fund / state.goal * 100))
