"""
Transaction Engine

Applies one financial operation to a state document.

GUARANTEES:
- The balance change and the ledger entry happen together or not at all
- A declined operation raises OperationDeclined and changes nothing
- Inputs are never mutated: every function returns a new document

Persisting the result is the caller's job (StateStore.save).
"""

import datetime as dt
import math
from typing import Optional

from car_fund.models.operations import AppliedOperation, Operation, SettingsUpdate
from car_fund.models.state import EntryType, LedgerEntry, StateDocument, round_half_up


class OperationDeclined(Exception):
    """
    A precondition failed; the operation was not applied.

    `reason` is meant to be shown to the user as-is.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# entry type -> (bucket debited, bucket credited)
BUCKET_FLOWS: dict[EntryType, tuple[Optional[str], Optional[str]]] = {
    EntryType.INCOME: (None, "cash"),
    EntryType.EXPENSE: ("cash", None),
    EntryType.DEBT: ("cash", None),
    EntryType.MOVE_TO_CAR: ("cash", "car_fund"),
    EntryType.MOVE_TO_BUFFER: ("cash", "buffer"),
    EntryType.MOVE_BUFFER_TO_CAR: ("buffer", "car_fund"),
    EntryType.MOVE_CAR_TO_BUFFER: ("car_fund", "buffer"),
}

BUCKET_NAMES = {
    "cash": "CASH",
    "buffer": "BUFFER",
    "car_fund": "CAR FUND",
}

MONTHLY_COSTS_LABEL = "Monthly living costs (rent+bills+food+smoking+social)"


def preview_warnings(state: StateDocument, operation: Operation) -> list[str]:
    """
    Soft warnings for an operation, without applying it.

    Warnings never block an operation. The caller should ask the user
    to confirm before applying an operation that has any.
    """
    warnings = []
    source, _ = BUCKET_FLOWS.get(operation.type, (None, None))

    if source == "buffer" and operation.amount > 0:
        remaining = state.buffer - operation.amount
        if remaining < state.buffer_target:
            warnings.append(
                f"This leaves the buffer at {remaining:,.0f}, "
                f"below its target of {state.buffer_target:,.0f}."
            )

    return warnings


def _check_preconditions(state: StateDocument, operation: Operation) -> tuple[Optional[str], Optional[str]]:
    flow = BUCKET_FLOWS.get(operation.type)
    if flow is None:
        raise OperationDeclined(f"Unsupported entry type: {operation.type}")

    # `not >` also rejects NaN
    if not operation.amount > 0:
        raise OperationDeclined("Enter a positive amount.")
    if not math.isfinite(operation.amount):
        raise OperationDeclined("Amount is too large.")

    source, _ = flow
    if source is not None and getattr(state, source) < operation.amount:
        raise OperationDeclined(f"Not enough {BUCKET_NAMES[source]}.")

    return flow


def apply_operation(
    state: StateDocument,
    operation: Operation,
    today: Optional[dt.date] = None,
) -> AppliedOperation:
    """
    Apply one operation and prepend its ledger entry.

    Raises:
        OperationDeclined: On a non-positive or non-finite amount, on
            insufficient funds in the bucket being debited, or when a
            balance would overflow
    """
    source, destination = _check_preconditions(state, operation)
    warnings = preview_warnings(state, operation)

    amount = float(operation.amount)
    updates: dict = {}
    if source is not None:
        updates[source] = getattr(state, source) - amount
    if destination is not None:
        updates[destination] = getattr(state, destination) + amount
    if not all(math.isfinite(balance) for balance in updates.values()):
        raise OperationDeclined("Amount is too large.")

    entry = LedgerEntry(
        date=operation.date or (today or dt.date.today()).isoformat(),
        type=operation.type.value,
        amount=amount,
        desc=operation.desc,
    )
    updates["entries"] = (entry, *state.entries)

    return AppliedOperation(
        state=state.model_copy(update=updates),
        entry=entry,
        warnings=warnings,
    )


def apply_monthly_costs(
    state: StateDocument,
    today: Optional[dt.date] = None,
) -> AppliedOperation:
    """Log rent+bills+food+smoking+social as one expense."""
    monthly = state.monthly_costs
    if not monthly > 0:
        raise OperationDeclined("Your monthly costs are 0. Set them in Setup first.")
    if state.cash < monthly:
        raise OperationDeclined("Not enough CASH to log monthly costs.")

    return apply_operation(
        state,
        Operation(type=EntryType.EXPENSE, amount=monthly, desc=MONTHLY_COSTS_LABEL),
        today=today,
    )


def apply_hours_worked(
    state: StateDocument,
    hours: float,
    today: Optional[dt.date] = None,
) -> AppliedOperation:
    """Log round(hours * hourly rate) as income."""
    if not hours > 0:
        raise OperationDeclined("Enter positive hours.")
    if not math.isfinite(hours * state.hourly_rate):
        raise OperationDeclined("Too many hours.")

    amount = round_half_up(hours * state.hourly_rate)
    return apply_operation(
        state,
        Operation(
            type=EntryType.INCOME,
            amount=amount,
            desc=f"Freelance ({hours:g}h @ {state.hourly_rate:g}/h)",
        ),
        today=today,
    )


def update_settings(state: StateDocument, update: SettingsUpdate) -> StateDocument:
    """
    Apply new configuration values.

    While the ledger is empty, a change to starting savings moves cash
    by the same delta. Once entries exist starting savings is only
    informational.
    """
    changes = update.changes()
    if not changes:
        return state

    updated = state.model_copy(update=changes)
    if not state.entries and "starting_savings" in changes:
        delta = updated.starting_savings - state.starting_savings
        updated = updated.model_copy(update={"cash": state.cash + delta})

    return updated
