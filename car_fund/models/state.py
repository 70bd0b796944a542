"""
Core Data Models for Car Fund Tracker

The whole tracker is one document per account: nine configuration
numbers, three bucket balances, the ledger and a modification stamp.

DESIGN DECISION: The document is immutable (frozen Pydantic models).
Every mutation produces a new document, so a loaded copy can never be
changed behind the back of whoever loaded it.

On disk the keys are camelCase; in Python the attributes are
snake_case with camelCase aliases.
"""

import datetime as dt
import math
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional
from uuid import NAMESPACE_URL, uuid4, uuid5

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryType(str, Enum):
    """
    Kinds of ledger entries.

    Entries are created once in their final form and never change type.
    A stored entry may carry any other string; it is kept as-is and
    has no balance semantics.
    """
    INCOME = "income"
    EXPENSE = "expense"
    DEBT = "debt"
    MOVE_TO_CAR = "move_to_car"
    MOVE_TO_BUFFER = "move_to_buffer"
    MOVE_BUFFER_TO_CAR = "move_buffer_to_car"
    MOVE_CAR_TO_BUFFER = "move_car_to_buffer"

    @property
    def is_transfer(self) -> bool:
        """Transfers move money between buckets and are zero-sum."""
        return self.value.startswith("move_")


TRANSFER_TYPES = frozenset(t for t in EntryType if t.is_transfer)


# Python attribute -> on-disk key
CONFIG_FIELDS = {
    "goal": "goal",
    "starting_savings": "startingSavings",
    "buffer_target": "bufferTarget",
    "hourly_rate": "hourlyRate",
    "rent": "rent",
    "bills": "bills",
    "food": "food",
    "smoking": "smoking",
    "social": "social",
}
BALANCE_FIELDS = {
    "cash": "cash",
    "buffer": "buffer",
    "car_fund": "carFund",
}
MONTHLY_COST_FIELDS = ("rent", "bills", "food", "smoking", "social")

DEFAULT_CONFIG = {
    "goal": 3500.0,
    "starting_savings": 1486.0,
    "buffer_target": 1200.0,
    "hourly_rate": 20.0,
    "rent": 500.0,
    "bills": 200.0,
    "food": 250.0,
    "smoking": 150.0,
    "social": 100.0,
}

ENTRY_ID_NAMESPACE = uuid5(NAMESPACE_URL, "car-fund-tracker/ledger-entry")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def today_iso() -> str:
    return dt.date.today().isoformat()


def coerce_number(value: Any) -> float:
    """
    Coerce a stored value to a finite float.

    Numbers and numeric strings are accepted; anything else
    (None, booleans, NaN, infinities, garbage) becomes 0.
    """
    if isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip())
        else:
            return 0.0
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves up."""
    return math.floor(value + 0.5)


# =============================================================================
# LEDGER
# =============================================================================

class LedgerEntry(BaseModel):
    """
    One recorded transaction.

    The amount is always a non-negative magnitude; whether it adds or
    subtracts is implied by the type.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Opaque unique identifier"
    )
    date: str = Field(
        default_factory=today_iso,
        description="ISO 8601 calendar date (YYYY-MM-DD)"
    )
    type: str = Field(
        ...,
        description="Entry kind, normally an EntryType value"
    )
    amount: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Non-negative magnitude"
    )
    desc: str = Field(
        default="",
        description="Free-text label"
    )

    @property
    def entry_type(self) -> Optional[EntryType]:
        """The known entry type, or None for passthrough types."""
        try:
            return EntryType(self.type)
        except ValueError:
            return None

    @property
    def parsed_date(self) -> Optional[dt.date]:
        """The entry date, or None when it can't be parsed."""
        try:
            return dt.date.fromisoformat(self.date)
        except (TypeError, ValueError):
            return None


# =============================================================================
# STATE DOCUMENT
# =============================================================================

class StateMeta(BaseModel):
    """Document metadata used for sync ordering."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    last_modified: int = Field(
        ...,
        gt=0,
        alias="lastModified",
        description="Epoch milliseconds of the last local mutation"
    )


class StateDocument(BaseModel):
    """
    The single state document of one account.

    INVARIANT: each balance equals its seed plus the signed
    contributions of the entries that touched it. Balances are never
    recomputed from the ledger; they move in lockstep with inserts.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Configuration
    goal: float = Field(default=0.0, allow_inf_nan=False)
    starting_savings: float = Field(default=0.0, alias="startingSavings", allow_inf_nan=False)
    buffer_target: float = Field(default=0.0, alias="bufferTarget", allow_inf_nan=False)
    hourly_rate: float = Field(default=0.0, alias="hourlyRate", allow_inf_nan=False)
    rent: float = Field(default=0.0, allow_inf_nan=False)
    bills: float = Field(default=0.0, allow_inf_nan=False)
    food: float = Field(default=0.0, allow_inf_nan=False)
    smoking: float = Field(default=0.0, allow_inf_nan=False)
    social: float = Field(default=0.0, allow_inf_nan=False)

    # Buckets
    cash: float = Field(default=0.0, allow_inf_nan=False)
    buffer: float = Field(default=0.0, allow_inf_nan=False)
    car_fund: float = Field(default=0.0, alias="carFund", allow_inf_nan=False)

    # Newest first
    entries: tuple[LedgerEntry, ...] = Field(default_factory=tuple)

    meta: StateMeta = Field(
        default_factory=lambda: StateMeta(last_modified=now_ms())
    )

    @property
    def monthly_costs(self) -> float:
        return sum(getattr(self, name) for name in MONTHLY_COST_FIELDS)

    @property
    def last_modified(self) -> int:
        return self.meta.last_modified

    def to_dict(self) -> dict:
        """Plain dict with the on-disk (camelCase) keys."""
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self) -> str:
        """Serialized form used for local storage and export."""
        return self.model_dump_json(by_alias=True, indent=2)


def default_document(now: Optional[int] = None) -> StateDocument:
    """A fresh document: default settings, cash seeded from starting savings."""
    return StateDocument(
        **DEFAULT_CONFIG,
        cash=DEFAULT_CONFIG["starting_savings"],
        meta=StateMeta(last_modified=now if now is not None else now_ms()),
    )


# =============================================================================
# NORMALIZATION
# =============================================================================

def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _normalize_entry(item: Mapping, index: int) -> dict:
    amount = abs(coerce_number(item.get("amount")))
    entry_date = _as_text(item.get("date")).strip()
    entry_type = _as_text(item.get("type")).strip()
    desc = _as_text(item.get("desc")).strip()

    entry_id = _as_text(item.get("id")).strip()
    if not entry_id:
        # Derived from content so normalizing twice gives the same id
        entry_id = str(uuid5(
            ENTRY_ID_NAMESPACE,
            f"{index}|{entry_date}|{entry_type}|{amount!r}|{desc}",
        ))

    return {
        "id": entry_id,
        "date": entry_date,
        "type": entry_type,
        "amount": amount,
        "desc": desc,
    }


def _coerce_timestamp(value: Any, now: Optional[int]) -> int:
    stamp = int(coerce_number(value))
    if stamp > 0:
        return stamp
    return now if now is not None else now_ms()


def normalize_document(raw: Any, now: Optional[int] = None) -> StateDocument:
    """
    Repair any object into a structurally valid StateDocument.

    - every numeric field becomes a finite number (invalid -> 0)
    - entries becomes a list of well-formed entries (non-mappings dropped)
    - meta.lastModified becomes a positive integer (invalid -> now)

    Idempotent: normalizing a normalized document returns an equal one.
    Balances are NOT recomputed from the entries.
    """
    if isinstance(raw, StateDocument):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        raw = {}

    data: dict[str, Any] = {
        alias: coerce_number(raw.get(alias))
        for alias in (*CONFIG_FIELDS.values(), *BALANCE_FIELDS.values())
    }

    raw_entries = raw.get("entries")
    if not isinstance(raw_entries, (list, tuple)):
        raw_entries = []
    data["entries"] = [
        _normalize_entry(item, index)
        for index, item in enumerate(raw_entries)
        if isinstance(item, Mapping)
    ]

    raw_meta = raw.get("meta")
    last_modified = raw_meta.get("lastModified") if isinstance(raw_meta, Mapping) else None
    data["meta"] = {"lastModified": _coerce_timestamp(last_modified, now)}

    return StateDocument.model_validate(data)
