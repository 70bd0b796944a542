"""
Operation Models

What the UI asks for (Operation, SettingsUpdate) and what it gets
back (AppliedOperation from the engine, OperationResult from the
orchestrator).
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from car_fund.models.state import EntryType, LedgerEntry, StateDocument


class Operation(BaseModel):
    """
    A request to record one ledger entry.

    The amount is NOT range-checked here: a non-positive amount is a
    declined operation, reported by the engine like any other
    precondition failure. Infinities and NaN are rejected outright.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    type: EntryType = Field(
        ...,
        description="Kind of entry to record"
    )
    amount: float = Field(
        ...,
        allow_inf_nan=False,
        description="Magnitude of the operation"
    )
    date: Optional[str] = Field(
        default=None,
        description="ISO date for the entry; today when omitted"
    )
    desc: str = Field(
        default="",
        max_length=500,
        description="Free-text label"
    )

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: Optional[str]) -> Optional[str]:
        """Entry dates must be plain ISO calendar dates."""
        if v is None or v == "":
            return None
        try:
            return dt.date.fromisoformat(v).isoformat()
        except ValueError:
            raise ValueError(f"Not an ISO date (YYYY-MM-DD): {v}")


class SettingsUpdate(BaseModel):
    """New values for the configuration fields. None leaves a field alone."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    goal: Optional[float] = Field(default=None, allow_inf_nan=False)
    starting_savings: Optional[float] = Field(default=None, alias="startingSavings", allow_inf_nan=False)
    buffer_target: Optional[float] = Field(default=None, alias="bufferTarget", allow_inf_nan=False)
    hourly_rate: Optional[float] = Field(default=None, alias="hourlyRate", allow_inf_nan=False)
    rent: Optional[float] = Field(default=None, allow_inf_nan=False)
    bills: Optional[float] = Field(default=None, allow_inf_nan=False)
    food: Optional[float] = Field(default=None, allow_inf_nan=False)
    smoking: Optional[float] = Field(default=None, allow_inf_nan=False)
    social: Optional[float] = Field(default=None, allow_inf_nan=False)

    def changes(self) -> dict[str, float]:
        """Only the fields that were actually provided."""
        return self.model_dump(exclude_none=True)


class AppliedOperation(BaseModel):
    """Engine output: the new document, the appended entry and soft warnings."""
    model_config = ConfigDict(frozen=True)

    state: StateDocument
    entry: LedgerEntry
    warnings: list[str] = Field(default_factory=list)


class OperationResult(BaseModel):
    """
    What the UI sees after asking for an operation.

    A failed result means nothing changed; message says why.
    """
    success: bool
    message: str
    entry: Optional[LedgerEntry] = None
    warnings: list[str] = Field(default_factory=list)
    state: Optional[StateDocument] = None
