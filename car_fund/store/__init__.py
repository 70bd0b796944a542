"""State persistence package."""

from car_fund.store.state_store import (
    DEFAULTS_LAST_MODIFIED,
    ImportRejectedError,
    SaveListener,
    StateStore,
)

__all__ = [
    "DEFAULTS_LAST_MODIFIED",
    "ImportRejectedError",
    "SaveListener",
    "StateStore",
]
