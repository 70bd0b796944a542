"""Remote synchronization package."""

from car_fund.sync.coordinator import (
    DEFAULT_DEBOUNCE_SECONDS,
    STATUS_LINK_SENT,
    STATUS_LOADED,
    STATUS_LOCAL_NEWER,
    STATUS_NOT_SIGNED_IN,
    STATUS_SAVED,
    STATUS_SEEDED,
    SyncCoordinator,
)
from car_fund.sync.debounce import DebouncedTask

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "STATUS_LINK_SENT",
    "STATUS_LOADED",
    "STATUS_LOCAL_NEWER",
    "STATUS_NOT_SIGNED_IN",
    "STATUS_SAVED",
    "STATUS_SEEDED",
    "DebouncedTask",
    "SyncCoordinator",
]
