"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Local state lives in a JSON file; the optional remote copy lives in
Google Sheets. Both are designed to be swappable.
"""

from car_fund.services.storage.interface import (
    ConnectionError,
    LocalStateStorage,
    NotFoundError,
    RemoteRecord,
    RemoteStateStore,
    StorageError,
)
from car_fund.services.storage.local_file import JsonFileStorage

__all__ = [
    # Interfaces
    "LocalStateStorage",
    "RemoteStateStore",
    "RemoteRecord",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Local implementation
    "JsonFileStorage",
]
