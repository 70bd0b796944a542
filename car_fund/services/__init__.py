"""Services package."""

from car_fund.services.auth import (
    Account,
    AuthError,
    AuthEvent,
    LocalSessionProvider,
    SessionProvider,
    SignInRequest,
)
from car_fund.services.storage import (
    ConnectionError,
    JsonFileStorage,
    LocalStateStorage,
    NotFoundError,
    RemoteRecord,
    RemoteStateStore,
    StorageError,
)

__all__ = [
    # Session services
    "Account",
    "AuthError",
    "AuthEvent",
    "LocalSessionProvider",
    "SessionProvider",
    "SignInRequest",
    # Storage services
    "ConnectionError",
    "JsonFileStorage",
    "LocalStateStorage",
    "NotFoundError",
    "RemoteRecord",
    "RemoteStateStore",
    "StorageError",
]
