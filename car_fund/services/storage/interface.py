"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for both places the
state document lives:
1. Local durable storage - one key, the whole document, synchronous
2. Remote storage - one row per account, async, may be unreachable

This allows us to:
1. Swap the JSON file for another local backend
2. Swap Google Sheets for a real database later
3. Use in-memory fakes for testing
4. Keep sync logic decoupled from any backend

Local storage deals in raw text so that a corrupt file can be read,
recognised as corrupt and replaced by the State Store.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class RemoteRecord(BaseModel):
    """One row of the remote table."""

    account_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the row"
    )
    state_document: dict[str, Any] = Field(
        ...,
        description="The serialized state document, as stored"
    )
    server_updated_at: datetime = Field(
        ...,
        description="When the remote store last wrote this row"
    )


class LocalStateStorage(ABC):
    """
    Abstract interface for local durable storage.

    A single slot holding the serialized state document.
    Each call reads or writes the whole document.
    """

    @abstractmethod
    def read(self) -> Optional[str]:
        """
        Read the stored document.

        Returns:
            The stored text, or None if nothing is stored

        Raises:
            StorageError: If the storage can't be read
        """
        pass

    @abstractmethod
    def write(self, payload: str) -> None:
        """
        Replace the stored document.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self) -> None:
        """Erase the stored document. Erasing nothing is not an error."""
        pass


class RemoteStateStore(ABC):
    """
    Abstract interface for the remote copy.

    Rows are keyed by account id and written with insert-or-replace
    semantics. Implementations must not mutate local state.
    """

    @abstractmethod
    async def fetch(self, account_id: str) -> Optional[RemoteRecord]:
        """
        Fetch the row for an account.

        Returns:
            The record, or None if the account has never synced

        Raises:
            StorageError: If the remote store can't be read
        """
        pass

    @abstractmethod
    async def upsert(
        self,
        account_id: str,
        state_document: dict[str, Any],
    ) -> RemoteRecord:
        """
        Insert or replace the row for an account.

        The remote store stamps server_updated_at itself.

        Returns:
            The record as written

        Raises:
            StorageError: If the write fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
