"""
Abstract Storage Interface

DESIGN DECISION: The ledger and the audit trail sit behind abstract
interfaces. This allows us to:
1. Keep the flat-file backend swappable
2. Use in-memory fakes for testing the service layer
3. Keep the service facade decoupled from file handling

The interface is intentionally small - we're not building a database.
Just the operations the ledger screens need.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Optional, TypeVar, Union

from ledger_store.models.audit import AuditEvent
from ledger_store.models.transaction import TransactionRecord, TransactionType


T = TypeVar("T")

Amount = Union[Decimal, int, float, str]


class LedgerStorageInterface(ABC):
    """
    Abstract interface for transaction ledger storage.

    Any ledger backend must implement these methods.
    """

    @abstractmethod
    def list(self, include_deleted: bool = False) -> list[TransactionRecord]:
        """
        List transactions in storage order.

        Args:
            include_deleted: Also return soft-deleted records

        Returns:
            Records in append order
        """
        pass

    @abstractmethod
    def get(self, transaction_id: str) -> TransactionRecord:
        """
        Retrieve one transaction, deleted or not.

        Raises:
            ValidationError: If the id is empty
            NotFoundError: If no record has this id
        """
        pass

    @abstractmethod
    def create(
        self,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
    ) -> str:
        """
        Append a new transaction with a freshly assigned id.

        Returns:
            The new id

        Raises:
            ValidationError: If a required field is missing or malformed
            StorageIOError: If the store could not be rewritten
        """
        pass

    @abstractmethod
    def update(
        self,
        transaction_id: str,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
    ) -> None:
        """
        Replace the fields of an existing transaction.

        The soft-delete flag of the record is preserved.

        Raises:
            ValidationError: If a field is missing or malformed
            NotFoundError: If no record has this id
            StorageIOError: If the store could not be rewritten
        """
        pass

    @abstractmethod
    def delete(self, transaction_id: str) -> None:
        """
        Soft-delete a transaction.

        Raises:
            ValidationError: If the id is empty
            NotFoundError: If no record has this id
            StorageIOError: If the store could not be rewritten
        """
        pass

    @abstractmethod
    def append_record(
        self,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
    ) -> str:
        """Append one record without rewriting the store. Returns the new id."""
        pass

    @abstractmethod
    def read_rows(self) -> list[dict[str, str]]:
        """Raw rows of the store, as stored."""
        pass

    @abstractmethod
    def rewrite(self, mutate: Callable[[list[dict[str, str]]], T]) -> T:
        """
        Run a read-modify-write cycle under the store's write lock.

        Args:
            mutate: Edits the row list in place and returns a value

        Returns:
            Whatever ``mutate`` returned
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'transaction', 'client')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ValidationError(StorageError):
    """A required field is empty, missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageIOError(StorageError):
    """The store file could not be read, written or replaced."""
    pass


class LockTimeoutError(StorageIOError):
    """The store's write lock could not be acquired in time."""
    pass
