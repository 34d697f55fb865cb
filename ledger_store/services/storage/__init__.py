"""
Storage Services Package

Provides the abstract interfaces and the flat-file implementation of the
transaction ledger, the client registry and the audit log.
"""

from ledger_store.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    LockTimeoutError,
    NotFoundError,
    StorageError,
    StorageIOError,
    ValidationError,
)
from ledger_store.services.storage.csv_codec import CsvCodec, StoreDialect
from ledger_store.services.storage.ledger import (
    TransactionLedger,
    next_id,
    store_lock,
)
from ledger_store.services.storage.clients import ClientRegistry, unique_clients
from ledger_store.services.storage.audit_csv import CsvAuditStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "LockTimeoutError",
    "NotFoundError",
    "StorageError",
    "StorageIOError",
    "ValidationError",
    # Flat-file implementation
    "ClientRegistry",
    "CsvAuditStorage",
    "CsvCodec",
    "StoreDialect",
    "TransactionLedger",
    "next_id",
    "store_lock",
    "unique_clients",
]
