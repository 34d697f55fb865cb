"""Services package."""

from ledger_store.services.storage import (
    AuditStorageInterface,
    ClientRegistry,
    CsvAuditStorage,
    CsvCodec,
    LedgerStorageInterface,
    LockTimeoutError,
    NotFoundError,
    StorageError,
    StorageIOError,
    TransactionLedger,
    ValidationError,
)

__all__ = [
    "AuditStorageInterface",
    "ClientRegistry",
    "CsvAuditStorage",
    "CsvCodec",
    "LedgerStorageInterface",
    "LockTimeoutError",
    "NotFoundError",
    "StorageError",
    "StorageIOError",
    "TransactionLedger",
    "ValidationError",
]
