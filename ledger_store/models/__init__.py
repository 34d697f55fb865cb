"""
Data Models Package

This package contains all Pydantic models used by the ledger store.
Every row read from or written to the store file goes through these schemas.
"""

from ledger_store.models.transaction import (
    REQUIRED_COLUMNS,
    STORE_COLUMNS,
    ClientBalance,
    OperationResult,
    TransactionRecord,
    TransactionType,
    format_amount,
    has_required_fields,
    parse_amount,
)
from ledger_store.models.audit import (
    AUDIT_COLUMNS,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "REQUIRED_COLUMNS",
    "STORE_COLUMNS",
    "ClientBalance",
    "OperationResult",
    "TransactionRecord",
    "TransactionType",
    "format_amount",
    "has_required_fields",
    "parse_amount",
    # Audit models
    "AUDIT_COLUMNS",
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
