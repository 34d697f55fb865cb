"""
Audit Models for the Ledger Store

Every mutation of the ledger is recorded as an audit event.
This provides:
1. Traceability of who changed which transaction and when
2. Debugging information when a rewrite fails
3. A history that survives soft deletes and client renames

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


# Column order of the audit file
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
]


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_DUPLICATED = "transaction_duplicated"

    # Clients
    CLIENT_CREATED = "client_created"
    CLIENT_RENAMED = "client_renamed"

    # Rejected requests
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('transaction' or 'client')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Transaction id or client name"
    )

    description: str = Field(
        ...,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> dict[str, str]:
        """
        Convert to a row keyed by AUDIT_COLUMNS.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type or "",
            "entity_id": self.entity_id or "",
            "description": self.description,
            "details_json": json.dumps(self.details, default=str) if self.details else "",
            "error_message": self.error_message or "",
        }

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "AuditEvent":
        details_json = row.get("details_json") or ""
        return cls(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row.get("entity_type") or None,
            entity_id=row.get("entity_id") or None,
            description=row["description"],
            details=json.loads(details_json) if details_json else {},
            error_message=row.get("error_message") or None,
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created("3", "Alice", "100")
        event = AuditEventBuilder.client_renamed("Bob", "Robert", 4)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        client: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction created: {client} - {amount}",
            details={
                "client": client,
                "amount": amount,
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        client: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {client} - {amount}",
            details={
                "client": client,
                "amount": amount,
            },
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction {transaction_id} marked deleted",
        )

    @staticmethod
    def transaction_duplicated(
        source_id: str,
        new_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DUPLICATED,
            entity_type="transaction",
            entity_id=new_id,
            description=f"Transaction {source_id} duplicated as {new_id}",
            details={
                "source_id": source_id,
            },
        )

    @staticmethod
    def client_created(client: str, bootstrap_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_CREATED,
            entity_type="client",
            entity_id=client,
            description=f"Client created: {client}",
            details={
                "bootstrap_id": bootstrap_id,
            },
        )

    @staticmethod
    def client_renamed(
        old_name: str,
        new_name: str,
        affected_rows: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_RENAMED,
            entity_type="client",
            entity_id=new_name,
            description=f"Client renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "affected_rows": affected_rows,
            },
        )

    @staticmethod
    def request_rejected(
        operation: str,
        error_kind: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.VALIDATION_FAILED
            if error_kind == "validation"
            else AuditEventType.NOT_FOUND
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{operation} rejected: {error_kind}",
            error_message=message,
            details={
                "operation": operation,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )
