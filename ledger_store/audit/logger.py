"""
Audit Logger

DESIGN DECISION: Every mutation of the ledger is logged.
This provides:
1. Traceability of every transaction and client change
2. Debugging capability when a rewrite fails
3. A history the user can inspect next to the ledger file

The audit logger:
- Gracefully handles failures (a failed audit write never fails the mutation)
- Logs locally through structlog and persists through an AuditStorageInterface
"""

import logging
from typing import Optional

import structlog

from ledger_store.models.audit import AuditEvent, AuditEventBuilder
from ledger_store.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog on top of the stdlib logging module."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        logger=None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            logger: Structured logger; defaults to a structlog logger
        """
        self._storage = storage
        self._logger = logger or structlog.get_logger(__name__)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            return self._storage.append_event(event)

        return True

    def log_transaction_created(self, transaction_id: str, client: str, amount: str) -> None:
        self.log(AuditEventBuilder.transaction_created(transaction_id, client, amount))

    def log_transaction_updated(self, transaction_id: str, client: str, amount: str) -> None:
        self.log(AuditEventBuilder.transaction_updated(transaction_id, client, amount))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_transaction_duplicated(self, source_id: str, new_id: str) -> None:
        self.log(AuditEventBuilder.transaction_duplicated(source_id, new_id))

    def log_client_created(self, client: str, bootstrap_id: str) -> None:
        self.log(AuditEventBuilder.client_created(client, bootstrap_id))

    def log_client_renamed(self, old_name: str, new_name: str, affected_rows: int) -> None:
        self.log(AuditEventBuilder.client_renamed(old_name, new_name, affected_rows))

    def log_rejected(
        self,
        operation: str,
        error_kind: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> None:
        """Log a request refused for validation or not-found reasons."""
        self.log(AuditEventBuilder.request_rejected(
            operation=operation,
            error_kind=error_kind,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        ))

    def log_storage_error(self, operation: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_error(operation, error_message))
