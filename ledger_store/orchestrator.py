"""
Service Facade for the Ledger Store

This module is the boundary the HTTP/UI layer talks to. It ties the
ledger, the client registry and the audit trail together and exposes one
method per user-facing operation.

DESIGN DECISION: Two error channels.
- Expected conditions (bad input, unknown id or client) come back as an
  OperationResult with ``success=False``. The caller re-prompts.
- Storage failures (disk full, permission denied, lock timeout) are raised
  as StorageIOError after being written to the audit trail. The store on
  disk is still the last good version.
"""

from decimal import Decimal
from typing import Callable, Optional, Union

from ledger_store.audit import AuditLogger, configure_logging
from ledger_store.config import StoreSettings, get_settings
from ledger_store.models.transaction import (
    ClientBalance,
    OperationResult,
    TransactionRecord,
    TransactionType,
)
from ledger_store.queries import BalanceQuery
from ledger_store.services.storage import (
    ClientRegistry,
    CsvAuditStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageIOError,
    TransactionLedger,
    ValidationError,
)


def _as_id(transaction_id) -> Optional[str]:
    """Ids are text everywhere past the boundary."""
    return None if transaction_id is None else str(transaction_id)


class LedgerService:
    """
    Boundary operations over the ledger store.

    Mutations return OperationResult; reads return data directly.
    """

    def __init__(
        self,
        ledger: LedgerStorageInterface,
        registry: Optional[ClientRegistry] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._registry = registry or ClientRegistry(ledger)
        self._audit_logger = audit_logger or AuditLogger()
        self._balances = BalanceQuery(ledger)

    def _run(
        self,
        operation: str,
        action: Callable[[], OperationResult],
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> OperationResult:
        try:
            return action()
        except ValidationError as e:
            self._audit_logger.log_rejected(
                operation, "validation", str(e), entity_type, entity_id
            )
            return OperationResult(
                success=False,
                error_kind="validation",
                error_message=str(e),
                field=e.field,
            )
        except NotFoundError as e:
            self._audit_logger.log_rejected(
                operation, "not_found", str(e), entity_type, entity_id
            )
            return OperationResult(
                success=False,
                error_kind="not_found",
                error_message=str(e),
            )
        except StorageIOError as e:
            self._audit_logger.log_storage_error(operation, str(e))
            raise

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def list_transactions(self, include_deleted: bool = False) -> list[TransactionRecord]:
        return self._ledger.list(include_deleted=include_deleted)

    def create_transaction(
        self,
        client: str,
        date,
        amount: Union[Decimal, int, float, str],
        type: Union[TransactionType, str],
        label: str = "",
    ) -> OperationResult:
        def action() -> OperationResult:
            new_id = self._ledger.create(client, date, amount, type, label)
            self._audit_logger.log_transaction_created(new_id, client, str(amount))
            return OperationResult.ok(transaction_id=new_id, affected_rows=1)

        return self._run("create_transaction", action, "transaction")

    def update_transaction(
        self,
        transaction_id: str,
        client: str,
        date,
        amount: Union[Decimal, int, float, str],
        type: Union[TransactionType, str],
        label: str = "",
    ) -> OperationResult:
        transaction_id = _as_id(transaction_id)

        def action() -> OperationResult:
            self._ledger.update(transaction_id, client, date, amount, type, label)
            self._audit_logger.log_transaction_updated(transaction_id, client, str(amount))
            return OperationResult.ok(transaction_id=transaction_id, affected_rows=1)

        return self._run("update_transaction", action, "transaction", transaction_id)

    def delete_transaction(self, transaction_id: str) -> OperationResult:
        transaction_id = _as_id(transaction_id)

        def action() -> OperationResult:
            self._ledger.delete(transaction_id)
            self._audit_logger.log_transaction_deleted(transaction_id)
            return OperationResult.ok(transaction_id=transaction_id, affected_rows=1)

        return self._run("delete_transaction", action, "transaction", transaction_id)

    def duplicate_transaction(self, transaction_id: str) -> OperationResult:
        """Copy a transaction into a new one, e.g. for a recurring payment."""
        transaction_id = _as_id(transaction_id)

        def action() -> OperationResult:
            new_id = self._ledger.duplicate(transaction_id)
            self._audit_logger.log_transaction_duplicated(transaction_id, new_id)
            return OperationResult.ok(transaction_id=new_id, affected_rows=1)

        return self._run("duplicate_transaction", action, "transaction", transaction_id)

    # -------------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------------

    def list_clients(self) -> list[str]:
        return self._registry.list()

    def validate_client_name(self, name: str) -> bool:
        """True if no existing client has this name (ignoring case)."""
        return self._registry.is_unique(name)

    def create_client(self, name: str) -> OperationResult:
        def action() -> OperationResult:
            bootstrap_id = self._registry.create(name)
            self._audit_logger.log_client_created(name.strip(), bootstrap_id)
            return OperationResult.ok(transaction_id=bootstrap_id, affected_rows=1)

        return self._run("create_client", action, "client", name)

    def rename_client(self, old_name: str, new_name: str) -> OperationResult:
        def action() -> OperationResult:
            changed = self._registry.rename(old_name, new_name)
            self._audit_logger.log_client_renamed(old_name.strip(), new_name.strip(), changed)
            return OperationResult.ok(affected_rows=changed)

        return self._run("rename_client", action, "client", old_name)

    def client_balances(self) -> list[ClientBalance]:
        return self._balances.all()


def create_store_components(
    settings: Optional[StoreSettings] = None,
) -> LedgerService:
    """
    Factory function to create the ledger service from settings.

    Args:
        settings: Store settings; defaults to get_settings()

    Returns:
        A LedgerService over the configured store file
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    ledger = TransactionLedger(
        settings.transactions_path,
        lock_timeout=settings.lock_timeout_seconds,
    )
    registry = ClientRegistry(ledger)

    audit_storage = CsvAuditStorage(settings.audit_path) if settings.audit_enabled else None
    audit_logger = AuditLogger(audit_storage)

    return LedgerService(
        ledger=ledger,
        registry=registry,
        audit_logger=audit_logger,
    )
