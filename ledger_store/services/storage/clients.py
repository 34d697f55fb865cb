"""
Client Registry

DESIGN DECISION: Clients are not stored anywhere on their own. A client
is any distinct value of the ``client`` column, so the registry is a
read-only projection over the ledger's rows. There is no second table
that could drift from the transactions.

A client with no real transactions yet is registered by appending a
zero-amount bootstrap row of type ``initial``.

Names are compared case-insensitively after trimming; the casing seen
first in file order is the one shown.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

import structlog

from ledger_store.models.transaction import TransactionType
from ledger_store.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
    ValidationError,
)


def client_key(name: str) -> str:
    """Comparison key for client names."""
    return name.strip().casefold()


def unique_clients(names) -> list[str]:
    """
    Deduplicate names case-insensitively, keeping first-seen casing,
    and sort them alphabetically.
    """
    seen: dict[str, str] = {}
    for name in names:
        name = (name or "").strip()
        if name:
            seen.setdefault(client_key(name), name)
    return sorted(seen.values(), key=lambda name: (name.casefold(), name))


class ClientRegistry:
    """
    Client dimension of the ledger.

    Args:
        ledger: The ledger whose rows define the clients
        logger: Structured logger; defaults to a structlog logger
    """

    def __init__(
        self,
        ledger: LedgerStorageInterface,
        logger=None,
    ):
        self._ledger = ledger
        self._logger = logger or structlog.get_logger(__name__)

    def list(self) -> list[str]:
        """All client names, including those only seen in deleted or bootstrap rows."""
        return unique_clients(row.get("client") for row in self._ledger.read_rows())

    def is_unique(self, name: str) -> bool:
        key = client_key(name or "")
        return all(client_key(existing) != key for existing in self.list())

    def create(self, name: str, today: Optional[date] = None) -> str:
        """
        Register a client by appending a bootstrap row.

        Does not check uniqueness; call is_unique first to prevent duplicates.

        Args:
            name: Client name
            today: Date for the bootstrap row (defaults to today)

        Returns:
            Id of the bootstrap row

        Raises:
            ValidationError: If the name is blank
            StorageIOError: If the row could not be appended
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name cannot be empty", field="client")

        bootstrap_id = self._ledger.append_record(
            client=name,
            date=(today or date.today()).isoformat(),
            amount=0,
            type=TransactionType.INITIAL,
            label="",
        )
        self._logger.info("client_created", client=name, bootstrap_id=bootstrap_id)
        return bootstrap_id

    def rename(self, old_name: str, new_name: str) -> int:
        """
        Rename a client in every row that carries it.

        Matching is case-insensitive, so every casing of ``old_name``
        becomes ``new_name``. Deleted and bootstrap rows are renamed too.

        Returns:
            Number of rows changed

        Raises:
            ValidationError: If either name is blank
            NotFoundError: If no row carries ``old_name``
            StorageIOError: If the store could not be rewritten
        """
        old_name = (old_name or "").strip()
        new_name = (new_name or "").strip()
        if not old_name or not new_name:
            raise ValidationError(
                "Client names cannot be empty",
                field="client" if not old_name else "new_name",
            )

        old_key = client_key(old_name)

        def rename_rows(rows: list[dict[str, str]]) -> int:
            changed = 0
            for row in rows:
                if client_key(row.get("client") or "") == old_key:
                    row["client"] = new_name
                    changed += 1
            if not changed:
                raise NotFoundError(f"Client not found: {old_name}")
            return changed

        changed = self._ledger.rewrite(rename_rows)
        self._logger.info(
            "client_renamed",
            old_name=old_name,
            new_name=new_name,
            affected_rows=changed,
        )
        return changed
