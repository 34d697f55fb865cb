"""
Per-Client Balances

DESIGN DECISION: Balances are computed on read from the ledger's
records. Nothing derived is ever written back to the store.

A debit adds its amount to the client's balance and a credit subtracts
it. Bootstrap rows (type ``initial``) keep a client visible with a zero
balance but do not count as transactions.
"""

from decimal import Decimal

from ledger_store.models.transaction import (
    ClientBalance,
    TransactionRecord,
    TransactionType,
)
from ledger_store.services.storage.clients import client_key
from ledger_store.services.storage.interface import LedgerStorageInterface


def group_by_client(
    records: list[TransactionRecord],
) -> dict[str, list[TransactionRecord]]:
    """
    Group records by client, case-insensitively.

    Keys use the first-seen casing; records keep file order.
    """
    names: dict[str, str] = {}
    groups: dict[str, list[TransactionRecord]] = {}
    for record in records:
        name = names.setdefault(client_key(record.client), record.client)
        groups.setdefault(name, []).append(record)
    return groups


def client_balances(records: list[TransactionRecord]) -> list[ClientBalance]:
    """
    Balance per client over non-deleted records, sorted by client name.
    """
    balances = []
    live = [record for record in records if not record.deleted]
    for client, group in group_by_client(live).items():
        balances.append(ClientBalance(
            client=client,
            balance=sum((record.signed_amount for record in group), Decimal("0")),
            transaction_count=sum(
                1 for record in group if record.type != TransactionType.INITIAL
            ),
            transactions=group,
        ))
    balances.sort(key=lambda b: (b.client.casefold(), b.client))
    return balances


class BalanceQuery:
    """Balances straight from a ledger."""

    def __init__(self, ledger: LedgerStorageInterface):
        self._ledger = ledger

    def all(self) -> list[ClientBalance]:
        return client_balances(self._ledger.list(include_deleted=False))

    def for_client(self, client: str) -> ClientBalance:
        """Balance of one client; zero if it has no live records."""
        key = client_key(client)
        for balance in self.all():
            if client_key(balance.client) == key:
                return balance
        return ClientBalance(client=client.strip())
