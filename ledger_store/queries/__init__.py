"""Read-side projections over the ledger."""

from ledger_store.queries.balances import BalanceQuery, client_balances, group_by_client

__all__ = ["BalanceQuery", "client_balances", "group_by_client"]
