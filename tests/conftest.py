"""Shared fixtures for the ledger store tests."""

from unittest.mock import MagicMock

import pytest

from ledger_store.services.storage import (
    ClientRegistry,
    CsvCodec,
    TransactionLedger,
)


@pytest.fixture()
def store_path(tmp_path):
    return tmp_path / "transactions.csv"


@pytest.fixture()
def logger():
    return MagicMock()


@pytest.fixture()
def codec(store_path, logger):
    return CsvCodec(store_path, logger=logger)


@pytest.fixture()
def ledger(store_path, logger):
    return TransactionLedger(store_path, logger=logger)


@pytest.fixture()
def registry(ledger, logger):
    return ClientRegistry(ledger, logger=logger)
