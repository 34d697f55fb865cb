"""Configuration package."""

from ledger_store.config.settings import (
    StoreSettings,
    get_settings,
)

__all__ = [
    "StoreSettings",
    "get_settings",
]
