"""
Configuration Management for the Ledger Store

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Paths, lock timeouts and log level are validated once at startup
instead of being read ad hoc by each component.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """
    Flat-file store configuration.

    Loads from LEDGER_STORE_* environment variables and the .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("."),
        description="Directory holding the store files"
    )
    transactions_file: str = Field(
        default="transactions.csv",
        description="File name of the transaction ledger"
    )
    audit_file: str = Field(
        default="audit_log.csv",
        description="File name of the audit log"
    )
    audit_enabled: bool = Field(
        default=True,
        description="Persist audit events next to the ledger"
    )
    lock_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="How long a writer waits for the store lock"
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for structured logging"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("transactions_file", "audit_file")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        """File names only; directories belong in data_dir."""
        v = v.strip()
        if not v or Path(v).name != v:
            raise ValueError(f"Expected a bare file name, got: {v!r}")
        return v

    @property
    def transactions_path(self) -> Path:
        return self.data_dir / self.transactions_file

    @property
    def audit_path(self) -> Path:
        return self.data_dir / self.audit_file


@lru_cache()
def get_settings() -> StoreSettings:
    """
    Get store settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return StoreSettings()
