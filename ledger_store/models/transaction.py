"""
Core Data Models for the Ledger Store

These models define the schema of everything that flows through the store.
They are designed to:
1. Enforce types at the boundary of the flat file
2. Provide clear validation error messages
3. Convert to and from the stored row layout in one place

DESIGN DECISION: The file stores plain text. Parsing into typed values
happens here, not in the codec, so the codec stays format-only.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# Column order of the store file. The header row is exactly this.
STORE_COLUMNS = ["id", "client", "date", "amount", "type", "label", "deleted"]

# A row missing any of these (absent or empty) is not a transaction.
REQUIRED_COLUMNS = ("id", "client", "date", "amount", "type")

TRUE_FLAGS = {"1", "true"}


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a transaction.

    INITIAL is only used by client bootstrap rows.
    """
    DEBIT = "debit"
    CREDIT = "credit"
    INITIAL = "initial"


def parse_amount(value) -> Decimal:
    """
    Parse an amount into a finite Decimal.

    Floats go through ``str`` so 0.1 stays 0.1.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def format_amount(amount: Decimal) -> str:
    """Decimal string form, never in exponent notation."""
    return format(amount, "f")


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class TransactionRecord(BaseModel):
    """
    One ledger entry as stored in a row of the store file.

    ``amount`` is a magnitude; whether it adds to or subtracts from a
    client's balance is decided by ``type``.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Store-assigned identifier (decimal digits)"
    )
    client: str = Field(
        ...,
        min_length=1,
        description="Client name, free-form"
    )
    date: str = Field(
        ...,
        min_length=1,
        description="Transaction date as text"
    )
    amount: Decimal = Field(
        ...,
        description="Amount as entered"
    )
    type: TransactionType = Field(
        ...,
        description="debit, credit or initial"
    )
    label: str = Field(
        default="",
        description="Free-text label"
    )
    deleted: bool = Field(
        default=False,
        description="Soft-delete marker"
    )

    @field_validator("date", mode="before")
    @classmethod
    def date_to_text(cls, v):
        """Accept date objects, store them as ISO text."""
        if isinstance(v, date):
            return v.isoformat()
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v) -> Decimal:
        return parse_amount(v)

    @field_validator("label", mode="before")
    @classmethod
    def label_default(cls, v) -> str:
        return "" if v is None else v

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "TransactionRecord":
        """
        Build a record from a stored row.

        Raises:
            ValueError: If the amount or type cannot be parsed
        """
        flag = (row.get("deleted") or "").strip().lower()
        return cls(
            id=row["id"],
            client=row["client"],
            date=row["date"],
            amount=row["amount"],
            type=row["type"].strip().lower(),
            label=row.get("label") or "",
            deleted=flag in TRUE_FLAGS,
        )

    def to_row(self) -> dict[str, str]:
        """Convert to a row keyed by STORE_COLUMNS."""
        return {
            "id": self.id,
            "client": self.client,
            "date": self.date,
            "amount": format_amount(self.amount),
            "type": self.type.value,
            "label": self.label,
            "deleted": "1" if self.deleted else "0",
        }

    @property
    def signed_amount(self) -> Decimal:
        """Contribution to the client's balance: debit adds, credit subtracts."""
        if self.type == TransactionType.DEBIT:
            return self.amount
        if self.type == TransactionType.CREDIT:
            return -self.amount
        return Decimal("0")


def has_required_fields(row: dict[str, Optional[str]]) -> bool:
    """True if every required column is present and non-blank."""
    return all((row.get(column) or "").strip() for column in REQUIRED_COLUMNS)


# =============================================================================
# PROJECTIONS AND RESULTS
# =============================================================================

class ClientBalance(BaseModel):
    """Running balance of one client over its non-deleted transactions."""

    client: str
    balance: Decimal = Field(default=Decimal("0"))
    transaction_count: int = Field(
        default=0,
        ge=0,
        description="Real transactions, bootstrap rows excluded"
    )
    transactions: list[TransactionRecord] = Field(default_factory=list)

    @property
    def is_positive(self) -> bool:
        return self.balance >= 0


class OperationResult(BaseModel):
    """
    Outcome of a mutating boundary operation.

    Expected failures (validation, not found) are reported here.
    IO failures are raised, never folded into a result.
    """

    success: bool
    error_kind: Optional[str] = Field(
        default=None,
        pattern="^(validation|not_found)$",
        description="Kind of expected failure"
    )
    error_message: Optional[str] = None
    field: Optional[str] = Field(
        default=None,
        description="Offending field for validation failures"
    )
    transaction_id: Optional[str] = None
    affected_rows: int = Field(default=0, ge=0)

    @classmethod
    def ok(cls, **kwargs) -> "OperationResult":
        return cls(success=True, **kwargs)
