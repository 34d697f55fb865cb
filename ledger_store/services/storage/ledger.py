"""
Flat-File Transaction Ledger

DESIGN DECISION: The ledger owns the store file. Every mutation is one
read-modify-write cycle:

    acquire write lock -> read whole store -> edit snapshot
    -> write whole store (temp file + rename) -> release

The write lock is process-wide and keyed by the store's resolved path, so
two ledger objects over the same file still serialize their writes and
no mutation can overwrite another one it never saw (lost update).
Readers do not take the lock; they always see the last renamed file.

Ids are assigned by the store: one plus the largest numeric id present.
Deletion only flips the ``deleted`` flag, so ids are never reused.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from ledger_store.models.transaction import (
    STORE_COLUMNS,
    TRUE_FLAGS,
    TransactionRecord,
    TransactionType,
    has_required_fields,
)
from ledger_store.services.storage.csv_codec import CsvCodec
from ledger_store.services.storage.interface import (
    Amount,
    LedgerStorageInterface,
    LockTimeoutError,
    NotFoundError,
    ValidationError,
)


T = TypeVar("T")

DEFAULT_LOCK_TIMEOUT = 10.0

# Placeholder id used while validating input before an id is assigned
_PENDING_ID = "0"

_STORE_LOCKS: dict[str, threading.RLock] = {}
_STORE_LOCKS_GUARD = threading.Lock()


def store_lock(path: Union[str, Path]) -> threading.RLock:
    """Return the process-wide write lock for the store at ``path``."""
    key = os.path.realpath(path)
    with _STORE_LOCKS_GUARD:
        return _STORE_LOCKS.setdefault(key, threading.RLock())


def next_id(rows: list[dict[str, str]]) -> str:
    """
    One plus the largest numeric id in ``rows``; "1" for an empty store.

    Non-numeric ids do not take part.
    """
    max_id = 0
    for row in rows:
        value = (row.get("id") or "").strip()
        if value.isascii() and value.isdigit():
            max_id = max(max_id, int(value))
    return str(max_id + 1)


def _clean_id(transaction_id) -> str:
    value = "" if transaction_id is None else str(transaction_id).strip()
    if not value:
        raise ValidationError("Transaction ID is required", field="id")
    return value


def _find(rows: list[dict[str, str]], transaction_id: str) -> Optional[int]:
    for index, row in enumerate(rows):
        if (row.get("id") or "").strip() == transaction_id:
            return index
    return None


def _is_deleted(row: dict[str, str]) -> bool:
    return (row.get("deleted") or "").strip().lower() in TRUE_FLAGS


class TransactionLedger(LedgerStorageInterface):
    """
    CRUD and soft delete over the transaction store file.

    Args:
        path: Location of the store file. Created with a header if missing.
        codec: Codec to use instead of a CsvCodec on ``path``
        logger: Structured logger; defaults to a structlog logger
        lock_timeout: Seconds a writer waits for the store lock
    """

    def __init__(
        self,
        path: Union[str, Path],
        codec: Optional[CsvCodec] = None,
        logger=None,
        lock_timeout: Optional[float] = None,
    ):
        self._logger = logger or structlog.get_logger(__name__)
        self._codec = codec or CsvCodec(path, logger=self._logger)
        self.path = self._codec.path
        self._lock = store_lock(self.path)
        self._lock_timeout = DEFAULT_LOCK_TIMEOUT if lock_timeout is None else lock_timeout

        with self._locked():
            self._codec.ensure_exists(STORE_COLUMNS)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            self._logger.error(
                "store_lock_timeout",
                path=str(self.path),
                timeout=self._lock_timeout,
            )
            raise LockTimeoutError(
                f"Timed out after {self._lock_timeout}s waiting for {self.path}"
            )
        try:
            yield
        finally:
            self._lock.release()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def read_rows(self) -> list[dict[str, str]]:
        return self._codec.read_all()

    def list(self, include_deleted: bool = False) -> list[TransactionRecord]:
        records = []
        for row in self._codec.read_all():
            if not has_required_fields(row):
                continue

            try:
                record = TransactionRecord.from_row(row)
            except ValueError as e:
                self._logger.warning(
                    "transaction_row_skipped",
                    transaction_id=row.get("id"),
                    error=str(e),
                )
                continue

            if record.deleted and not include_deleted:
                continue
            records.append(record)

        return records

    def get(self, transaction_id: str) -> TransactionRecord:
        target = _clean_id(transaction_id)
        for record in self.list(include_deleted=True):
            if record.id == target:
                return record
        raise NotFoundError(f"Transaction not found: {target}")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def rewrite(self, mutate: Callable[[list[dict[str, str]]], T]) -> T:
        """
        Read-modify-write the whole store under the write lock.

        ``mutate`` edits the row list in place. If it raises, nothing is
        written.
        """
        with self._locked():
            rows = self._codec.read_all()
            result = mutate(rows)
            for row in rows:
                if not (row.get("deleted") or "").strip():
                    row["deleted"] = "0"
            self._codec.write_all(STORE_COLUMNS, rows)
            return result

    def _build_record(
        self,
        transaction_id: str,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: Optional[str],
        deleted: bool = False,
        allow_initial: bool = True,
    ) -> TransactionRecord:
        """Validate caller input into a record."""
        for name, value in (("client", client), ("date", date), ("amount", amount), ("type", type)):
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"Missing required field: {name}", field=name)

        if isinstance(type, str) and not isinstance(type, TransactionType):
            type = type.strip().lower()
        if not allow_initial and type == TransactionType.INITIAL:
            raise ValidationError(
                "Type 'initial' is reserved for client bootstrap rows",
                field="type",
            )

        try:
            return TransactionRecord(
                id=transaction_id,
                client=client,
                date=date,
                amount=amount,
                type=type,
                label=label,
                deleted=deleted,
            )
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error.get("loc") else None
            raise ValidationError(f"Invalid {field}: {error['msg']}", field=field) from e

    def create(
        self,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
    ) -> str:
        draft = self._build_record(
            _PENDING_ID, client, date, amount, type, label, allow_initial=False
        )

        def append(rows: list[dict[str, str]]) -> str:
            new_id = next_id(rows)
            rows.append(draft.model_copy(update={"id": new_id}).to_row())
            return new_id

        new_id = self.rewrite(append)
        self._logger.info("transaction_created", transaction_id=new_id, client=draft.client)
        return new_id

    def upsert(
        self,
        transaction_id: Optional[str],
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
        deleted: bool = False,
    ) -> str:
        """
        Write a record under ``transaction_id``, or a fresh id when None.

        Replaces the row with that id if one exists, appends otherwise.

        Returns:
            The id used
        """
        requested = None if transaction_id is None else _clean_id(transaction_id)
        draft = self._build_record(
            requested or _PENDING_ID, client, date, amount, type, label, deleted
        )

        def write(rows: list[dict[str, str]]) -> str:
            target = requested or next_id(rows)
            row = draft.model_copy(update={"id": target}).to_row()
            index = _find(rows, target)
            if index is None:
                rows.append(row)
            else:
                rows[index] = row
            return target

        used_id = self.rewrite(write)
        self._logger.info("transaction_upserted", transaction_id=used_id)
        return used_id

    def update(
        self,
        transaction_id: str,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
    ) -> None:
        target = _clean_id(transaction_id)
        draft = self._build_record(
            target, client, date, amount, type, label, allow_initial=False
        )

        def replace(rows: list[dict[str, str]]) -> None:
            index = _find(rows, target)
            if index is None:
                raise NotFoundError(f"Transaction not found: {target}")
            # Preserve deleted status
            rows[index] = draft.model_copy(
                update={"deleted": _is_deleted(rows[index])}
            ).to_row()

        self.rewrite(replace)
        self._logger.info("transaction_updated", transaction_id=target)

    def delete(self, transaction_id: str) -> None:
        target = _clean_id(transaction_id)

        def mark_deleted(rows: list[dict[str, str]]) -> None:
            index = _find(rows, target)
            if index is None:
                raise NotFoundError(f"Transaction not found: {target}")
            rows[index]["deleted"] = "1"

        self.rewrite(mark_deleted)
        self._logger.info("transaction_deleted", transaction_id=target)

    def duplicate(self, transaction_id: str) -> str:
        """
        Copy an existing transaction into a new one with a fresh id.

        The copy is never marked deleted, even if the source is.

        Raises:
            ValidationError: If the id is empty
            NotFoundError: If no parseable record has this id
        """
        target = _clean_id(transaction_id)

        def copy(rows: list[dict[str, str]]) -> str:
            index = _find(rows, target)
            if index is None or not has_required_fields(rows[index]):
                raise NotFoundError(f"Transaction not found: {target}")
            try:
                source = TransactionRecord.from_row(rows[index])
            except ValueError as e:
                raise NotFoundError(f"Transaction {target} is unreadable: {e}") from e

            new_id = next_id(rows)
            rows.append(source.model_copy(update={"id": new_id, "deleted": False}).to_row())
            return new_id

        new_id = self.rewrite(copy)
        self._logger.info("transaction_duplicated", transaction_id=new_id, source_id=target)
        return new_id

    def append_record(
        self,
        client: str,
        date,
        amount: Amount,
        type: Union[TransactionType, str],
        label: str = "",
    ) -> str:
        """
        Append one record through the codec's append path.

        The store is read only to assign the next id; the existing rows are
        not rewritten.
        """
        draft = self._build_record(_PENDING_ID, client, date, amount, type, label)

        with self._locked():
            new_id = next_id(self._codec.read_all())
            self._codec.append_row(
                draft.model_copy(update={"id": new_id}).to_row(),
                header=STORE_COLUMNS,
            )

        self._logger.info("transaction_appended", transaction_id=new_id, client=draft.client)
        return new_id
