"""Tests for the flat-file transaction ledger."""

import threading
import time
from decimal import Decimal

import pytest

from ledger_store.models.transaction import TransactionType
from ledger_store.services.storage import (
    LockTimeoutError,
    NotFoundError,
    StorageIOError,
    TransactionLedger,
    ValidationError,
    next_id,
    store_lock,
)
from ledger_store.services.storage import csv_codec


class TestStoreSetup:
    """Tests for store creation."""

    def test_missing_store_created_with_header(self, ledger, store_path):
        assert store_path.read_text(encoding="utf-8") == "id,client,date,amount,type,label,deleted\n"
        assert ledger.list() == []

    def test_existing_store_left_alone(self, store_path):
        store_path.write_text(
            "id,client,date,amount,type,label,deleted\n1,Alice,2024-01-05,100,debit,rent,0\n",
            encoding="utf-8",
        )
        ledger = TransactionLedger(store_path)
        assert [record.id for record in ledger.list()] == ["1"]


class TestIdAssignment:
    """Tests for store-assigned ids."""

    def test_ids_are_monotonic_from_one(self, ledger):
        ids = [
            ledger.create("Client", "2024-01-01", n, "debit")
            for n in range(1, 6)
        ]
        assert ids == ["1", "2", "3", "4", "5"]

    def test_ids_not_reused_after_delete(self, ledger):
        ledger.create("A", "2024-01-01", 1, "debit")
        second = ledger.create("A", "2024-01-01", 2, "debit")
        ledger.delete(second)
        assert ledger.create("A", "2024-01-01", 3, "debit") == "3"

    def test_non_numeric_ids_ignored(self, ledger):
        ledger.upsert("abc", "A", "2024-01-01", 1, "debit")
        ledger.upsert("7", "A", "2024-01-01", 1, "debit")
        assert ledger.create("A", "2024-01-01", 1, "debit") == "8"

    def test_next_id_helper(self):
        assert next_id([]) == "1"
        assert next_id([{"id": "2"}, {"id": "x"}, {"id": "10"}, {}]) == "11"


class TestList:
    """Tests for listing transactions."""

    def test_amount_is_numeric_and_label_defaults(self, ledger):
        ledger.create("Alice", "2024-01-05", "100", "debit")
        record = ledger.list()[0]
        assert record.amount == Decimal("100")
        assert record.label == ""
        assert record.type == TransactionType.DEBIT

    def test_file_order_kept(self, ledger):
        ledger.create("Zed", "2024-03-01", 1, "debit")
        ledger.create("Amy", "2024-01-01", 1, "debit")
        assert [record.client for record in ledger.list()] == ["Zed", "Amy"]

    def test_rows_missing_required_fields_dropped(self, ledger, store_path):
        store_path.write_text(
            "id,client,date,amount,type,label,deleted\n"
            "1,Alice,2024-01-05,100,debit,rent,0\n"
            ",Bootstrap,2024-01-05,0,initial,,0\n"
            "3,,2024-01-05,5,debit,,0\n",
            encoding="utf-8",
        )
        assert [record.id for record in ledger.list()] == ["1"]

    def test_unparseable_rows_skipped_with_warning(self, ledger, store_path, logger):
        store_path.write_text(
            "id,client,date,amount,type,label,deleted\n"
            "1,Alice,2024-01-05,lots,debit,,0\n"
            "2,Bob,2024-01-05,5,refund,,0\n"
            "3,Carol,2024-01-05,5,credit,,0\n",
            encoding="utf-8",
        )
        assert [record.id for record in ledger.list()] == ["3"]
        warned = [
            call for call in logger.warning.call_args_list
            if call.args == ("transaction_row_skipped",)
        ]
        assert len(warned) == 2

    def test_legacy_store_without_deleted_column(self, store_path):
        store_path.write_text(
            "id,client,date,amount,type,label\n1,Alice,2024-01-05,100,debit,rent\n",
            encoding="utf-8",
        )
        ledger = TransactionLedger(store_path)
        assert ledger.list()[0].deleted is False

        ledger.delete("1")
        assert store_path.read_text(encoding="utf-8").splitlines() == [
            "id,client,date,amount,type,label,deleted",
            "1,Alice,2024-01-05,100,debit,rent,1",
        ]


class TestSoftDelete:
    """Tests for soft-delete visibility."""

    def test_deleted_hidden_unless_requested(self, ledger):
        kept = ledger.create("Alice", "2024-01-05", 100, "debit")
        gone = ledger.create("Bob", "2024-01-06", 50, "credit")
        ledger.delete(gone)

        assert [record.id for record in ledger.list()] == [kept]
        everything = ledger.list(include_deleted=True)
        assert [record.id for record in everything] == [kept, gone]
        assert everything[1].deleted is True

    def test_delete_is_a_flag_not_a_removal(self, ledger, store_path):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit")
        ledger.delete(tx_id)
        assert store_path.read_text(encoding="utf-8").splitlines()[1] == "1,Alice,2024-01-05,100,debit,,1"

    def test_delete_requires_id(self, ledger):
        with pytest.raises(ValidationError):
            ledger.delete("")
        with pytest.raises(ValidationError):
            ledger.delete(None)

    def test_delete_twice_succeeds(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit")
        ledger.delete(tx_id)
        ledger.delete(tx_id)
        assert ledger.get(tx_id).deleted is True


class TestUpdate:
    """Tests for update and upsert."""

    def test_update_replaces_fields(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit", "rent")
        ledger.update(tx_id, "Alice", "2024-02-05", 120, "credit", "refund")

        record = ledger.get(tx_id)
        assert record.date == "2024-02-05"
        assert record.amount == Decimal("120")
        assert record.type == TransactionType.CREDIT
        assert record.label == "refund"

    def test_update_preserves_deleted_flag(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit")
        ledger.delete(tx_id)
        ledger.update(tx_id, "Alice", "2024-01-05", 200, "debit")

        assert ledger.get(tx_id).deleted is True
        assert ledger.list() == []

    def test_update_rejects_missing_fields(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit")
        with pytest.raises(ValidationError) as excinfo:
            ledger.update(tx_id, "  ", "2024-01-05", 100, "debit")
        assert excinfo.value.field == "client"

    def test_upsert_with_new_id_appends(self, ledger):
        assert ledger.upsert("42", "Alice", "2024-01-05", 1, "debit") == "42"
        assert ledger.upsert(None, "Bob", "2024-01-05", 1, "credit") == "43"

    def test_upsert_existing_id_replaces(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit")
        ledger.upsert(tx_id, "Alice", "2024-01-05", 1, "debit", deleted=True)

        records = ledger.list(include_deleted=True)
        assert len(records) == 1
        assert records[0].deleted is True


class TestValidation:
    """Tests for input validation on create."""

    @pytest.mark.parametrize("field,args", [
        ("client", ("", "2024-01-05", 1, "debit")),
        ("date", ("Alice", " ", 1, "debit")),
        ("amount", ("Alice", "2024-01-05", "", "debit")),
        ("type", ("Alice", "2024-01-05", 1, None)),
    ])
    def test_missing_required_field(self, ledger, field, args):
        with pytest.raises(ValidationError) as excinfo:
            ledger.create(*args)
        assert excinfo.value.field == field
        assert ledger.list(include_deleted=True) == []

    def test_unknown_type_rejected(self, ledger):
        with pytest.raises(ValidationError) as excinfo:
            ledger.create("Alice", "2024-01-05", 1, "transfer")
        assert excinfo.value.field == "type"

    def test_initial_type_reserved_for_bootstrap(self, ledger):
        with pytest.raises(ValidationError):
            ledger.create("Alice", "2024-01-05", 0, "initial")

    def test_bad_amount_rejected(self, ledger):
        with pytest.raises(ValidationError) as excinfo:
            ledger.create("Alice", "2024-01-05", "12abc", "debit")
        assert excinfo.value.field == "amount"

    def test_type_case_insensitive(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", 1, "DEBIT")
        assert ledger.get(tx_id).type == TransactionType.DEBIT

    def test_sign_not_enforced(self, ledger):
        tx_id = ledger.create("Alice", "2024-01-05", "-25.50", "credit")
        assert ledger.get(tx_id).amount == Decimal("-25.50")


class TestNotFound:
    """Tests for operations on unknown ids."""

    def test_update_unknown_id(self, ledger, store_path):
        ledger.create("Alice", "2024-01-05", 100, "debit")
        before = store_path.read_bytes()

        with pytest.raises(NotFoundError):
            ledger.update("999", "Alice", "2024-01-05", 1, "debit")
        assert store_path.read_bytes() == before

    def test_delete_unknown_id(self, ledger, store_path):
        ledger.create("Alice", "2024-01-05", 100, "debit")
        before = store_path.read_bytes()

        with pytest.raises(NotFoundError):
            ledger.delete("999")
        assert store_path.read_bytes() == before

    def test_get_unknown_id(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.get("999")


class TestDuplicate:
    """Tests for duplicating a transaction."""

    def test_duplicate_copies_fields(self, ledger):
        source = ledger.create("Alice", "2024-01-05", "99.90", "debit", "rent")
        copy_id = ledger.duplicate(source)

        assert copy_id == "2"
        copy = ledger.get(copy_id)
        original = ledger.get(source)
        assert copy.model_dump(exclude={"id"}) == original.model_dump(exclude={"id"})

    def test_duplicate_of_deleted_is_live(self, ledger):
        source = ledger.create("Alice", "2024-01-05", 10, "debit")
        ledger.delete(source)
        copy_id = ledger.duplicate(source)
        assert ledger.get(copy_id).deleted is False

    def test_duplicate_unknown(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.duplicate("5")


class TestAppendRecord:
    """Tests for the append fast path."""

    def test_append_assigns_next_id(self, ledger, store_path):
        ledger.create("Alice", "2024-01-05", 100, "debit")
        new_id = ledger.append_record("Bob", "2024-01-06", 0, "initial")

        assert new_id == "2"
        assert store_path.read_text(encoding="utf-8").splitlines()[-1] == "2,Bob,2024-01-06,0,initial,,0"


class TestFailures:
    """Tests for IO failures and locking."""

    def test_rewrite_failure_keeps_store(self, ledger, store_path, monkeypatch):
        ledger.create("Alice", "2024-01-05", 100, "debit")
        before = store_path.read_bytes()

        def fail_replace(src, dst):
            raise OSError("simulated rename failure")

        monkeypatch.setattr(csv_codec.os, "replace", fail_replace)

        with pytest.raises(StorageIOError):
            ledger.create("Bob", "2024-01-06", 50, "credit")
        with pytest.raises(StorageIOError):
            ledger.delete("1")

        assert store_path.read_bytes() == before

    def test_lock_timeout(self, store_path):
        ledger = TransactionLedger(store_path, lock_timeout=0.05)
        held = threading.Event()
        release = threading.Event()

        def hold_lock():
            with store_lock(store_path):
                held.set()
                release.wait(5)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        try:
            held.wait(5)
            with pytest.raises(LockTimeoutError):
                ledger.create("Alice", "2024-01-05", 1, "debit")
        finally:
            release.set()
            holder.join()

        assert ledger.list() == []

    def test_zero_lock_timeout_fails_fast(self, store_path):
        """Test that a zero timeout does not fall back to the default wait."""
        ledger = TransactionLedger(store_path, lock_timeout=0)
        held = threading.Event()
        release = threading.Event()

        def hold_lock():
            with store_lock(store_path):
                held.set()
                release.wait(15)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        try:
            held.wait(5)
            started = time.monotonic()
            with pytest.raises(LockTimeoutError):
                ledger.delete("1")
            assert time.monotonic() - started < 2
        finally:
            release.set()
            holder.join()

    def test_lock_shared_across_instances(self, store_path):
        assert store_lock(store_path) is store_lock(str(store_path))

    def test_concurrent_creates_lose_nothing(self, store_path):
        """Test that parallel writers on separate ledger objects never lose an update."""
        workers, per_worker = 8, 10
        errors = []

        def work(worker):
            ledger = TransactionLedger(store_path)
            for n in range(per_worker):
                try:
                    ledger.create(f"client-{worker}", "2024-01-01", n, "debit")
                except Exception as e:  # surfaced through the errors list
                    errors.append(e)

        threads = [threading.Thread(target=work, args=(w,)) for w in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        ids = [record.id for record in TransactionLedger(store_path).list()]
        assert sorted(ids, key=int) == [str(n) for n in range(1, workers * per_worker + 1)]


class TestLogging:
    """Tests for the injected logger."""

    def test_mutations_are_logged(self, ledger, logger):
        tx_id = ledger.create("Alice", "2024-01-05", 100, "debit")
        ledger.delete(tx_id)

        logger.info.assert_any_call("transaction_created", transaction_id="1", client="Alice")
        logger.info.assert_any_call("transaction_deleted", transaction_id="1")


class TestScenario:
    """End-to-end scenario on an empty store."""

    def test_create_create_delete(self, ledger):
        assert ledger.create("Alice", "2024-01-05", 100, "debit", "rent") == "1"
        assert ledger.create("Bob", "2024-01-06", 50, "credit", "") == "2"
        ledger.delete("1")

        live = ledger.list(include_deleted=False)
        assert len(live) == 1
        assert live[0].client == "Bob"

        everything = ledger.list(include_deleted=True)
        assert [(r.client, r.deleted) for r in everything] == [("Alice", True), ("Bob", False)]
