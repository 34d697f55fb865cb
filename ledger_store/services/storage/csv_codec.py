"""
Delimited File Codec

DESIGN DECISION: The whole store is one comma-delimited text file.
Reads parse the entire file; writes replace the entire file.

A rewrite never touches the canonical path until the new content is
complete: rows go to a temporary file in the same directory, the file is
flushed and synced, and only then renamed over the target. Rename is the
only state change a reader can observe, so a reader sees either the old
file or the new one, never a partial write.

TRADEOFFS:
- Every write costs O(store size) (fine for a personal ledger)
- append_row skips the rewrite discipline; a crash mid-append can leave a
  truncated last line, which read_all drops via the field-count check
"""

import csv
import os
import stat
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ledger_store.services.storage.interface import StorageIOError


class StoreDialect(csv.Dialect):
    """One delimiter, one quote and one escape character for the whole store."""
    delimiter = ","
    quotechar = '"'
    escapechar = "\\"
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL
    strict = False


class CsvCodec:
    """
    Reads and writes field-named rows to a single delimited file.

    Rows are plain ``dict[str, str]`` keyed by the header's field names.
    """

    def __init__(
        self,
        path: Union[str, Path],
        logger=None,
    ):
        self.path = Path(path)
        self._logger = logger or structlog.get_logger(__name__)

    def _read(self) -> tuple[list[str], list[dict[str, str]]]:
        try:
            with open(self.path, "r", newline="", encoding="utf-8") as handle:
                reader = csv.reader(handle, dialect=StoreDialect)
                header = next(reader, [])
                if not header:
                    return [], []

                rows = []
                skipped = 0
                for fields in reader:
                    # Only keep rows matching the header structure
                    if len(fields) != len(header):
                        skipped += 1
                        continue
                    rows.append(dict(zip(header, fields)))
        except FileNotFoundError:
            return [], []
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            self._logger.error("store_read_failed", path=str(self.path), error=str(e))
            raise StorageIOError(f"Failed to read {self.path}: {e}") from e

        if skipped:
            self._logger.debug(
                "store_rows_discarded",
                path=str(self.path),
                count=skipped,
            )
        return header, rows

    def read_all(self) -> list[dict[str, str]]:
        """
        Parse every data row of the file.

        Rows whose field count differs from the header's are dropped.

        Returns:
            Rows in file order; empty if the file is missing or empty
        """
        _, rows = self._read()
        return rows

    def read_header(self) -> list[str]:
        """Field names from the first line, or [] for a missing/empty file."""
        try:
            with open(self.path, "r", newline="", encoding="utf-8") as handle:
                return next(csv.reader(handle, dialect=StoreDialect), [])
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise StorageIOError(f"Failed to read {self.path}: {e}") from e

    def write_all(
        self,
        header: list[str],
        rows: Iterable[dict[str, str]],
    ) -> None:
        """
        Atomically replace the file with ``header`` and ``rows``.

        Missing keys are written as empty fields; extra keys are ignored.

        Raises:
            StorageIOError: If any step fails. The original file is left
                untouched and the temporary file is removed.
        """
        if self.path.exists() and not os.access(self.path, os.W_OK):
            self._logger.error("store_not_writable", path=str(self.path))
            raise StorageIOError(f"Destination file is not writable: {self.path}")

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=directory,
            )
        except OSError as e:
            self._logger.error("store_tempfile_failed", path=str(self.path), error=str(e))
            raise StorageIOError(f"Failed to create temporary file in {directory}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle, dialect=StoreDialect)
                writer.writerow(header)
                for row in rows:
                    writer.writerow([row.get(column, "") for column in header])
                handle.flush()
                os.fsync(handle.fileno())

            self._copy_mode(tmp_path)
            self._replace(tmp_path, self.path)
        except (OSError, csv.Error, UnicodeEncodeError) as e:
            self._logger.error("store_rewrite_failed", path=str(self.path), error=str(e))
            raise StorageIOError(f"Failed to write {self.path}: {e}") from e
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as e:
                    self._logger.warning(
                        "store_tempfile_cleanup_failed",
                        path=str(tmp_path),
                        error=str(e),
                    )

    def append_row(
        self,
        row: dict[str, str],
        header: Optional[list[str]] = None,
    ) -> None:
        """
        Append one row without reading the rest of the file.

        If the file is absent or empty, ``header`` (default: the row's keys)
        is written first. Otherwise fields follow the file's own header.

        Raises:
            StorageIOError: If the file cannot be opened or written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            existing_header = self.read_header()
            columns = existing_header or list(header or row.keys())
            needs_newline = bool(existing_header) and not self._ends_with_newline()

            with open(self.path, "a", newline="", encoding="utf-8") as handle:
                if needs_newline:
                    handle.write(StoreDialect.lineterminator)
                writer = csv.writer(handle, dialect=StoreDialect)
                if not existing_header:
                    writer.writerow(columns)
                writer.writerow([row.get(column, "") for column in columns])
        except (OSError, csv.Error, UnicodeEncodeError) as e:
            self._logger.error("store_append_failed", path=str(self.path), error=str(e))
            raise StorageIOError(f"Failed to append to {self.path}: {e}") from e

    def ensure_exists(self, header: list[str]) -> None:
        """Create a header-only file if the target does not exist yet."""
        if not self.path.exists():
            self.write_all(header, [])
            self._logger.info("store_created", path=str(self.path))

    def _ends_with_newline(self) -> bool:
        with open(self.path, "rb") as handle:
            handle.seek(0, os.SEEK_END)
            if handle.tell() == 0:
                return True
            handle.seek(-1, os.SEEK_END)
            return handle.read(1) in (b"\n", b"\r")

    def _copy_mode(self, tmp_path: Path) -> None:
        """Give the replacement the permissions of the file it replaces."""
        try:
            mode = stat.S_IMODE(os.stat(self.path).st_mode)
        except FileNotFoundError:
            mode = 0o644
        os.chmod(tmp_path, mode)

    @retry(
        retry=retry_if_exception_type(PermissionError),
        stop=stop_after_attempt(3),
        wait=wait_fixed(0.05),
        reraise=True,
    )
    def _replace(self, source: Path, target: Path) -> None:
        # Retried only on PermissionError: a reader holding the file open
        # blocks the rename on some platforms.
        os.replace(source, target)
