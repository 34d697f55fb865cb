"""
Flat-File Audit Storage

Audit events are appended to their own delimited file next to the ledger,
one event per row, through the codec's append path. The audit file is
never rewritten. Appends share the per-path write lock, so concurrent
first writes produce a single header.

DESIGN DECISION: A failed audit write must not fail the ledger operation
that triggered it. append_event logs the failure and returns False.
"""

from pathlib import Path
from typing import Optional, Union

import structlog

from ledger_store.models.audit import AUDIT_COLUMNS, AuditEvent
from ledger_store.services.storage.csv_codec import CsvCodec
from ledger_store.services.storage.interface import (
    AuditStorageInterface,
    StorageIOError,
)
from ledger_store.services.storage.ledger import store_lock


class CsvAuditStorage(AuditStorageInterface):
    """
    Append-only audit log in a delimited file.
    """

    def __init__(
        self,
        path: Union[str, Path],
        codec: Optional[CsvCodec] = None,
        logger=None,
    ):
        self._logger = logger or structlog.get_logger(__name__)
        self._codec = codec or CsvCodec(path, logger=self._logger)
        self._lock = store_lock(self._codec.path)

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._codec.read_all():
            try:
                events.append(AuditEvent.from_row(row))
            except (KeyError, ValueError):
                continue  # Skip malformed rows
        return events

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            with self._lock:
                self._codec.append_row(event.to_row(), header=AUDIT_COLUMNS)
            return True
        except StorageIOError as e:
            # Don't raise - audit logging should not break the main flow
            self._logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            event
            for event in self._read_events()
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
