"""Append-only audit log of moderation decisions."""

import threading
from typing import Any

from pydantic import TypeAdapter

from gatekeeper.lib.models import AuditLogEntry

_ENTRIES = TypeAdapter(list[AuditLogEntry])


def load_audit_export(data: str | bytes) -> list[AuditLogEntry]:
    """Parse a document produced by AuditLog.export()."""
    return _ENTRIES.validate_json(data)


class AuditLog:
    """
    Thread-safe append-only log.

    Entries are frozen models; `sequence` records creation order. Nested
    results are copied in and out so callers never share stored objects.
    """

    def __init__(self):
        self._entries: list[AuditLogEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def record(self, **fields: Any) -> AuditLogEntry:
        """Create and append an entry, assigning the next sequence number."""
        with self._lock:
            entry = AuditLogEntry(sequence=len(self._entries) + 1, **fields).model_copy(
                deep=True
            )
            self._entries.append(entry)
        return entry.model_copy(deep=True)

    def get(self, limit: int | None = None) -> list[AuditLogEntry]:
        """Entries newest first."""
        with self._lock:
            newest_first = list(reversed(self._entries))
        if limit is not None:
            newest_first = newest_first[:limit]
        return [e.model_copy(deep=True) for e in newest_first]

    def entries(self) -> list[AuditLogEntry]:
        """Entries in creation order."""
        with self._lock:
            return [e.model_copy(deep=True) for e in self._entries]

    def export(self) -> str:
        """JSON document of all entries in creation order."""
        return _ENTRIES.dump_json(self.entries(), indent=2).decode()
