from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable, Iterable, Optional, Protocol

from memory_processor.memory.types import MemoryRecord

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when the record collection cannot be written to durable storage."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.code = "PERSISTENCE_FAILED"
        self.message = message


class RecordCollection(Protocol):
    """Host-owned, mutable collection of tagged records."""

    def find(self, tag: str) -> Optional[MemoryRecord]:
        """Return the record carrying ``tag``, if any."""

    def add(self, record: MemoryRecord) -> None:
        """Add a new record to the collection."""

    async def save(self) -> None:
        """Persist the collection in its current state."""


class RecordBook:
    """In-memory record collection whose persistence is delegated to a callback."""

    def __init__(
        self,
        book_id: str,
        records: Iterable[MemoryRecord] = (),
        saver: Optional[Callable[["RecordBook"], Awaitable[None]]] = None,
    ) -> None:
        self.book_id = book_id
        self._records: dict[str, MemoryRecord] = {}
        self._saver = saver
        for record in records:
            self._records[record.uid] = record

    @property
    def records(self) -> list[MemoryRecord]:
        return list(self._records.values())

    def find(self, tag: str) -> Optional[MemoryRecord]:
        for record in self._records.values():
            if record.tag == tag:
                return record
        return None

    def add(self, record: MemoryRecord) -> None:
        if record.uid in self._records:
            raise ValueError(f"Record uid already present: {record.uid}")
        self._records[record.uid] = record

    async def save(self) -> None:
        if self._saver is not None:
            await self._saver(self)


class MemoryStoreSink:
    """Upsert derived memory into the host's record collection by stable tag."""

    def __init__(self, collection: RecordCollection) -> None:
        self._collection = collection

    async def upsert(self, tag: str, content: str) -> MemoryRecord:
        """Create or update the record for ``tag`` and ask the host to save.

        Repeating the call with the same content leaves exactly one record.
        A failed save raises ``PersistenceError`` but keeps the in-memory change.
        """

        record = self._collection.find(tag)
        if record is not None:
            record.content = content
            record.enabled = True
        else:
            record = MemoryRecord(
                uid=uuid.uuid4().hex,
                tag=tag,
                content=content,
                keys=[],
                enabled=True,
            )
            self._collection.add(record)

        try:
            await self._collection.save()
        except PersistenceError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError(f"Failed to save memory record '{tag}': {exc}") from exc
        return record
