from __future__ import annotations

import json
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memory_processor.db.models import MemoryRecordRow
from memory_processor.memory.types import MemoryRecord
from memory_processor.utils.time_utils import utc_now


class RecordRepo:
    """Repository for tagged memory record persistence."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def list_records(self, book_id: str) -> list[MemoryRecordRow]:
        """Return every record stored for a book in creation order."""

        result = await self._db.execute(
            select(MemoryRecordRow)
            .where(MemoryRecordRow.book_id == book_id)
            .order_by(MemoryRecordRow.created_at.asc())
        )
        return list(result.scalars())

    async def upsert_record(self, book_id: str, record: MemoryRecord) -> MemoryRecordRow:
        """Insert or update the row backing an in-memory record."""

        existing = await self._db.get(MemoryRecordRow, record.uid)
        now = utc_now()
        keys_json = json.dumps(record.keys, ensure_ascii=False)
        if existing:
            existing.tag = record.tag
            existing.content = record.content
            existing.keys_json = keys_json
            existing.enabled = record.enabled
            existing.updated_at = now
            await self._db.flush()
            return existing

        row = MemoryRecordRow(
            uid=record.uid,
            book_id=book_id,
            tag=record.tag,
            content=record.content,
            keys_json=keys_json,
            enabled=record.enabled,
            created_at=now,
            updated_at=now,
        )
        self._db.add(row)
        await self._db.flush()
        return row


def row_to_record(row: MemoryRecordRow) -> MemoryRecord:
    """Map a persisted row back to the in-memory record type."""

    try:
        keys = json.loads(row.keys_json or "[]")
    except json.JSONDecodeError:
        keys = []
    if not isinstance(keys, list):
        keys = []
    return MemoryRecord(
        uid=row.uid,
        tag=row.tag,
        content=row.content,
        keys=[str(key) for key in keys],
        enabled=row.enabled,
    )
