from __future__ import annotations

import json
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from memory_processor.db.models import MemorySnapshotRow
from memory_processor.memory.types import MemorySnapshot


class SnapshotRepo:
    """Repository for per-chat memory snapshot persistence."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_snapshot(self, chat_id: str) -> Optional[MemorySnapshot]:
        """Load the stored snapshot for a chat."""

        row = await self._db.get(MemorySnapshotRow, chat_id)
        if not row:
            return None
        try:
            fragments = json.loads(row.fragments_json)
        except json.JSONDecodeError:
            return None
        if not isinstance(fragments, list):
            return None
        return MemorySnapshot(
            fragments=tuple(str(item) for item in fragments),
            source_length=row.source_length,
            created_at=row.created_at,
        )

    async def replace_snapshot(self, chat_id: str, snapshot: MemorySnapshot) -> MemorySnapshotRow:
        """Replace the stored snapshot wholesale."""

        fragments_json = json.dumps(list(snapshot.fragments), ensure_ascii=False)
        row = await self._db.get(MemorySnapshotRow, chat_id)
        if row:
            row.fragments_json = fragments_json
            row.source_length = snapshot.source_length
            row.created_at = snapshot.created_at
            await self._db.flush()
            return row

        row = MemorySnapshotRow(
            chat_id=chat_id,
            fragments_json=fragments_json,
            source_length=snapshot.source_length,
            created_at=snapshot.created_at,
        )
        self._db.add(row)
        await self._db.flush()
        return row
