from __future__ import annotations

from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memory_processor.memory.types import MemorySnapshot
from memory_processor.repos.snapshot_repo import SnapshotRepo


class SnapshotStore(Protocol):
    """Durable storage for the latest snapshot of each chat."""

    async def load(self, chat_id: str) -> Optional[MemorySnapshot]:
        """Return the stored snapshot, if any."""

    async def replace(self, chat_id: str, snapshot: MemorySnapshot) -> None:
        """Replace the stored snapshot wholesale."""


class SqlSnapshotStore:
    """Snapshot store backed by the ``memory_snapshots`` table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def load(self, chat_id: str) -> Optional[MemorySnapshot]:
        async with self._sessionmaker() as db:
            return await SnapshotRepo(db).get_snapshot(chat_id)

    async def replace(self, chat_id: str, snapshot: MemorySnapshot) -> None:
        async with self._sessionmaker() as db:
            async with db.begin():
                await SnapshotRepo(db).replace_snapshot(chat_id, snapshot)
