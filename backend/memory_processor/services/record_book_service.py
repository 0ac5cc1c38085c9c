from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memory_processor.memory.store_sink import PersistenceError, RecordBook
from memory_processor.repos.record_repo import RecordRepo, row_to_record

logger = logging.getLogger(__name__)


class SqlRecordBookStore:
    """Load record books from the database and write them back on save."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def load(self, book_id: str) -> RecordBook:
        """Load a book with a saver bound to this store."""

        async with self._sessionmaker() as db:
            rows = await RecordRepo(db).list_records(book_id)
        return RecordBook(
            book_id,
            records=[row_to_record(row) for row in rows],
            saver=self.save,
        )

    async def save(self, book: RecordBook) -> None:
        """Upsert every record of the book in one transaction."""

        try:
            async with self._sessionmaker() as db:
                async with db.begin():
                    repo = RecordRepo(db)
                    for record in book.records:
                        await repo.upsert_record(book.book_id, record)
        except SQLAlchemyError as exc:
            logger.error("Saving record book %s failed: %s", book.book_id, exc)
            raise PersistenceError(f"Failed to save record book '{book.book_id}'.") from exc
