from __future__ import annotations

from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memory_processor.db.models import ChatMessage
from memory_processor.utils.time_utils import utc_now


class MessageRepo:
    """Repository for chat transcript persistence."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _next_seq(self, chat_id: str) -> int:
        result = await self._db.execute(
            select(func.max(ChatMessage.seq)).where(ChatMessage.chat_id == chat_id)
        )
        max_seq = result.scalar_one() or 0
        return int(max_seq) + 1

    async def add_message(
        self,
        message_id: str,
        chat_id: str,
        role: str,
        name: str,
        content: str,
    ) -> ChatMessage:
        """Append a turn with the next sequence number for the chat."""

        for attempt in range(3):
            seq = await self._next_seq(chat_id)
            message = ChatMessage(
                id=message_id,
                chat_id=chat_id,
                seq=seq,
                role=role,
                name=name,
                content=content,
                created_at=utc_now(),
            )
            try:
                # Savepoint keeps the caller's transaction usable after a collision.
                async with self._db.begin_nested():
                    self._db.add(message)
                    await self._db.flush()
                return message
            except IntegrityError:
                if attempt == 2:
                    raise
        raise RuntimeError("Failed to insert chat message after retries")

    async def list_messages(self, chat_id: str) -> List[ChatMessage]:
        """Return every turn of a chat in ascending order."""

        result = await self._db.execute(
            select(ChatMessage)
            .where(ChatMessage.chat_id == chat_id)
            .order_by(ChatMessage.seq.asc())
        )
        return list(result.scalars())

    async def get_last_message(self, chat_id: str) -> Optional[ChatMessage]:
        """Fetch the newest turn of a chat."""

        result = await self._db.execute(
            select(ChatMessage)
            .where(ChatMessage.chat_id == chat_id)
            .order_by(ChatMessage.seq.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def delete_last_message(self, chat_id: str) -> Optional[ChatMessage]:
        """Delete and return the newest turn of a chat."""

        message = await self.get_last_message(chat_id)
        if not message:
            return None
        await self._db.execute(delete(ChatMessage).where(ChatMessage.id == message.id))
        await self._db.flush()
        return message
