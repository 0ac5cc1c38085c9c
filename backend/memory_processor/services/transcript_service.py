from __future__ import annotations

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memory_processor.db.models import ChatMessage
from memory_processor.memory.types import SpeakerRole, TranscriptTurn
from memory_processor.repos.message_repo import MessageRepo


class TranscriptAccessor(Protocol):
    """Host-provided read access to a chat transcript."""

    async def get_transcript(self, chat_id: str) -> list[TranscriptTurn]:
        """Return every turn of the chat, oldest first."""


class DbTranscriptAccessor:
    """Read transcripts from the host's chat message table."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_transcript(self, chat_id: str) -> list[TranscriptTurn]:
        async with self._sessionmaker() as db:
            messages = await MessageRepo(db).list_messages(chat_id)
        return [message_to_turn(message) for message in messages]


def message_to_turn(message: ChatMessage) -> TranscriptTurn:
    """Map a stored chat message to a transcript turn."""

    role = SpeakerRole.INITIATOR if message.role == SpeakerRole.INITIATOR.value else SpeakerRole.RESPONDER
    return TranscriptTurn(
        role=role,
        name=message.name or "",
        text=message.content or "",
        position=message.seq,
    )
