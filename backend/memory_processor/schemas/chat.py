from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from pydantic import Field

from memory_processor.schemas.common import APIModel

ChatRole = Literal["user", "character"]


class ChatMessageCreateRequest(APIModel):
    """Payload for appending a transcript turn."""

    role: ChatRole
    name: str = Field(default="", max_length=200)
    content: str = Field(default="")


class ChatMessageOut(APIModel):
    """Serialized transcript turn."""

    id: str
    chat_id: str
    seq: int
    role: str
    name: str
    content: str
    created_at: datetime


class ChatTranscriptResponse(APIModel):
    """Response containing a chat transcript."""

    chat_id: str
    messages: List[ChatMessageOut]


class DeleteLastMessageResponse(APIModel):
    """Response returned after pruning the newest turn."""

    deleted_message_id: str
    chat_id: str
