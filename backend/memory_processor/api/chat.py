from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from memory_processor.core.security import sanitize_text
from memory_processor.db.session import get_db
from memory_processor.repos.message_repo import MessageRepo
from memory_processor.schemas.chat import (
    ChatMessageCreateRequest,
    ChatMessageOut,
    ChatTranscriptResponse,
    DeleteLastMessageResponse,
)

MAX_MESSAGE_LEN = 20000
MAX_NAME_LEN = 200

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/{chat_id}/messages", response_model=ChatMessageOut)
async def append_message(
    chat_id: str,
    payload: ChatMessageCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ChatMessageOut:
    """Append one turn to the chat transcript."""

    async with db.begin():
        message = await MessageRepo(db).add_message(
            message_id=uuid.uuid4().hex,
            chat_id=chat_id,
            role=payload.role,
            name=sanitize_text(payload.name, MAX_NAME_LEN),
            content=payload.content[:MAX_MESSAGE_LEN],
        )
    return ChatMessageOut.model_validate(message)


@router.get("/{chat_id}/messages", response_model=ChatTranscriptResponse)
async def list_messages(
    chat_id: str,
    db: AsyncSession = Depends(get_db),
) -> ChatTranscriptResponse:
    """Return the full chat transcript, oldest first."""

    messages = await MessageRepo(db).list_messages(chat_id)
    return ChatTranscriptResponse(
        chat_id=chat_id,
        messages=[ChatMessageOut.model_validate(message) for message in messages],
    )


@router.delete("/{chat_id}/messages/last", response_model=DeleteLastMessageResponse)
async def delete_last_message(
    chat_id: str,
    db: AsyncSession = Depends(get_db),
) -> DeleteLastMessageResponse:
    """Prune the newest turn of the transcript."""

    async with db.begin():
        deleted = await MessageRepo(db).delete_last_message(chat_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat has no messages")
    return DeleteLastMessageResponse(deleted_message_id=deleted.id, chat_id=chat_id)
