from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from memory_processor.schemas.common import APIModel


class CycleOutcomeOut(APIModel):
    """Serialized result of a memory refresh cycle."""

    chat_id: str
    state: str
    path: List[str]
    memory: Optional[str] = None
    transcript_length: int
    derived: bool
    joined: bool
    reason: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    record_uid: Optional[str] = None
    persisted: Optional[bool] = None


class GenerationStartedResponse(APIModel):
    """Outcome of the lifecycle trigger plus the assembled prompt."""

    outcome: CycleOutcomeOut
    messages: List[dict]


class MemoryTestResponse(APIModel):
    """Manual test result, surfaced verbatim to the operator."""

    ok: bool
    state: str
    memory: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class MemoryRecordOut(APIModel):
    """Serialized record from the host collection."""

    uid: str
    tag: str
    content: str
    keys: List[str]
    enabled: bool


class MemorySnapshotOut(APIModel):
    """Serialized memory snapshot."""

    fragments: List[str]
    source_length: int
    created_at: datetime


class MemoryStateResponse(APIModel):
    """Current snapshot and record for a chat."""

    chat_id: str
    refreshing: bool
    snapshot: Optional[MemorySnapshotOut] = None
    record: Optional[MemoryRecordOut] = None
