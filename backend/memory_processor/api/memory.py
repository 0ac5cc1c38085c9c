from __future__ import annotations

import dataclasses

from fastapi import APIRouter, Depends, Request

from memory_processor.core.config import Settings
from memory_processor.schemas.memory import (
    CycleOutcomeOut,
    GenerationStartedResponse,
    MemoryRecordOut,
    MemorySnapshotOut,
    MemoryStateResponse,
    MemoryTestResponse,
)
from memory_processor.services.orchestrator import (
    CycleOutcome,
    CycleState,
    MemoryOrchestrator,
    get_orchestrator,
)

router = APIRouter(prefix="/api/memory", tags=["memory"])


def get_app_settings(request: Request) -> Settings:
    """Dependency to access the live settings object from app state."""

    return request.app.state.settings


@router.post("/{chat_id}/generation-started", response_model=GenerationStartedResponse)
async def generation_started(
    chat_id: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
) -> GenerationStartedResponse:
    """Refresh memory before a reply is generated and return the assembled prompt."""

    outcome = await orchestrator.ensure_fresh(chat_id, settings.processor_config())
    turns = await request.app.state.transcripts.get_transcript(chat_id)
    collection = await request.app.state.record_store.load(chat_id)
    messages = request.app.state.prompt_builder.build_messages(
        settings.chat_system_prompt,
        turns,
        memory_text=outcome.memory,
        records=collection.records,
        max_history=settings.chat_max_history,
    )
    return GenerationStartedResponse(outcome=_outcome_out(outcome), messages=messages)


@router.post("/{chat_id}/test", response_model=MemoryTestResponse)
async def test_memory(
    chat_id: str,
    settings: Settings = Depends(get_app_settings),
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
) -> MemoryTestResponse:
    """Force a derivation and surface the resulting text or error verbatim."""

    outcome = await orchestrator.ensure_fresh(chat_id, settings.processor_config(), force=True)
    return MemoryTestResponse(
        ok=outcome.state == CycleState.INJECTED,
        state=outcome.state.value,
        memory=outcome.memory if outcome.state == CycleState.INJECTED else None,
        error_code=outcome.error_code or outcome.reason,
        error_message=outcome.error_message,
    )


@router.get("/{chat_id}", response_model=MemoryStateResponse)
async def get_memory_state(
    chat_id: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    orchestrator: MemoryOrchestrator = Depends(get_orchestrator),
) -> MemoryStateResponse:
    """Return the current snapshot and injected record for inspection."""

    snapshot = await orchestrator.get_snapshot(chat_id)
    collection = await request.app.state.record_store.load(chat_id)
    record = collection.find(settings.memory_record_tag)
    return MemoryStateResponse(
        chat_id=chat_id,
        refreshing=orchestrator.is_refreshing(chat_id),
        snapshot=(
            MemorySnapshotOut(
                fragments=list(snapshot.fragments),
                source_length=snapshot.source_length,
                created_at=snapshot.created_at,
            )
            if snapshot
            else None
        ),
        record=MemoryRecordOut.model_validate(record) if record else None,
    )


def _outcome_out(outcome: CycleOutcome) -> CycleOutcomeOut:
    payload = dataclasses.asdict(outcome)
    payload["state"] = outcome.state.value
    payload["path"] = [state.value for state in outcome.path]
    return CycleOutcomeOut(**payload)
