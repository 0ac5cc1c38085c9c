from __future__ import annotations

import dataclasses
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Optional, Protocol

from fastapi import Request

from memory_processor.core.config import ProcessorConfig
from memory_processor.memory.cache_policy import should_recompute
from memory_processor.memory.formatter import format_transcript
from memory_processor.memory.store_sink import MemoryStoreSink, PersistenceError, RecordCollection
from memory_processor.memory.types import MemorySnapshot
from memory_processor.providers.base import EndpointConfig, SummarizationError
from memory_processor.providers.summarization_client import SummarizationClient
from memory_processor.services.snapshot_store import SnapshotStore
from memory_processor.services.transcript_service import TranscriptAccessor
from memory_processor.utils.single_flight import SingleFlight

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    """States a memory refresh cycle moves through."""

    IDLE = "idle"
    EVALUATING = "evaluating"
    CACHED = "cached"
    DERIVING = "deriving"
    INJECTED = "injected"
    FAILED = "failed"


@dataclass
class CycleOutcome:
    """Result of one ``ensure_fresh`` call."""

    chat_id: str
    state: CycleState
    path: list[CycleState] = field(default_factory=list)
    memory: Optional[str] = None
    transcript_length: int = 0
    derived: bool = False
    joined: bool = False
    reason: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    record_uid: Optional[str] = None
    persisted: Optional[bool] = None


class RecordCollectionLoader(Protocol):
    """Loads the host record collection a chat's memory is written into."""

    async def load(self, book_id: str) -> RecordCollection:
        """Return the mutable collection for ``book_id``."""


class StatusNotifier(Protocol):
    def broadcast(self, chat_id: str, payload: dict) -> Awaitable[None]:
        """Push an operator-visible status payload."""


def endpoint_from_config(config: ProcessorConfig) -> EndpointConfig:
    """Build the outbound endpoint settings for a cycle."""

    return EndpointConfig(
        url=config.api_url,
        model=config.model,
        api_key=config.api_key,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
        timeout_sec=config.timeout_sec,
    )


class MemoryOrchestrator:
    """Keep each chat's derived memory fresh and injected into the record store.

    One cycle runs per chat at a time. A trigger that arrives while a cycle
    for the same chat is in flight waits for that cycle and receives its
    outcome instead of starting a second outbound call.

    Snapshots are cached in process for the most recently used chats only;
    older entries are reloaded from the snapshot store on demand.
    """

    def __init__(
        self,
        transcripts: TranscriptAccessor,
        client: SummarizationClient,
        records: RecordCollectionLoader,
        snapshot_store: Optional[SnapshotStore] = None,
        notifier: Optional[StatusNotifier] = None,
        max_cached_snapshots: int = 512,
    ) -> None:
        self._transcripts = transcripts
        self._client = client
        self._records = records
        self._snapshot_store = snapshot_store
        self._notifier = notifier
        self._snapshots: OrderedDict[str, MemorySnapshot] = OrderedDict()
        self._max_cached_snapshots = max(1, max_cached_snapshots)
        self._flights: SingleFlight[CycleOutcome] = SingleFlight()

    def set_client(self, client: SummarizationClient) -> None:
        """Override the summarization client (useful for tests)."""

        self._client = client

    async def ensure_fresh(
        self, chat_id: str, config: ProcessorConfig, *, force: bool = False
    ) -> CycleOutcome:
        """Run one refresh cycle for a chat, sharing any cycle already in flight."""

        outcome, joined = await self._flights.run(
            chat_id, lambda: self._run_cycle(chat_id, config, force)
        )
        if joined:
            logger.info("Chat %s joined an in-flight memory cycle", chat_id)
            return dataclasses.replace(outcome, joined=True, path=list(outcome.path))
        return outcome

    def is_refreshing(self, chat_id: str) -> bool:
        """Return True while a cycle for the chat is in flight."""

        return self._flights.in_flight(chat_id)

    async def get_snapshot(self, chat_id: str) -> Optional[MemorySnapshot]:
        """Return the authoritative snapshot for a chat, loading it if needed."""

        snapshot = self._snapshots.get(chat_id)
        if snapshot is not None:
            self._snapshots.move_to_end(chat_id)
            return snapshot
        if self._snapshot_store is None:
            return None
        try:
            snapshot = await self._snapshot_store.load(chat_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Loading memory snapshot for chat %s failed: %s", chat_id, exc)
            return None
        if snapshot is not None:
            self._remember(chat_id, snapshot)
        return snapshot

    async def _run_cycle(
        self, chat_id: str, config: ProcessorConfig, force: bool
    ) -> CycleOutcome:
        if not config.enabled:
            return CycleOutcome(chat_id, CycleState.IDLE, [CycleState.IDLE], reason="disabled")

        path = [CycleState.EVALUATING]
        turns = await self._transcripts.get_transcript(chat_id)
        length = len(turns)
        snapshot = await self.get_snapshot(chat_id)
        previous_text = snapshot.text if snapshot else None

        if length == 0:
            return self._idle(chat_id, path, length, previous_text, "empty_transcript")

        recompute = should_recompute(
            length,
            snapshot.source_length if snapshot else 0,
            snapshot is not None,
            config.cache_threshold,
            force,
        )
        if recompute and not force and not config.auto_update:
            if snapshot is None:
                return self._idle(chat_id, path, length, None, "auto_update_disabled")
            recompute = False

        if not recompute and snapshot is not None:
            path.append(CycleState.CACHED)
            logger.info(
                "Memory cache hit for chat %s (length %s, processed at %s)",
                chat_id,
                length,
                snapshot.source_length,
            )
            return await self._inject(chat_id, config, snapshot, path, length, derived=False)

        path.append(CycleState.DERIVING)
        blob = format_transcript(turns, config.max_history_messages)
        if not blob:
            return self._idle(chat_id, path, length, previous_text, "empty_transcript")

        await self._notify(chat_id, {"event": "memory_state", "state": CycleState.DERIVING.value})
        try:
            text = await self._client.derive(config.prompt, blob, endpoint_from_config(config))
        except SummarizationError as exc:
            path.append(CycleState.FAILED)
            logger.warning(
                "Memory derivation for chat %s failed [%s]: %s", chat_id, exc.code, exc.message
            )
            await self._notify(chat_id, {"event": "error", "code": exc.code, "message": exc.message})
            return CycleOutcome(
                chat_id,
                CycleState.FAILED,
                path,
                memory=previous_text,
                transcript_length=length,
                error_code=exc.code,
                error_message=exc.message,
            )

        fresh = MemorySnapshot.from_text(text, source_length=length)
        self._remember(chat_id, fresh)
        await self._store_snapshot(chat_id, fresh)
        logger.info(
            "Derived memory for chat %s: %s fragment(s) at length %s",
            chat_id,
            len(fresh.fragments),
            length,
        )
        return await self._inject(chat_id, config, fresh, path, length, derived=True)

    async def _inject(
        self,
        chat_id: str,
        config: ProcessorConfig,
        snapshot: MemorySnapshot,
        path: list[CycleState],
        length: int,
        *,
        derived: bool,
    ) -> CycleOutcome:
        outcome = CycleOutcome(
            chat_id,
            CycleState.INJECTED,
            path,
            memory=snapshot.text,
            transcript_length=length,
            derived=derived,
        )
        if config.inject_to_store:
            try:
                collection = await self._records.load(chat_id)
                record = await MemoryStoreSink(collection).upsert(config.record_tag, snapshot.text)
                outcome.record_uid = record.uid
                outcome.persisted = True
            except PersistenceError as exc:
                logger.error("Memory record for chat %s was not persisted: %s", chat_id, exc.message)
                outcome.persisted = False
            except Exception as exc:  # noqa: BLE001
                logger.error("Memory record for chat %s could not be loaded: %s", chat_id, exc)
                outcome.persisted = False
        path.append(CycleState.INJECTED)
        await self._notify(
            chat_id,
            {
                "event": "memory_state",
                "state": CycleState.INJECTED.value,
                "derived": derived,
                "transcript_length": length,
            },
        )
        return outcome

    def _remember(self, chat_id: str, snapshot: MemorySnapshot) -> None:
        self._snapshots[chat_id] = snapshot
        self._snapshots.move_to_end(chat_id)
        while len(self._snapshots) > self._max_cached_snapshots:
            self._snapshots.popitem(last=False)

    async def _store_snapshot(self, chat_id: str, snapshot: MemorySnapshot) -> None:
        if self._snapshot_store is None:
            return
        try:
            await self._snapshot_store.replace(chat_id, snapshot)
        except Exception as exc:  # noqa: BLE001
            logger.error("Persisting memory snapshot for chat %s failed: %s", chat_id, exc)

    def _idle(
        self,
        chat_id: str,
        path: list[CycleState],
        length: int,
        memory: Optional[str],
        reason: str,
    ) -> CycleOutcome:
        path.append(CycleState.IDLE)
        logger.info("Memory cycle for chat %s skipped: %s", chat_id, reason)
        return CycleOutcome(
            chat_id,
            CycleState.IDLE,
            path,
            memory=memory,
            transcript_length=length,
            reason=reason,
        )

    async def _notify(self, chat_id: str, payload: dict[str, Any]) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.broadcast(chat_id, payload)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Status broadcast for chat %s failed: %s", chat_id, exc)


def get_orchestrator(request: Request) -> MemoryOrchestrator:
    """Dependency to access the app memory orchestrator."""

    return request.app.state.orchestrator
