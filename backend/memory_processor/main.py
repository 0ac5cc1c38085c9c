from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memory_processor.api import chat as chat_api
from memory_processor.api import memory as memory_api
from memory_processor.api import websocket as websocket_api
from memory_processor.core.config import get_settings
from memory_processor.core.logging import setup_logging
from memory_processor.db.base import create_engine, create_sessionmaker, init_db
from memory_processor.providers.summarization_client import SummarizationClient
from memory_processor.services.orchestrator import MemoryOrchestrator
from memory_processor.services.prompt_builder import PromptBuilder
from memory_processor.services.record_book_service import SqlRecordBookStore
from memory_processor.services.snapshot_store import SqlSnapshotStore
from memory_processor.services.transcript_service import DbTranscriptAccessor


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    setup_logging(settings.log_level)

    engine = create_engine(settings.db_url)
    sessionmaker = create_sessionmaker(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(engine)
        yield
        await engine.dispose()

    app = FastAPI(title="memory-processor", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = sessionmaker
    app.state.ws_manager = websocket_api.WebSocketManager()
    app.state.transcripts = DbTranscriptAccessor(sessionmaker)
    app.state.record_store = SqlRecordBookStore(sessionmaker)
    app.state.snapshot_store = SqlSnapshotStore(sessionmaker)
    app.state.summarization_client = SummarizationClient(timeout_sec=settings.memory_timeout_sec)
    app.state.prompt_builder = PromptBuilder(max_history=settings.chat_max_history)
    app.state.orchestrator = MemoryOrchestrator(
        app.state.transcripts,
        app.state.summarization_client,
        app.state.record_store,
        snapshot_store=app.state.snapshot_store,
        notifier=app.state.ws_manager,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_api.router)
    app.include_router(memory_api.router)
    app.include_router(websocket_api.router)

    return app


def run() -> None:
    """Serve the application with uvicorn using APP_HOST / APP_PORT."""

    settings = get_settings()
    uvicorn.run(create_app(), host=settings.app_host, port=settings.app_port, log_level="info")


if __name__ == "__main__":
    run()
