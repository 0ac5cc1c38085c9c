import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from memory_processor.core.config import get_settings
from memory_processor.db.base import init_db
from memory_processor.main import create_app
from memory_processor.providers.summarization_client import SummarizationClient

MEMORY_API_URL = "https://memory.test/v1/chat/completions"


@pytest.fixture
def memory_endpoint():
    """Fake summarization endpoint recording every request it receives."""

    state = {"requests": [], "reply": {"choices": [{"message": {"content": "- I remember the rain"}}]}}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        status_code = state.get("status", 200)
        return httpx.Response(status_code, json=state["reply"])

    state["transport"] = httpx.MockTransport(handler)
    return state


@pytest.fixture
def app(tmp_path, monkeypatch, memory_endpoint):
    db_path = tmp_path / "test_memory_processor.db"
    monkeypatch.setenv("DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("MEMORY_API_URL", MEMORY_API_URL)
    monkeypatch.setenv("MEMORY_API_KEY", "sk-testkey123456")
    monkeypatch.setenv("MEMORY_CACHE_THRESHOLD", "2")
    get_settings.cache_clear()
    app = create_app()
    yield app
    get_settings.cache_clear()


@pytest.fixture
async def client(app, memory_endpoint):
    await init_db(app.state.engine)
    async with httpx.AsyncClient(transport=memory_endpoint["transport"]) as outbound:
        app.state.orchestrator.set_client(SummarizationClient(http_client=outbound))
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    await app.state.engine.dispose()


@pytest.fixture
def anyio_backend():
    return "asyncio"
