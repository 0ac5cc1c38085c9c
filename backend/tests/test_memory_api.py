from __future__ import annotations

import json

import pytest


async def append_turns(client, chat_id: str, count: int, start: int = 0) -> None:
    for index in range(start, start + count):
        role = "user" if index % 2 == 0 else "character"
        response = await client.post(
            f"/api/chat/{chat_id}/messages",
            json={"role": role, "name": "Mia" if role == "user" else "Ren", "content": f"turn {index}"},
        )
        assert response.status_code == 200


@pytest.mark.anyio
async def test_chat_transcript_append_list_and_prune(client):
    await append_turns(client, "chat-a", 3)

    response = await client.get("/api/chat/chat-a/messages")
    assert response.status_code == 200
    messages = response.json()["messages"]
    assert [message["seq"] for message in messages] == [1, 2, 3]
    assert messages[1]["role"] == "character"

    response = await client.delete("/api/chat/chat-a/messages/last")
    assert response.status_code == 200
    assert response.json()["deleted_message_id"] == messages[2]["id"]

    response = await client.get("/api/chat/chat-a/messages")
    assert len(response.json()["messages"]) == 2


@pytest.mark.anyio
async def test_prune_empty_chat_returns_404(client):
    response = await client.delete("/api/chat/nobody/messages/last")
    assert response.status_code == 404


@pytest.mark.anyio
async def test_unknown_role_is_rejected(client):
    response = await client.post(
        "/api/chat/chat-a/messages", json={"role": "narrator", "content": "hi"}
    )
    assert response.status_code == 422


@pytest.mark.anyio
async def test_generation_started_derives_injects_and_builds_prompt(client, memory_endpoint):
    await append_turns(client, "chat-b", 4)

    response = await client.post("/api/memory/chat-b/generation-started")
    assert response.status_code == 200
    data = response.json()

    assert data["outcome"]["state"] == "injected"
    assert data["outcome"]["path"] == ["evaluating", "deriving", "injected"]
    assert data["outcome"]["memory"] == "- I remember the rain"
    assert data["outcome"]["persisted"] is True
    assert len(memory_endpoint["requests"]) == 1

    outbound = memory_endpoint["requests"][0]
    body = json.loads(outbound.content)
    assert outbound.headers["authorization"] == "Bearer sk-testkey123456"
    assert body["messages"][1]["content"].startswith("#1 [User (Mia)] turn 0")

    messages = data["messages"]
    assert messages[0]["role"] == "system"
    assert "- I remember the rain" in messages[0]["content"]
    assert "{{processed_memory}}" not in messages[0]["content"]
    assert [message["role"] for message in messages[1:]] == ["user", "assistant", "user", "assistant"]

    response = await client.get("/api/memory/chat-b")
    state = response.json()
    assert state["snapshot"]["source_length"] == 4
    assert state["snapshot"]["fragments"] == ["- I remember the rain"]
    assert state["record"]["tag"] == "processed_memory"
    assert state["record"]["keys"] == []
    assert state["record"]["enabled"] is True


@pytest.mark.anyio
async def test_generation_started_reuses_cache_within_threshold(client, memory_endpoint):
    await append_turns(client, "chat-c", 4)
    await client.post("/api/memory/chat-c/generation-started")

    await append_turns(client, "chat-c", 1, start=4)
    response = await client.post("/api/memory/chat-c/generation-started")

    assert response.json()["outcome"]["path"] == ["evaluating", "cached", "injected"]
    assert len(memory_endpoint["requests"]) == 1

    await append_turns(client, "chat-c", 1, start=5)
    response = await client.post("/api/memory/chat-c/generation-started")
    assert response.json()["outcome"]["derived"] is True
    assert len(memory_endpoint["requests"]) == 2


@pytest.mark.anyio
async def test_repeated_derivations_keep_one_record(app, client, memory_endpoint):
    await append_turns(client, "chat-d", 2)
    await client.post("/api/memory/chat-d/test")
    memory_endpoint["reply"] = {"response": "- Later memory"}
    await client.post("/api/memory/chat-d/test")

    response = await client.get("/api/memory/chat-d")
    assert response.json()["record"]["content"] == "- Later memory"

    collection = await app.state.record_store.load("chat-d")
    assert len(collection.records) == 1


@pytest.mark.anyio
async def test_generation_failure_does_not_break_prompt(client, memory_endpoint):
    await append_turns(client, "chat-e", 2)
    memory_endpoint["status"] = 500
    memory_endpoint["reply"] = {"error": {"message": "upstream exploded"}}

    response = await client.post("/api/memory/chat-e/generation-started")

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"]["state"] == "failed"
    assert data["outcome"]["error_code"] == "TRANSPORT_UPSTREAM"
    assert data["outcome"]["memory"] is None
    assert "(none)" in data["messages"][0]["content"]


@pytest.mark.anyio
async def test_manual_test_surfaces_text_and_errors(client, memory_endpoint):
    await append_turns(client, "chat-f", 2)

    response = await client.post("/api/memory/chat-f/test")
    data = response.json()
    assert data == {
        "ok": True,
        "state": "injected",
        "memory": "- I remember the rain",
        "error_code": None,
        "error_message": None,
    }

    memory_endpoint["reply"] = {"unexpected": True}
    response = await client.post("/api/memory/chat-f/test")
    data = response.json()
    assert data["ok"] is False
    assert data["state"] == "failed"
    assert data["error_code"] == "RESPONSE_SHAPE"
    assert "unexpected" in data["error_message"]
    assert len(memory_endpoint["requests"]) == 2


@pytest.mark.anyio
async def test_manual_test_on_empty_chat_reports_reason(client, memory_endpoint):
    response = await client.post("/api/memory/empty-chat/test")

    data = response.json()
    assert data["ok"] is False
    assert data["state"] == "idle"
    assert data["error_code"] == "empty_transcript"
    assert memory_endpoint["requests"] == []


@pytest.mark.anyio
async def test_missing_endpoint_url_is_reported(app, client, memory_endpoint):
    await append_turns(client, "chat-g", 2)
    app.state.settings.memory_api_url = ""

    response = await client.post("/api/memory/chat-g/test")

    data = response.json()
    assert data["ok"] is False
    assert data["error_code"] == "CONFIG_MISSING_URL"
    assert memory_endpoint["requests"] == []
