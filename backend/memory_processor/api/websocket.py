from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

router = APIRouter()


class WebSocketManager:
    """Manage operator status connections per chat."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, chat_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(chat_id, set()).add(websocket)

    async def disconnect(self, chat_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            connections = self._connections.get(chat_id)
            if not connections:
                return
            connections.discard(websocket)
            if not connections:
                self._connections.pop(chat_id, None)

    async def broadcast(self, chat_id: str, payload: dict) -> None:
        async with self._lock:
            connections = list(self._connections.get(chat_id, set()))
        if not connections:
            return
        stale: list[WebSocket] = []
        for websocket in connections:
            try:
                await websocket.send_json(payload)
            except Exception:  # noqa: BLE001
                stale.append(websocket)
        for websocket in stale:
            await self.disconnect(chat_id, websocket)


def get_ws_manager(websocket: WebSocket) -> WebSocketManager:
    """Dependency to access the WebSocket manager from app state."""

    return websocket.app.state.ws_manager


@router.websocket("/ws/{chat_id}")
async def ws_chat(
    websocket: WebSocket,
    chat_id: str,
    manager: WebSocketManager = Depends(get_ws_manager),
) -> None:
    """Stream memory status events for a chat."""

    await manager.connect(chat_id, websocket)
    orchestrator = websocket.app.state.orchestrator
    snapshot = await orchestrator.get_snapshot(chat_id)
    await websocket.send_json(
        {
            "event": "memory_state",
            "state": "deriving" if orchestrator.is_refreshing(chat_id) else "idle",
            "has_memory": snapshot is not None,
        }
    )
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await manager.disconnect(chat_id, websocket)
