"""Live activity WebSocket endpoint.

Server -> client messages:
    {"type": "connected", "connectionId": "...", "stats": {...}}
    {"type": "pulse", "activity": {...}}             one per activity channel
    {"type": "leaderboard-update", "entry": {...}}
    {"type": "rollback", "blocks": [...]}
    {"type": "chainhook-event", "eventType": "...", "timestamp": ...}
    {"type": "subscribed" | "unsubscribed", "channel": "..."}
    {"type": "subscriptions", "channels": [...]}
    {"type": "pong"}
    {"type": "error", "message": "..."}

Client -> server actions:
    {"action": "subscribe", "channel": "pulse"}
    {"action": "unsubscribe", "channel": "pulse"}
    {"action": "subscriptions"}
    {"action": "ping"}
"""

import json
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chainpulse.ws.manager import ConnectionManager

logger = structlog.get_logger()

router = APIRouter()

Reply = dict[str, Any]
ActionHandler = Callable[[ConnectionManager, str, dict[str, Any]], Awaitable[Reply]]


async def _subscribe(manager: ConnectionManager, conn_id: str, msg: dict[str, Any]) -> Reply:
    channel = str(msg.get("channel", ""))
    if await manager.subscribe(conn_id, channel):
        return {"type": "subscribed", "channel": channel}
    return {"type": "error", "message": f"Invalid channel: {channel}"}


async def _unsubscribe(manager: ConnectionManager, conn_id: str, msg: dict[str, Any]) -> Reply:
    channel = str(msg.get("channel", ""))
    await manager.unsubscribe(conn_id, channel)
    return {"type": "unsubscribed", "channel": channel}


async def _subscriptions(manager: ConnectionManager, conn_id: str, _msg: dict[str, Any]) -> Reply:
    return {"type": "subscriptions", "channels": sorted(manager.subscriptions(conn_id))}


async def _ping(_manager: ConnectionManager, _conn_id: str, _msg: dict[str, Any]) -> Reply:
    return {"type": "pong"}


ACTIONS: dict[str, ActionHandler] = {
    "subscribe": _subscribe,
    "unsubscribe": _unsubscribe,
    "subscriptions": _subscriptions,
    "ping": _ping,
}


async def handle_message(manager: ConnectionManager, conn_id: str, raw: str) -> Reply:
    """Reply to one client frame."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return {"type": "error", "message": "Invalid JSON"}
    if not isinstance(msg, dict):
        return {"type": "error", "message": "Expected a JSON object"}

    action = msg.get("action")
    handler = ACTIONS.get(action) if isinstance(action, str) else None
    if handler is None:
        return {"type": "error", "message": f"Unknown action: {action}"}
    return await handler(manager, conn_id, msg)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Live feed of ledger changes for the dashboard."""
    manager: ConnectionManager = websocket.app.state.manager
    store = websocket.app.state.store

    conn_id = str(uuid.uuid4())
    await manager.connect(websocket, conn_id)

    try:
        await websocket.send_json({
            "type": "connected",
            "connectionId": conn_id,
            "stats": store.stats().model_dump(by_alias=True),
        })
        while True:
            raw = await websocket.receive_text()
            await websocket.send_json(await handle_message(manager, conn_id, raw))
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
    finally:
        await manager.disconnect(conn_id)
