"""WebSocket connection registry for the live activity feed.

Every dashboard connection starts subscribed to all channels and may
narrow that with unsubscribe actions. Broadcasts serialize the message
once and send it to each subscribed client; a client whose send fails
or stalls is dropped from the registry.
"""

import asyncio
import json
import time
from collections import Counter
from dataclasses import dataclass, field

import structlog
from fastapi import WebSocket

from chainpulse.ingest.notifier import CHANNELS

logger = structlog.get_logger()

CHAINHOOK_EVENT = "chainhook-event"

VALID_CHANNELS = frozenset({*CHANNELS, CHAINHOOK_EVENT})

SEND_TIMEOUT_SECONDS = 5.0


@dataclass
class ClientConnection:
    websocket: WebSocket
    subscriptions: set[str] = field(default_factory=lambda: set(VALID_CHANNELS))
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Registry of live WebSocket clients keyed by connection id.

    Only touched from the event loop, so no locking is needed.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT_SECONDS) -> None:
        self._clients: dict[str, ClientConnection] = {}
        self._send_timeout = send_timeout

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket, conn_id: str) -> None:
        await websocket.accept()
        self._clients[conn_id] = ClientConnection(websocket=websocket)
        logger.info("ws_connected", conn_id=conn_id, clients=len(self._clients))

    async def disconnect(self, conn_id: str) -> None:
        client = self._clients.pop(conn_id, None)
        if client is not None:
            logger.info(
                "ws_disconnected",
                conn_id=conn_id,
                messages_sent=client.messages_sent,
                connected_for=round(time.time() - client.connected_at, 1),
            )

    async def subscribe(self, conn_id: str, channel: str) -> bool:
        """Add a channel to a client's subscriptions. False for unknown clients or channels."""
        client = self._clients.get(conn_id)
        if client is None or channel not in VALID_CHANNELS:
            return False
        client.subscriptions.add(channel)
        return True

    async def unsubscribe(self, conn_id: str, channel: str) -> bool:
        client = self._clients.get(conn_id)
        if client is None:
            return False
        client.subscriptions.discard(channel)
        return True

    def subscriptions(self, conn_id: str) -> frozenset[str]:
        client = self._clients.get(conn_id)
        return frozenset(client.subscriptions) if client is not None else frozenset()

    async def _send(self, client: ClientConnection, payload: str) -> bool:
        try:
            await asyncio.wait_for(client.websocket.send_text(payload), timeout=self._send_timeout)
        except Exception:
            return False
        client.messages_sent += 1
        return True

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """Send message to every client subscribed to channel. Returns how many got it."""
        targets = [
            (conn_id, client)
            for conn_id, client in self._clients.items()
            if channel in client.subscriptions
        ]
        if not targets:
            return 0

        payload = json.dumps(message, default=str)
        sent = 0
        for conn_id, client in targets:
            if await self._send(client, payload):
                sent += 1
            else:
                logger.info("ws_send_failed", conn_id=conn_id, channel=channel)
                await self.disconnect(conn_id)
        return sent

    def get_stats(self) -> dict:
        counts = Counter(channel for client in self._clients.values() for channel in client.subscriptions)
        return {
            "total_connections": len(self._clients),
            "channels": dict(sorted(counts.items())),
        }
