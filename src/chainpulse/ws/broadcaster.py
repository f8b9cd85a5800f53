"""Bridges ledger change notifications to live clients.

The ChangeNotifier is synchronous and runs inside webhook processing,
while WebSocket and Redis sends are async. The broadcaster subscribes to
every notifier channel, snapshots each payload into a JSON-ready message
at publish time, queues it, and drains the queue on the event loop:

  ChangeNotifier --[enqueue]--> queue --[run()]--> ConnectionManager
                                                |-> RedisRelay (optional)
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from pydantic import BaseModel

from chainpulse.ingest.notifier import LEADERBOARD_UPDATE, ROLLBACK, ChangeNotifier
from chainpulse.ws.manager import ConnectionManager
from chainpulse.ws.redis_relay import RedisRelay

logger = structlog.get_logger()

DEFAULT_QUEUE_SIZE = 10_000


def build_message(channel: str, payload: Any) -> dict[str, Any]:
    """Wire message for one notification: {"type": channel, <key>: payload}."""
    if channel == LEADERBOARD_UPDATE:
        key = "entry"
    elif channel == ROLLBACK:
        key = "blocks"
    else:
        key = "activity"

    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    return {"type": channel, key: payload}


class ChangeBroadcaster:
    """Queues notifier messages and fans them out to WebSocket clients and Redis."""

    def __init__(
        self,
        manager: ConnectionManager,
        relay: RedisRelay | None = None,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.manager = manager
        self.relay = relay
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue(maxsize=max_queue_size)
        self._running = False
        self._dropped = 0
        self._dispatched = 0

    def attach(self, notifier: ChangeNotifier) -> None:
        """Subscribe to every notifier channel."""
        notifier.subscribe_all(self.on_change)

    def on_change(self, channel: str, payload: Any) -> None:
        """Notifier callback."""
        self.enqueue(channel, build_message(channel, payload))

    def enqueue(self, channel: str, message: dict[str, Any]) -> None:
        try:
            self._queue.put_nowait((channel, message))
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning("broadcast_queue_full", channel=channel, dropped=self._dropped)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _dispatch(self, channel: str, message: dict[str, Any]) -> None:
        sent = await self.manager.broadcast_to_channel(channel, message)
        if self.relay is not None:
            await self.relay.publish(channel, message)
        self._dispatched += 1
        if sent > 0:
            logger.debug("broadcast_sent", channel=channel, recipients=sent)

    async def drain(self) -> int:
        """Dispatch everything currently queued. Returns the number of messages sent out."""
        count = 0
        while not self._queue.empty():
            channel, message = self._queue.get_nowait()
            await self._dispatch(channel, message)
            count += 1
        return count

    def start(self) -> asyncio.Task[None]:
        """Mark the broadcaster running and schedule run() on the current loop."""
        self._running = True
        return asyncio.create_task(self.run())

    async def run(self) -> None:
        """Dispatch queued messages until stop() is called."""
        self._running = True
        logger.info("broadcaster_started", relay=self.relay is not None)

        try:
            while self._running:
                try:
                    channel, message = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                try:
                    await self._dispatch(channel, message)
                except Exception:
                    logger.exception("broadcast_failed", channel=channel)
        except asyncio.CancelledError:
            pass
        finally:
            self._running = False
            logger.info("broadcaster_stopped", dispatched=self._dispatched, dropped=self._dropped)

    async def stop(self) -> None:
        """Signal the broadcaster to stop."""
        self._running = False

    @property
    def stats(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "dispatched": self._dispatched,
            "dropped": self._dropped,
        }
