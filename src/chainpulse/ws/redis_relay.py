"""Redis pub/sub relay for ledger change notifications.

Publishes each notification to a channel named `{prefix}:{channel}`,
e.g. `chainpulse:pulse`, so processes outside this one (bots, other
dashboards) can follow the live feed.
"""

from __future__ import annotations

import json

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()


class RedisRelay:
    """Publishes change notifications to Redis pub/sub."""

    def __init__(self, redis_url: str, prefix: str = "chainpulse") -> None:
        self._redis_url = redis_url
        self._prefix = prefix
        self._client: redis.Redis | None = None
        self._published = 0
        self._failed = 0

    async def connect(self) -> None:
        """Connect to Redis."""
        self._client = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Test connection
        await self._client.ping()
        logger.info("redis_relay_connected", url=self._redis_url)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info(
                "redis_relay_closed",
                published=self._published,
                failed=self._failed,
            )

    async def ping(self) -> bool:
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            logger.warning("redis_relay_ping_failed", exc_info=True)
            return False

    def channel_key(self, channel: str) -> str:
        return f"{self._prefix}:{channel}"

    async def publish(self, channel: str, message: dict) -> None:
        """Publish one notification. Failures are counted and logged, never raised."""
        if not self._client:
            logger.warning("redis_relay_not_connected", channel=channel)
            self._failed += 1
            return

        key = self.channel_key(channel)
        try:
            await self._client.publish(key, json.dumps(message, default=str))
            self._published += 1
        except redis.RedisError:
            self._failed += 1
            logger.exception("redis_relay_publish_failed", channel=key)

    @property
    def stats(self) -> dict[str, int]:
        """Return relay statistics."""
        return {
            "published": self._published,
            "failed": self._failed,
        }
