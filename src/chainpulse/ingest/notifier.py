"""Synchronous publish/subscribe relay for ledger changes.

Channels are fixed: one per activity kind plus leaderboard updates and
rollbacks. publish() calls subscribers in subscription order; a
subscriber that raises is logged and skipped, so the remaining
subscribers still receive the message and the store mutation that
triggered it stands.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog

from .schemas import ActivityType

logger = structlog.get_logger()

Subscriber = Callable[[str, Any], None]

LEADERBOARD_UPDATE = "leaderboard-update"
ROLLBACK = "rollback"

# Activity event type -> notification channel
ACTIVITY_CHANNELS: dict[str, str] = {
    ActivityType.PULSE: "pulse",
    ActivityType.BOOST: "boost",
    ActivityType.CHECKIN: "checkin",
    ActivityType.MEGA_PULSE: "mega-pulse",
    ActivityType.CHALLENGE: "challenge",
    ActivityType.REWARD: "reward",
    ActivityType.TIER: "tier",
    ActivityType.BADGE_MINTED: "badge",
    ActivityType.STX_TRANSFER: "stx-transfer",
}

CHANNELS: tuple[str, ...] = (*ACTIVITY_CHANNELS.values(), LEADERBOARD_UPDATE, ROLLBACK)


def channel_for(event_type: str) -> str:
    """Notification channel for an activity record's event type."""
    return ACTIVITY_CHANNELS[event_type]


class ChangeNotifier:
    """Channel name -> ordered subscriber callbacks. Subscribers get (channel, payload)."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._delivered = 0
        self._failed = 0

    @staticmethod
    def _check_channel(channel: str) -> None:
        if channel not in CHANNELS:
            msg = f"Unknown channel: {channel}"
            raise ValueError(msg)

    def subscribe(self, channel: str, callback: Subscriber) -> None:
        self._check_channel(channel)
        self._subscribers[channel].append(callback)

    def subscribe_all(self, callback: Subscriber) -> None:
        for channel in CHANNELS:
            self._subscribers[channel].append(callback)

    def unsubscribe(self, channel: str, callback: Subscriber) -> bool:
        self._check_channel(channel)
        try:
            self._subscribers[channel].remove(callback)
        except ValueError:
            return False
        return True

    def publish(self, channel: str, payload: Any) -> int:
        """Deliver payload to every subscriber of channel. Returns how many succeeded."""
        self._check_channel(channel)
        delivered = 0

        for callback in list(self._subscribers.get(channel, ())):
            try:
                callback(channel, payload)
                delivered += 1
            except Exception:
                self._failed += 1
                logger.exception("subscriber_failed", channel=channel)

        self._delivered += delivered
        return delivered

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    @property
    def stats(self) -> dict[str, int]:
        return {
            "delivered": self._delivered,
            "failed": self._failed,
        }
