"""In-memory activity ledger and leaderboard.

The ledger is an insertion-ordered list of ActivityRecords; the
leaderboard is a per-user aggregate derived from them. Both live only
in process memory.

Rollback removes ledger records for the rolled-back heights but leaves
leaderboard aggregates and the fee/transaction counters as they were.
Reward spending is likewise recorded in the ledger without being
subtracted from the leaderboard total.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

import structlog

from .projector import LeaderboardDelta
from .schemas import ActivityRecord, LeaderboardEntry, LedgerStats
from .tiers import compute_tier

logger = structlog.get_logger()


class LedgerStore:
    """Owns the activity log and the leaderboard.

    Safe under a single asyncio event loop: every delivery is applied to
    completion before the next one starts. A multi-threaded host must
    serialize append() and rollback(), which read-then-write aggregates.
    """

    def __init__(self) -> None:
        self._activities: list[ActivityRecord] = []
        self._leaderboard: dict[str, LeaderboardEntry] = {}  # user -> entry
        self._total_fees = 0
        self._total_transactions = 0

    def append(self, record: ActivityRecord, delta: LeaderboardDelta | None = None) -> LeaderboardEntry | None:
        """Append a record and apply its leaderboard delta.

        Returns the leaderboard entry that changed, or None.
        """
        self._activities.append(record)
        if record.fee:
            self._total_fees += record.fee

        if delta is None:
            return None
        return self._apply_delta(delta)

    def _apply_delta(self, delta: LeaderboardDelta) -> LeaderboardEntry | None:
        entry = self._leaderboard.get(delta.user)

        # Tier overrides only touch users that already have an entry
        if delta.tier_override is not None:
            if entry is None:
                return None
            entry.tier = delta.tier_override
            return entry

        now = datetime.now(timezone.utc)
        if entry is None:
            entry = LeaderboardEntry(user=delta.user, last_active=now)
            self._leaderboard[delta.user] = entry

        entry.total_points += delta.points
        entry.total_pulses += delta.pulses
        entry.last_active = now

        if delta.streak > 0:
            entry.current_streak = delta.streak
            entry.longest_streak = max(entry.longest_streak, delta.streak)

        tier = compute_tier(entry.total_points)
        if tier is not None:
            entry.tier = tier

        return entry

    def rollback(self, block_heights: Iterable[int]) -> list[ActivityRecord]:
        """Remove every record at the given heights. Returns the removed records."""
        heights = set(block_heights)
        if not heights:
            return []

        kept: list[ActivityRecord] = []
        removed: list[ActivityRecord] = []
        for record in self._activities:
            (removed if record.block_height in heights else kept).append(record)
        self._activities = kept

        logger.info("ledger_rolled_back", heights=sorted(heights), removed=len(removed))
        return removed

    def record_transactions(self, count: int) -> None:
        self._total_transactions += count

    # ── Queries ──

    def query_recent(self, limit: int = 100) -> list[ActivityRecord]:
        """Most recent records first."""
        if limit <= 0:
            return []
        return self._activities[-limit:][::-1]

    def query_by_user(self, user: str, limit: int = 50) -> list[ActivityRecord]:
        if limit <= 0:
            return []
        records = [record for record in self._activities if record.user == user]
        return records[-limit:][::-1]

    def query_leaderboard(self, limit: int = 100) -> list[LeaderboardEntry]:
        """Top entries by total points, highest first. Ties keep first-seen order."""
        if limit <= 0:
            return []
        ranked = sorted(self._leaderboard.values(), key=lambda e: e.total_points, reverse=True)
        return ranked[:limit]

    def leaderboard_entry(self, user: str) -> LeaderboardEntry | None:
        return self._leaderboard.get(user)

    def stats(self) -> LedgerStats:
        return LedgerStats(
            total_users=len(self._leaderboard),
            total_activities=len(self._activities),
            total_fees=self._total_fees,
            total_transactions=self._total_transactions,
        )
