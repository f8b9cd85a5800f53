"""Activity API Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chainpulse.ingest.schemas import ActivityRecord, LeaderboardEntry, LedgerStats


class ActivityListResponse(BaseModel):
    """Page of activity records, most recent first."""

    activities: list[ActivityRecord]
    total: int


class LeaderboardResponse(BaseModel):
    """Leaderboard entries, highest points first."""

    leaderboard: list[LeaderboardEntry]
    total: int


class AppStatus(LedgerStats):
    """Ledger counters plus process-level status."""

    uptime: float
    ws_clients: int


class StatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    app: AppStatus
