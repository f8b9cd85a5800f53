"""Activity query endpoints: recent feed, per-user feed, leaderboard and stats."""

import time

from fastapi import APIRouter, Depends, Query, Request

from chainpulse.activity.schemas import (
    ActivityListResponse,
    AppStatus,
    LeaderboardResponse,
    StatusResponse,
)
from chainpulse.config import Settings
from chainpulse.dependencies import get_app_settings, get_manager, get_store
from chainpulse.ingest.schemas import LedgerStats
from chainpulse.ingest.store import LedgerStore
from chainpulse.ws.manager import ConnectionManager

router = APIRouter(prefix="/api", tags=["Activity"])


def _limit(requested: int | None, default: int, settings: Settings) -> int:
    return min(requested or default, settings.query_limit_max)


@router.get("/activities", response_model=ActivityListResponse)
async def recent_activities(
    limit: int | None = Query(None, ge=1),
    store: LedgerStore = Depends(get_store),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> ActivityListResponse:
    """Most recent activities across all users."""
    activities = store.query_recent(_limit(limit, settings.activity_limit_default, settings))
    return ActivityListResponse(activities=activities, total=len(activities))


@router.get("/users/{address}/activities", response_model=ActivityListResponse)
async def user_activities(
    address: str,
    limit: int | None = Query(None, ge=1),
    store: LedgerStore = Depends(get_store),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> ActivityListResponse:
    """Most recent activities for one address."""
    activities = store.query_by_user(address, _limit(limit, settings.user_activity_limit_default, settings))
    return ActivityListResponse(activities=activities, total=len(activities))


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int | None = Query(None, ge=1),
    store: LedgerStore = Depends(get_store),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> LeaderboardResponse:
    """Top users by total points."""
    entries = store.query_leaderboard(_limit(limit, settings.leaderboard_limit_default, settings))
    return LeaderboardResponse(leaderboard=entries, total=len(entries))


@router.get("/stats", response_model=LedgerStats)
async def stats(store: LedgerStore = Depends(get_store)) -> LedgerStats:  # noqa: B008
    """Distinct users, activities, fees and transactions processed."""
    return store.stats()


@router.get("/status", response_model=StatusResponse)
async def app_status(
    request: Request,
    store: LedgerStore = Depends(get_store),  # noqa: B008
    manager: ConnectionManager = Depends(get_manager),  # noqa: B008
) -> StatusResponse:
    """Ledger stats plus uptime and live WebSocket clients."""
    uptime = time.monotonic() - request.app.state.started_at
    return StatusResponse(
        app=AppStatus(
            **store.stats().model_dump(),
            uptime=round(uptime, 3),
            ws_clients=manager.connection_count,
        ),
    )
