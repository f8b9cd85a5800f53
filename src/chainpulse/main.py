"""FastAPI application factory."""

import asyncio
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from chainpulse.activity.router import router as activity_router
from chainpulse.config import Settings, get_settings
from chainpulse.health.router import router as health_router
from chainpulse.ingest.notifier import ChangeNotifier
from chainpulse.ingest.processor import WebhookProcessor
from chainpulse.ingest.store import LedgerStore
from chainpulse.middleware import setup_middleware
from chainpulse.webhook.router import router as webhook_router
from chainpulse.ws.broadcaster import ChangeBroadcaster
from chainpulse.ws.manager import ConnectionManager
from chainpulse.ws.redis_relay import RedisRelay
from chainpulse.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    broadcaster: ChangeBroadcaster = app.state.broadcaster

    # Redis relay is optional; the live feed keeps working without it
    if broadcaster.relay is not None:
        try:
            await broadcaster.relay.connect()
        except Exception:
            logger.warning("redis_relay_unavailable", exc_info=True)
            broadcaster.relay = None

    broadcaster_task = broadcaster.start()
    logger.info("chainpulse_started", version=app.state.settings.app_version)

    yield

    await broadcaster.stop()
    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass

    if broadcaster.relay is not None:
        await broadcaster.relay.close()

    logger.info("chainpulse_stopped", stats=app.state.store.stats().model_dump())


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The ledger store, notifier and live fan-out are built here, one set per
    application, and exposed on app.state.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="ChainPulse API",
        description="Chainhook webhook ingestion, activity feed and leaderboard",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    store = LedgerStore()
    notifier = ChangeNotifier()
    manager = ConnectionManager()
    relay = RedisRelay(settings.redis_url, settings.redis_channel_prefix) if settings.redis_url else None
    broadcaster = ChangeBroadcaster(manager, relay)
    broadcaster.attach(notifier)

    app.state.settings = settings
    app.state.store = store
    app.state.notifier = notifier
    app.state.processor = WebhookProcessor(store, notifier, settings.payload_preview_chars)
    app.state.manager = manager
    app.state.broadcaster = broadcaster
    app.state.started_at = time.monotonic()

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(webhook_router)
    app.include_router(activity_router)
    app.include_router(ws_router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "chainpulse.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
