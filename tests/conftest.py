"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from structlog.testing import capture_logs

from chainpulse.config import Settings
from chainpulse.ingest import normalizer as normalizer_module
from chainpulse.ingest import processor as processor_module
from chainpulse.ingest import projector as projector_module
from chainpulse.ingest.notifier import CHANNELS, ChangeNotifier
from chainpulse.ingest.processor import WebhookProcessor
from chainpulse.ingest.store import LedgerStore
from chainpulse.main import create_app
from helpers.recorder import Recorder

WEBHOOK_SECRET = "test-secret"


@pytest.fixture
def store() -> LedgerStore:
    return LedgerStore()


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def recorder(notifier: ChangeNotifier) -> Recorder:
    rec = Recorder()
    for channel in CHANNELS:
        notifier.subscribe(channel, rec)
    return rec


@pytest.fixture
def processor(store: LedgerStore, notifier: ChangeNotifier) -> WebhookProcessor:
    return WebhookProcessor(store, notifier, payload_preview_chars=200)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        webhook_secret=WEBHOOK_SECRET,
        log_format="console",
        log_level="WARNING",
        redis_url="",
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app (lifespan not started)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {WEBHOOK_SECRET}"}


@pytest.fixture
def log_events(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[dict]]:
    """Log entries emitted by the ingest pipeline during the test.

    Module loggers are cached on first use, so each one is swapped for a
    fresh logger bound while capture is active.
    """
    with capture_logs() as entries:
        for module in (normalizer_module, projector_module, processor_module):
            monkeypatch.setattr(module, "logger", structlog.get_logger())
        yield entries
