"""Shared FastAPI dependencies.

Service objects are created once per application in create_app() and
kept on app.state; these helpers hand them to route handlers.
"""

import hmac

import structlog
from fastapi import HTTPException, Request, status

from chainpulse.config import Settings
from chainpulse.ingest.processor import WebhookProcessor
from chainpulse.ingest.store import LedgerStore
from chainpulse.ws.broadcaster import ChangeBroadcaster
from chainpulse.ws.manager import ConnectionManager

logger = structlog.get_logger()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def get_processor(request: Request) -> WebhookProcessor:
    return request.app.state.processor


def get_broadcaster(request: Request) -> ChangeBroadcaster:
    return request.app.state.broadcaster


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


def _matches(candidate: str, expected: str) -> bool:
    return hmac.compare_digest(candidate.encode(), expected.encode())


async def verify_webhook_secret(request: Request) -> None:
    """Accept `Authorization: Bearer <secret>` or `?token=<secret>`, else 401."""
    secret = get_app_settings(request).webhook_secret

    auth_header = request.headers.get("Authorization", "")
    if auth_header and _matches(auth_header, f"Bearer {secret}"):
        return

    query_token = request.query_params.get("token", "")
    if query_token and _matches(query_token, secret):
        return

    logger.warning(
        "webhook_unauthorized",
        path=request.url.path,
        client=request.client.host if request.client else "unknown",
    )
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
