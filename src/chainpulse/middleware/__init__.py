"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chainpulse.config import Settings
from chainpulse.middleware.error_handler import setup_error_handlers
from chainpulse.middleware.logging import setup_logging
from chainpulse.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, error handlers and the middleware stack.

    Starlette runs middleware in reverse-add order, so CORS is added last
    to sit outermost and decorate error responses too.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware, quiet_paths=("/health",))
    # The dashboard only reads; chainhook deliveries are server-to-server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )
