"""Chainhook webhook receiver."""

import time

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from chainpulse.dependencies import get_broadcaster, get_processor, verify_webhook_secret
from chainpulse.ingest.processor import WebhookProcessor
from chainpulse.ws.broadcaster import ChangeBroadcaster
from chainpulse.ws.manager import CHAINHOOK_EVENT

logger = structlog.get_logger()

router = APIRouter(prefix="/api/chainhook", tags=["Chainhook"])


@router.post("/events/{event_type}", dependencies=[Depends(verify_webhook_secret)])
async def receive_event(
    event_type: str,
    request: Request,
    processor: WebhookProcessor = Depends(get_processor),  # noqa: B008
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),  # noqa: B008
) -> JSONResponse:
    """Apply one chainhook delivery.

    Processing runs synchronously inside this handler so deliveries are
    applied one at a time. Any failure returns 500 so the chainhook
    service retries the delivery.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("webhook_invalid_json", event_type=event_type)
        return JSONResponse(status_code=400, content={"detail": "Invalid JSON payload"})

    logger.info("webhook_received", event_type=event_type)

    try:
        result = processor.process_payload(payload)
    except Exception:
        logger.exception("webhook_processing_failed", event_type=event_type)
        return JSONResponse(status_code=500, content={"detail": "Failed to process webhook"})

    broadcaster.enqueue(CHAINHOOK_EVENT, {
        "type": CHAINHOOK_EVENT,
        "eventType": event_type,
        "timestamp": int(time.time() * 1000),
    })

    return JSONResponse(content={"success": True, **result.summary()})
