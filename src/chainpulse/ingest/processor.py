"""Webhook delivery pipeline.

  payload --> normalize --> rollback (store, notify)
                        --> per block / transaction / event:
                              project --> store.append --> notify

Deliveries are processed in arrival order, each to completion, with no
awaits inside. Out-of-order block delivery is not detected: the
chainhook service is trusted to deliver blocks in sequence.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from .normalizer import (
    Block,
    Event,
    PayloadShape,
    RollbackBlock,
    hook_uuid,
    is_streaming,
    normalize_payload,
)
from .notifier import LEADERBOARD_UPDATE, ROLLBACK, ChangeNotifier, channel_for
from .projector import project_event
from .schemas import ActivityRecord
from .store import LedgerStore

logger = structlog.get_logger()


@dataclass
class ProcessingResult:
    """Summary of one processed delivery."""

    shape: PayloadShape
    blocks: int = 0
    transactions: int = 0
    records: list[ActivityRecord] = field(default_factory=list)
    rolled_back: list[ActivityRecord] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "shape": self.shape.value,
            "blocks": self.blocks,
            "transactions": self.transactions,
            "activities": len(self.records),
            "rolledBack": len(self.rolled_back),
        }


class WebhookProcessor:
    """Applies chainhook deliveries to the ledger store and notifies subscribers."""

    def __init__(
        self,
        store: LedgerStore,
        notifier: ChangeNotifier,
        payload_preview_chars: int = 2000,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self._preview_chars = payload_preview_chars
        self._deliveries = 0

    def process_payload(self, payload: Any) -> ProcessingResult:
        """Process one webhook delivery to completion."""
        self._deliveries += 1
        self._log_delivery(payload)

        normalized = normalize_payload(payload)
        result = ProcessingResult(
            shape=normalized.shape,
            blocks=len(normalized.blocks),
            transactions=normalized.transaction_count,
        )

        if normalized.rollback:
            result.rolled_back = self._rollback(normalized.rollback)

        logger.info(
            "payload_normalized",
            shape=normalized.shape.value,
            blocks=result.blocks,
            transactions=result.transactions,
        )

        for block in normalized.blocks:
            logger.debug("block_processing", height=block.height, transactions=len(block.transactions))
            for tx in block.transactions:
                for event in tx.events:
                    record = self._apply_event(event, tx.hash, block)
                    if record is not None:
                        result.records.append(record)

        self.store.record_transactions(result.transactions)
        return result

    def _rollback(self, blocks: list[RollbackBlock]) -> list[ActivityRecord]:
        for block in blocks:
            logger.info("block_rollback", height=block.height, hash=block.hash)

        removed = self.store.rollback(block.height for block in blocks)
        self.notifier.publish(ROLLBACK, [asdict(block) for block in blocks])
        return removed

    def _apply_event(self, event: Event, tx_hash: str, block: Block) -> ActivityRecord | None:
        try:
            projection = project_event(event, tx_hash, block.height, block.timestamp)
        except Exception:
            logger.exception("event_projection_failed", kind=event.kind.value, tx_hash=tx_hash)
            return None

        if projection is None:
            return None

        record = projection.record
        entry = self.store.append(record, projection.delta)

        if entry is not None:
            self.notifier.publish(LEADERBOARD_UPDATE, entry.model_copy())
        self.notifier.publish(channel_for(record.event_type), record)

        logger.info(
            "activity_recorded",
            id=record.id,
            event_type=record.event_type,
            user=record.user,
            points=record.points,
            fee=record.fee,
        )
        return record

    def _log_delivery(self, payload: Any) -> None:
        logger.info(
            "payload_received",
            hook_uuid=hook_uuid(payload),
            streaming=is_streaming(payload),
            keys=list(payload) if isinstance(payload, dict) else type(payload).__name__,
        )
        if self._preview_chars <= 0:
            return
        try:
            preview = json.dumps(payload, default=str)
        except (TypeError, ValueError):
            logger.debug("payload_preview_unavailable")
            return
        if len(preview) > self._preview_chars:
            preview = preview[: self._preview_chars] + "..."
        logger.debug("payload_preview", preview=preview)

    @property
    def stats(self) -> dict[str, int]:
        return {"deliveries": self._deliveries}
