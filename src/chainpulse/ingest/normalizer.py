"""Chainhook payload shape normalization.

The chainhook service delivers the same activity in several envelopes:

  1. {"apply": [block, ...]}                      root-level apply blocks
  2. {"event": {"apply": [block, ...]}}           nested apply blocks
  3. {"event": {"blocks": [block, ...]}}          nested block list
  4. {"event": {"transaction_identifier": ...}}   one inline transaction
  5. {"event": {"contract_log": {...}}}           one contract log record
  6. anything else                                nothing to process

Rules are tried in that order and the first match wins. Every shape is
reduced to the same Block -> Transaction -> Event tree. Rollbacks are
read independently from "rollback" or "event.rollback".

Nothing in this module raises on malformed input: unknown fields are
ignored and missing ones fall back to zero or empty values.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from .clarity import decode_clarity_value
from .schemas import EventKind

logger = structlog.get_logger()


class PayloadShape(str, Enum):
    """Which envelope a delivery arrived in."""

    ROOT_APPLY = "root-apply"
    EVENT_APPLY = "event-apply"
    EVENT_BLOCKS = "event-blocks"
    INLINE_TRANSACTION = "inline-transaction"
    CONTRACT_LOG = "contract-log"
    NO_BLOCKS = "no-blocks"


# Receipt event type names (both chainhook spellings) -> normalized kind
RAW_EVENT_KINDS: dict[str, EventKind] = {
    "print_event": EventKind.PRINT,
    "SmartContractEvent": EventKind.PRINT,
    "contract_log": EventKind.PRINT,
    "nft_mint_event": EventKind.NFT_TRANSFER,
    "NFTMintEvent": EventKind.NFT_TRANSFER,
    "stx_transfer_event": EventKind.STX_TRANSFER,
    "STXTransferEvent": EventKind.STX_TRANSFER,
}

_INLINE_TX_KEYS = ("transaction_identifier", "transaction", "metadata")


@dataclass(frozen=True)
class Event:
    """One chain event: a kind tag plus its undecoded data."""

    kind: EventKind
    data: Any


@dataclass(frozen=True)
class Transaction:
    hash: str
    events: list[Event] = field(default_factory=list)


@dataclass(frozen=True)
class Block:
    height: int
    hash: str
    timestamp: float
    transactions: list[Transaction] = field(default_factory=list)


@dataclass(frozen=True)
class RollbackBlock:
    height: int
    hash: str = ""


@dataclass(frozen=True)
class NormalizedPayload:
    """Canonical form of one webhook delivery."""

    shape: PayloadShape
    blocks: list[Block] = field(default_factory=list)
    rollback: list[RollbackBlock] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return sum(len(block.transactions) for block in self.blocks)


# ── Field helpers ──


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _event_object(payload: dict[str, Any]) -> dict[str, Any] | None:
    event = payload.get("event")
    return event if isinstance(event, dict) else None


# ── Shape rules: each returns raw block dicts, or None if it does not apply ──


def _root_apply(payload: dict[str, Any]) -> list[Any] | None:
    apply = payload.get("apply")
    return apply if isinstance(apply, list) else None


def _event_apply(payload: dict[str, Any]) -> list[Any] | None:
    event = _event_object(payload)
    if event is None:
        return None
    apply = event.get("apply")
    return apply if isinstance(apply, list) else None


def _event_blocks(payload: dict[str, Any]) -> list[Any] | None:
    event = _event_object(payload)
    if event is None:
        return None
    blocks = event.get("blocks")
    return blocks if isinstance(blocks, list) else None


def _inline_transaction(payload: dict[str, Any]) -> list[Any] | None:
    event = _event_object(payload)
    if event is None or not any(event.get(key) for key in _INLINE_TX_KEYS):
        return None

    tx = event.get("transaction") or event
    block_info = event.get("block_identifier") or event.get("block") or {"index": 0, "hash": ""}
    if not isinstance(block_info, dict):
        block_info = {"index": block_info, "hash": ""}
    timestamp = event.get("timestamp") or event.get("block_timestamp") or time.time()

    return [{
        "block_identifier": block_info,
        "timestamp": timestamp,
        "transactions": [tx],
    }]


def _contract_log(payload: dict[str, Any]) -> list[Any] | None:
    event = _event_object(payload)
    if event is None:
        return None
    contract_log = event.get("contract_log")
    if not isinstance(contract_log, dict):
        return None

    return [{
        "block_identifier": contract_log.get("block_identifier") or {"index": 0, "hash": ""},
        "timestamp": contract_log.get("timestamp") or time.time(),
        "transactions": [{
            "transaction_identifier": {"hash": contract_log.get("tx_id") or ""},
            "metadata": {
                "receipt": {"events": [{"type": "contract_log", "data": contract_log}]},
            },
        }],
    }]


_SHAPE_RULES: tuple[tuple[PayloadShape, Callable[[dict[str, Any]], list[Any] | None]], ...] = (
    (PayloadShape.ROOT_APPLY, _root_apply),
    (PayloadShape.EVENT_APPLY, _event_apply),
    (PayloadShape.EVENT_BLOCKS, _event_blocks),
    (PayloadShape.INLINE_TRANSACTION, _inline_transaction),
    (PayloadShape.CONTRACT_LOG, _contract_log),
)


def resolve_shape(payload: Any) -> tuple[PayloadShape, list[Any]]:
    """Return the first matching shape and its raw block list."""
    if isinstance(payload, dict):
        for shape, rule in _SHAPE_RULES:
            raw_blocks = rule(payload)
            if raw_blocks is not None:
                return shape, raw_blocks
    return PayloadShape.NO_BLOCKS, []


# ── Tree construction ──


def _receipt_events(raw_tx: dict[str, Any]) -> list[Event]:
    receipt = _as_dict(_as_dict(raw_tx.get("metadata")).get("receipt"))
    raw_events = receipt.get("events")
    if not isinstance(raw_events, list):
        return []

    events: list[Event] = []
    for raw in raw_events:
        if not isinstance(raw, dict):
            continue
        raw_type = raw.get("type")
        kind = RAW_EVENT_KINDS.get(raw_type) if isinstance(raw_type, str) else None
        if kind is None:
            logger.debug("event_type_ignored", type=raw_type)
            continue
        events.append(Event(kind=kind, data=raw.get("data")))
    return events


def _operation_events(raw_tx: dict[str, Any], block_height: int) -> list[Event]:
    """Events carried in the operations list instead of the receipt."""
    operations = raw_tx.get("operations")
    if not isinstance(operations, list):
        return []

    events: list[Event] = []
    for op in operations:
        if not isinstance(op, dict):
            continue
        op_type = op.get("type")

        if op_type == "contract_log":
            meta = _as_dict(op.get("metadata"))
            value = meta.get("value")
            if meta.get("topic") != "print" or not value:
                continue
            data = decode_clarity_value(value) if isinstance(value, str) else value
            events.append(Event(kind=EventKind.PRINT, data=data))

        elif op_type == "stx_transfer":
            amount = _as_dict(op.get("amount")).get("value")
            events.append(Event(
                kind=EventKind.STX_TRANSFER,
                data={
                    "sender": _as_dict(op.get("account")).get("address") or "",
                    "recipient": "fee-receiver" if amount else "",
                    "amount": abs(_as_int(amount)),
                    "block_height": block_height,
                },
            ))
    return events


def build_transaction(raw_tx: dict[str, Any], block_height: int) -> Transaction:
    tx_hash = _as_dict(raw_tx.get("transaction_identifier")).get("hash") or ""
    return Transaction(
        hash=str(tx_hash),
        events=_receipt_events(raw_tx) + _operation_events(raw_tx, block_height),
    )


def build_block(raw_block: Any) -> Block | None:
    if not isinstance(raw_block, dict):
        logger.warning("block_malformed", type=type(raw_block).__name__)
        return None

    ident = _as_dict(raw_block.get("block_identifier"))
    height = _as_int(ident.get("index"))
    raw_txs = raw_block.get("transactions")
    if not isinstance(raw_txs, list):
        raw_txs = []

    return Block(
        height=height,
        hash=str(ident.get("hash") or ""),
        timestamp=_as_float(raw_block.get("timestamp")),
        transactions=[build_transaction(tx, height) for tx in raw_txs if isinstance(tx, dict)],
    )


def extract_rollback(payload: Any) -> list[RollbackBlock]:
    """Rolled-back blocks from "rollback", falling back to "event.rollback"."""
    if not isinstance(payload, dict):
        return []

    raw = payload.get("rollback")
    if raw is None:
        event = _event_object(payload)
        raw = event.get("rollback") if event is not None else None
    if not isinstance(raw, list):
        return []

    blocks: list[RollbackBlock] = []
    for item in raw:
        ident = _as_dict(_as_dict(item).get("block_identifier"))
        height = _as_int(ident.get("index"), default=-1)
        if height < 0:
            logger.warning("rollback_block_malformed", item=str(item)[:200])
            continue
        blocks.append(RollbackBlock(height=height, hash=str(ident.get("hash") or "")))
    return blocks


def normalize_payload(payload: Any) -> NormalizedPayload:
    """Reduce one webhook delivery to its canonical block tree and rollback list."""
    shape, raw_blocks = resolve_shape(payload)
    blocks = [block for block in (build_block(raw) for raw in raw_blocks) if block is not None]
    return NormalizedPayload(shape=shape, blocks=blocks, rollback=extract_rollback(payload))


# ── Delivery metadata ──


def hook_uuid(payload: Any) -> str:
    if not isinstance(payload, dict):
        return "unknown"
    chainhook = _as_dict(payload.get("chainhook"))
    for candidate in (
        chainhook.get("uuid"),
        payload.get("chainhook_uuid"),
        payload.get("hook_uuid"),
        payload.get("uuid"),
    ):
        if candidate is not None:
            return str(candidate)
    return "unknown"


def is_streaming(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    chainhook = _as_dict(payload.get("chainhook"))
    for candidate in (
        chainhook.get("is_streaming_blocks"),
        payload.get("is_streaming_blocks"),
        _as_dict(chainhook.get("status")).get("is_streaming_blocks"),
    ):
        if candidate is not None:
            return bool(candidate)
    return False
