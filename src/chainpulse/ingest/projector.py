"""Classify normalized chain events and project them into activity records.

Each event yields at most one ActivityRecord plus an optional
leaderboard delta. The record id is "<tx_hash>-<suffix>" with a fixed
suffix per event kind, so one transaction produces at most one record
of each kind. Repeated deliveries of the same transaction produce
records with identical ids; nothing here deduplicates them.

Unknown print tags and event data that fails validation are logged
and dropped.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from .clarity import decode_clarity_value
from .normalizer import Event
from .schemas import (
    PRINT_EVENT_MODELS,
    ActivityRecord,
    ActivityType,
    BoostActivatedData,
    ChallengeCompletedData,
    DailyCheckinData,
    EventKind,
    MegaPulseData,
    NftMintData,
    PrintEventType,
    PulseSentData,
    RewardClaimedData,
    StxTransferData,
    TierAchievedData,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class LeaderboardDelta:
    """Instruction for the store: how one activity changes a user's aggregate."""

    user: str
    points: int = 0
    pulses: int = 0
    streak: int = 0
    tier_override: str | None = None


@dataclass(frozen=True)
class Projection:
    record: ActivityRecord
    delta: LeaderboardDelta | None = None


@dataclass(frozen=True)
class _Context:
    tx_hash: str
    block_height: int
    timestamp: datetime


def block_time(block_timestamp: float) -> datetime:
    """Block timestamp (seconds since epoch) as a UTC datetime."""
    try:
        return datetime.fromtimestamp(block_timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return datetime.fromtimestamp(0, tz=timezone.utc)


def _record(
    ctx: _Context,
    suffix: str,
    user: str,
    event_type: ActivityType,
    points: int = 0,
    fee: int = 0,
    metadata: dict[str, Any] | None = None,
) -> ActivityRecord:
    return ActivityRecord(
        id=f"{ctx.tx_hash}-{suffix}",
        user=user,
        event_type=event_type.value,
        points=points,
        fee=fee,
        block_height=ctx.block_height,
        tx_hash=ctx.tx_hash,
        timestamp=ctx.timestamp,
        metadata=metadata or {},
    )


# ── Print event handlers ──


def _pulse_sent(data: PulseSentData, ctx: _Context) -> Projection:
    return Projection(
        record=_record(
            ctx, "pulse", data.user, ActivityType.PULSE,
            points=data.points,
            fee=data.fee,
            metadata={"streak": data.streak, "totalPulses": data.total_pulses},
        ),
        delta=LeaderboardDelta(data.user, points=data.points, pulses=1, streak=data.streak),
    )


def _boost_activated(data: BoostActivatedData, ctx: _Context) -> Projection:
    return Projection(
        record=_record(
            ctx, "boost", data.user, ActivityType.BOOST,
            points=data.points,
            fee=data.fee,
            metadata={"totalBoosts": data.total_boosts},
        ),
        delta=LeaderboardDelta(data.user, points=data.points),
    )


def _daily_checkin(data: DailyCheckinData, ctx: _Context) -> Projection:
    return Projection(
        record=_record(
            ctx, "checkin", data.user, ActivityType.CHECKIN,
            points=data.points,
            metadata={"day": data.day},
        ),
        delta=LeaderboardDelta(data.user, points=data.points),
    )


def _mega_pulse(data: MegaPulseData, ctx: _Context) -> Projection:
    return Projection(
        record=_record(
            ctx, "mega", data.user, ActivityType.MEGA_PULSE,
            points=data.points,
            fee=data.fee,
            metadata={"multiplier": data.multiplier},
        ),
        delta=LeaderboardDelta(data.user, points=data.points, pulses=data.multiplier),
    )


def _challenge_completed(data: ChallengeCompletedData, ctx: _Context) -> Projection:
    return Projection(
        record=_record(
            ctx, "challenge", data.user, ActivityType.CHALLENGE,
            points=data.points,
            fee=data.fee,
            metadata={"challengeId": data.challenge_id},
        ),
        delta=LeaderboardDelta(data.user, points=data.points),
    )


def _reward_claimed(data: RewardClaimedData, ctx: _Context) -> Projection:
    # Spent points are recorded in the ledger only; the leaderboard total is untouched.
    delta = None
    if data.new_tier is not None:
        delta = LeaderboardDelta(data.user, tier_override=data.new_tier)
    return Projection(
        record=_record(
            ctx, "reward", data.user, ActivityType.REWARD,
            points=-data.points_spent,
            metadata={
                "rewardId": data.reward_id,
                "stxValue": data.stx_value,
                "newTier": data.new_tier,
            },
        ),
        delta=delta,
    )


def _tier_achieved(data: TierAchievedData, ctx: _Context) -> Projection:
    return Projection(
        record=_record(
            ctx, "tier", data.user, ActivityType.TIER,
            metadata={
                "tier": data.tier,
                "previousTier": data.previous_tier,
                "totalPoints": data.total_points,
            },
        ),
        delta=LeaderboardDelta(data.user, tier_override=data.tier),
    )


_PRINT_HANDLERS: dict[str, Callable[[Any, _Context], Projection]] = {
    PrintEventType.PULSE_SENT: _pulse_sent,
    PrintEventType.BOOST_ACTIVATED: _boost_activated,
    PrintEventType.DAILY_CHECKIN: _daily_checkin,
    PrintEventType.MEGA_PULSE: _mega_pulse,
    PrintEventType.CHALLENGE_COMPLETED: _challenge_completed,
    PrintEventType.REWARD_CLAIMED: _reward_claimed,
    PrintEventType.TIER_ACHIEVED: _tier_achieved,
}


def parse_print_payload(data: Any) -> dict[str, Any] | None:
    """Turn print event data into the contract's event mapping.

    Strings are parsed as JSON, or tuple-decoded when 0x-prefixed.
    Contract log records carry the printed value under "value".
    """
    if isinstance(data, str):
        if data.startswith("0x"):
            data = decode_clarity_value(data)
        else:
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("print_payload_invalid_json", length=len(data))
                return None

    if not isinstance(data, dict):
        return None
    if "event" not in data and "value" in data:
        return parse_print_payload(data["value"])
    return data


def _validated(model: type[BaseModel], data: dict[str, Any], tag: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("event_data_invalid", tag=tag, errors=exc.error_count())
        return None


def _project_print(data: Any, ctx: _Context) -> Projection | None:
    payload = parse_print_payload(data)
    if payload is None:
        logger.warning("print_event_unreadable", tx_hash=ctx.tx_hash)
        return None

    tag = payload.get("event")
    handler = _PRINT_HANDLERS.get(tag) if isinstance(tag, str) else None
    if handler is None:
        logger.info("print_event_unknown", tag=tag, tx_hash=ctx.tx_hash)
        return None

    model = _validated(PRINT_EVENT_MODELS[tag], payload, tag)
    if model is None:
        return None
    return handler(model, ctx)


def _project_nft(data: Any, ctx: _Context) -> Projection | None:
    mint = _validated(NftMintData, data if isinstance(data, dict) else {}, "nft-mint")
    if mint is None:
        return None
    return Projection(
        record=_record(
            ctx, "nft", mint.recipient or "unknown", ActivityType.BADGE_MINTED,
            metadata={"tokenId": mint.asset_identifier, "recipient": mint.recipient},
        ),
    )


def _project_stx(data: Any, ctx: _Context) -> Projection | None:
    transfer = _validated(StxTransferData, data if isinstance(data, dict) else {}, "stx-transfer")
    if transfer is None:
        return None
    # Fees are never negative.
    amount = abs(transfer.amount)
    return Projection(
        record=_record(
            ctx, "stx", transfer.sender, ActivityType.STX_TRANSFER,
            fee=amount,
            metadata={
                "sender": transfer.sender,
                "recipient": transfer.recipient,
                "amount": amount,
            },
        ),
    )


_KIND_PROJECTORS: dict[EventKind, Callable[[Any, _Context], Projection | None]] = {
    EventKind.PRINT: _project_print,
    EventKind.NFT_TRANSFER: _project_nft,
    EventKind.STX_TRANSFER: _project_stx,
}


def project_event(
    event: Event,
    tx_hash: str,
    block_height: int,
    block_timestamp: float,
) -> Projection | None:
    """Project one normalized event into a record and leaderboard delta, or None to skip it."""
    ctx = _Context(tx_hash=tx_hash, block_height=block_height, timestamp=block_time(block_timestamp))
    return _KIND_PROJECTORS[event.kind](event.data, ctx)
