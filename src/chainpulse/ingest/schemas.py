"""Schema definitions for ChainPulse activity ingestion.

Contract print events share a common shape:
{
    "event": "<event_tag>",
    "user": "SP...",
    ... tag-specific fields ...
}

Values decoded from the binary tuple encoding arrive as strings
("42"), so every data model relies on pydantic's lax coercion.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .tiers import TIER_NONE


class EventKind(str, Enum):
    """Normalized chain event kinds."""

    PRINT = "print"
    NFT_TRANSFER = "nft-transfer"
    STX_TRANSFER = "stx-transfer"


class PrintEventType(str, Enum):
    """All supported contract print event tags."""

    PULSE_SENT = "pulse-sent"
    BOOST_ACTIVATED = "boost-activated"
    DAILY_CHECKIN = "daily-checkin"
    MEGA_PULSE = "mega-pulse"
    CHALLENGE_COMPLETED = "challenge-completed"
    REWARD_CLAIMED = "reward-claimed"
    TIER_ACHIEVED = "tier-achieved"


class ActivityType(str, Enum):
    """Event-type tags carried by activity records."""

    PULSE = "pulse"
    BOOST = "boost"
    CHECKIN = "checkin"
    MEGA_PULSE = "mega-pulse"
    CHALLENGE = "challenge"
    REWARD = "reward"
    TIER = "tier"
    BADGE_MINTED = "badge-minted"
    STX_TRANSFER = "stx-transfer"


class PulseSentData(BaseModel):
    """Data payload for pulse-sent events."""

    user: str = "unknown"
    points: int = 0
    streak: int = 0
    fee: int = 0
    total_pulses: int = 0


class BoostActivatedData(BaseModel):
    """Data payload for boost-activated events."""

    user: str = "unknown"
    points: int = 0
    fee: int = 0
    total_boosts: int = 0


class DailyCheckinData(BaseModel):
    """Data payload for daily-checkin events."""

    user: str = "unknown"
    day: int = 0
    points: int = 0


class MegaPulseData(BaseModel):
    """Data payload for mega-pulse events."""

    user: str = "unknown"
    multiplier: int = 0
    points: int = 0
    fee: int = 0


class ChallengeCompletedData(BaseModel):
    """Data payload for challenge-completed events."""

    user: str = "unknown"
    challenge_id: int = 0
    points: int = 0
    fee: int = 0


class RewardClaimedData(BaseModel):
    """Data payload for reward-claimed events."""

    user: str = "unknown"
    reward_id: int = 0
    points_spent: int = 0
    stx_value: int = 0
    new_tier: str | None = None


class TierAchievedData(BaseModel):
    """Data payload for tier-achieved events."""

    user: str = "unknown"
    tier: str = TIER_NONE
    total_points: int = 0
    previous_tier: str = TIER_NONE


class NftMintData(BaseModel):
    """Data payload for NFT mint events."""

    recipient: str | None = None
    asset_identifier: Any = None


class StxTransferData(BaseModel):
    """Data payload for STX transfer events."""

    sender: str = ""
    recipient: str = ""
    amount: int = 0


# Map print event tags to their data model classes
PRINT_EVENT_MODELS: dict[str, type[BaseModel]] = {
    PrintEventType.PULSE_SENT: PulseSentData,
    PrintEventType.BOOST_ACTIVATED: BoostActivatedData,
    PrintEventType.DAILY_CHECKIN: DailyCheckinData,
    PrintEventType.MEGA_PULSE: MegaPulseData,
    PrintEventType.CHALLENGE_COMPLETED: ChallengeCompletedData,
    PrintEventType.REWARD_CLAIMED: RewardClaimedData,
    PrintEventType.TIER_ACHIEVED: TierAchievedData,
}


class ActivityRecord(BaseModel):
    """One immutable ledger entry. Serialized with camelCase keys for the dashboard."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    user: str
    event_type: str
    points: int = 0
    fee: int = 0
    block_height: int = 0
    tx_hash: str = ""
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class LeaderboardEntry(BaseModel):
    """Per-user aggregate, mutated in place by the ledger store."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user: str
    total_points: int = 0
    total_pulses: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    tier: str = TIER_NONE
    last_active: datetime


class LedgerStats(BaseModel):
    """Aggregate counters exposed by the stats endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_users: int = 0
    total_activities: int = 0
    total_fees: int = 0
    total_transactions: int = 0
