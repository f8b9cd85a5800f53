"""Tier thresholds and computation.

These values MUST match the pulse contract and the dashboard tier badges.
"""

from __future__ import annotations

TIER_NONE = "none"

# Highest threshold first; the first one reached wins.
TIER_THRESHOLDS: list[tuple[int, str]] = [
    (5000, "platinum"),
    (1000, "gold"),
    (500, "silver"),
    (100, "bronze"),
]


def compute_tier(total_points: int) -> str | None:
    """Return the tier reached by ``total_points``, or None below bronze."""
    for threshold, tier in TIER_THRESHOLDS:
        if total_points >= threshold:
            return tier
    return None
