"""Tier threshold tests."""

import pytest

from chainpulse.ingest.tiers import compute_tier


@pytest.mark.parametrize(("points", "expected"), [
    (0, None),
    (99, None),
    (100, "bronze"),
    (499, "bronze"),
    (500, "silver"),
    (999, "silver"),
    (1000, "gold"),
    (4999, "gold"),
    (5000, "platinum"),
    (10**9, "platinum"),
])
def test_compute_tier(points, expected):
    assert compute_tier(points) == expected
