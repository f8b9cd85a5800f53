"""Tests for the notifier-to-WebSocket broadcaster."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from chainpulse.ingest.notifier import ChangeNotifier
from chainpulse.ingest.schemas import ActivityRecord, LeaderboardEntry
from chainpulse.ws.broadcaster import ChangeBroadcaster, build_message

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def activity() -> ActivityRecord:
    return ActivityRecord(
        id="0x1-pulse",
        user="SP1",
        event_type="pulse",
        points=10,
        fee=1000,
        block_height=100,
        tx_hash="0x1",
        timestamp=NOW,
        metadata={"streak": 1, "totalPulses": 1},
    )


def mock_manager(sent: int = 1) -> AsyncMock:
    manager = AsyncMock()
    manager.broadcast_to_channel = AsyncMock(return_value=sent)
    return manager


class TestBuildMessage:
    def test_activity(self):
        message = build_message("pulse", activity())
        assert message["type"] == "pulse"
        assert message["activity"]["eventType"] == "pulse"
        assert message["activity"]["blockHeight"] == 100
        assert message["activity"]["timestamp"] == "2024-01-01T00:00:00Z"

    def test_leaderboard_entry(self):
        entry = LeaderboardEntry(user="SP1", total_points=150, tier="bronze", last_active=NOW)
        message = build_message("leaderboard-update", entry)
        assert message["type"] == "leaderboard-update"
        assert message["entry"]["totalPoints"] == 150
        assert message["entry"]["tier"] == "bronze"

    def test_rollback(self):
        blocks = [{"height": 5, "hash": "0x5"}]
        assert build_message("rollback", blocks) == {"type": "rollback", "blocks": blocks}

    def test_snapshot_taken_at_publish(self):
        entry = LeaderboardEntry(user="SP1", total_points=10, last_active=NOW)
        message = build_message("leaderboard-update", entry)
        entry.total_points = 999
        assert message["entry"]["totalPoints"] == 10


@pytest.mark.asyncio
async def test_notifier_changes_reach_manager() -> None:
    manager = mock_manager()
    broadcaster = ChangeBroadcaster(manager)
    notifier = ChangeNotifier()
    broadcaster.attach(notifier)

    notifier.publish("pulse", activity())
    notifier.publish("rollback", [{"height": 1, "hash": ""}])
    assert broadcaster.pending == 2

    assert await broadcaster.drain() == 2
    channels = [c.args[0] for c in manager.broadcast_to_channel.await_args_list]
    assert channels == ["pulse", "rollback"]
    assert broadcaster.stats == {"pending": 0, "dispatched": 2, "dropped": 0}


@pytest.mark.asyncio
async def test_relay_receives_every_message() -> None:
    manager = mock_manager(sent=0)
    relay = AsyncMock()
    broadcaster = ChangeBroadcaster(manager, relay)

    broadcaster.enqueue("chainhook-event", {"type": "chainhook-event", "eventType": "x"})
    await broadcaster.drain()

    relay.publish.assert_awaited_once_with("chainhook-event", {"type": "chainhook-event", "eventType": "x"})


@pytest.mark.asyncio
async def test_full_queue_drops_messages() -> None:
    broadcaster = ChangeBroadcaster(mock_manager(), max_queue_size=1)
    broadcaster.enqueue("pulse", {"n": 1})
    broadcaster.enqueue("pulse", {"n": 2})

    assert broadcaster.pending == 1
    assert broadcaster.stats["dropped"] == 1


@pytest.mark.asyncio
async def test_run_dispatches_until_stopped() -> None:
    manager = mock_manager()
    broadcaster = ChangeBroadcaster(manager)
    task = asyncio.create_task(broadcaster.run())

    broadcaster.enqueue("pulse", {"type": "pulse"})
    for _ in range(50):
        if manager.broadcast_to_channel.await_count:
            break
        await asyncio.sleep(0.01)

    await broadcaster.stop()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    manager.broadcast_to_channel.assert_awaited_once_with("pulse", {"type": "pulse"})


@pytest.mark.asyncio
async def test_run_survives_dispatch_errors() -> None:
    manager = mock_manager()
    manager.broadcast_to_channel.side_effect = [RuntimeError("boom"), 1]
    broadcaster = ChangeBroadcaster(manager)
    task = asyncio.create_task(broadcaster.run())

    broadcaster.enqueue("pulse", {"n": 1})
    broadcaster.enqueue("pulse", {"n": 2})
    for _ in range(50):
        if manager.broadcast_to_channel.await_count == 2:
            break
        await asyncio.sleep(0.01)

    await broadcaster.stop()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    assert manager.broadcast_to_channel.await_count == 2
