"""Tests for ReactionCollector and CollectorRegistry."""

import pytest

from queuebot.core.platform import CollectorRegistry
from tests.fakes import FakeChannel, FakeMessage, settle


def make_message(message_id=1):
    return FakeMessage(id=message_id, channel=FakeChannel(id=10))


@pytest.mark.asyncio
async def test_dispatch_routes_to_message_collectors():
    registry = CollectorRegistry()
    seen = []
    registry.create(make_message(1)).on("collect", lambda r, u: seen.append((r.emoji, u)))
    registry.create(make_message(2)).on("collect", lambda r, u: seen.append(("other", u)))

    assert registry.dispatch("collect", 1, "🎫", "alice") == 1
    assert registry.dispatch("collect", 3, "🎫", "bob") == 0
    assert seen == [("🎫", "alice")]


@pytest.mark.asyncio
async def test_stop_unregisters_and_emits_end():
    registry = CollectorRegistry()
    reasons = []
    collector = registry.create(make_message()).on("end", reasons.append)

    collector.stop()
    collector.stop()

    assert reasons == ["user"]
    assert registry.active(1) == []
    assert registry.dispatch("collect", 1, "🎫", "alice") == 0


@pytest.mark.asyncio
async def test_stopped_collector_ignores_events():
    registry = CollectorRegistry()
    seen = []
    collector = registry.create(make_message()).on("remove", lambda r, u: seen.append(u))

    collector.stop()
    collector.handle("remove", "🎫", "alice")

    assert seen == []


@pytest.mark.asyncio
async def test_timeout_ends_with_time_reason():
    registry = CollectorRegistry()
    reasons = []
    collector = registry.create(make_message(), timeout=0.02).on("end", reasons.append)

    await settle(0.1)

    assert reasons == ["time"]
    assert collector.end_reason == "time"
    assert registry.active(1) == []


@pytest.mark.asyncio
async def test_stop_before_timeout_cancels_countdown():
    registry = CollectorRegistry()
    reasons = []
    collector = registry.create(make_message(), timeout=0.02).on("end", reasons.append)

    collector.stop()
    await settle(0.1)

    assert reasons == ["user"]


def test_unknown_event_rejected():
    registry = CollectorRegistry()
    collector = registry.create(make_message())
    with pytest.raises(ValueError):
        collector.on("explode", lambda *_: None)
