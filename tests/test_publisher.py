# tests/test_publisher.py

from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from apps.scraper.publisher import SnapshotPublisher
from utils.mq import EventChannel
from utils.schemas import SnapshotEvent

from .fakes import FakeEventChannel, FakeRedisClient


@pytest.mark.asyncio
async def test_snapshot_event_payload(tmp_path: Path) -> None:
    channel = FakeEventChannel(name="files.wage_snapshots")
    publisher = SnapshotPublisher(channel=channel)
    path = tmp_path / "Berkeley" / "wages_2023.json"

    assert await publisher.publish_snapshot(path, "Berkeley", 2023, 48211) is True

    [event] = channel.events
    assert isinstance(event, SnapshotEvent)
    assert event.type == "snapshot_created"
    assert event.path == str(path.resolve())
    assert event.location == "Berkeley"
    assert event.year == 2023
    assert event.total_records == 48211
    assert event.ts.endswith("Z")


@pytest.mark.asyncio
async def test_publish_failure_is_reported_not_raised(tmp_path: Path) -> None:
    publisher = SnapshotPublisher(channel=FakeEventChannel(fail_with=RuntimeError("down")))

    assert await publisher.publish_snapshot(tmp_path / "x.json", "Davis", 2020, 1) is False


@pytest.mark.asyncio
async def test_close_closes_underlying_channel() -> None:
    channel = FakeEventChannel()
    await SnapshotPublisher(channel=channel).close()
    assert channel.closed


@pytest.mark.asyncio
async def test_event_channel_publishes_event_as_orjson() -> None:
    channel = EventChannel("files.test", redis_url="redis://unused:6379/0")
    client = FakeRedisClient()
    channel.client = client
    event = SnapshotEvent(path="/data/Davis/wages_2024.json", location="Davis", year=2024, total_records=3)

    receivers = await channel.publish(event)

    assert receivers == 1
    [(name, data)] = client.published
    assert name == "files.test"
    assert orjson.loads(data) == event.model_dump(mode="json")
    assert orjson.loads(data)["type"] == "snapshot_created"

    await channel.close()
    assert client.closed
    assert channel.client is None


@pytest.mark.asyncio
async def test_event_channel_close_without_client_is_noop() -> None:
    channel = EventChannel("files.test", redis_url="redis://unused:6379/0")
    await channel.close()
    assert channel.client is None
