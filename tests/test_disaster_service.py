from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from disaster_monitor.config import Collections
from disaster_monitor.exceptions import FeedError
from disaster_monitor.schemas.disasters import DisasterRecord
from disaster_monitor.services.disaster_service import DisasterService


BASE_TIME = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_record(record_id, kind="earthquake", severity="medium", hours_ago=0, lat=35.0, lon=139.0):
    return DisasterRecord(
        id=record_id,
        type=kind,
        severity=severity,
        title=record_id,
        coordinates={"latitude": lat, "longitude": lon},
        time=BASE_TIME - timedelta(hours=hours_ago),
        source="test",
    )


def make_service(settings, store=None, quakes=None, weather=None, tsunami=None, volcanic=None):
    usgs = MagicMock()
    usgs.get_earthquakes = AsyncMock(side_effect=quakes) if isinstance(quakes, Exception) \
        else AsyncMock(return_value=quakes or [])
    usgs.get_tsunami_warnings = AsyncMock(side_effect=tsunami) if isinstance(tsunami, Exception) \
        else AsyncMock(return_value=tsunami or [])

    weather_service = MagicMock()
    weather_service.get_weather_alerts = AsyncMock(side_effect=weather) if isinstance(weather, Exception) \
        else AsyncMock(return_value=weather or [])

    volcano = MagicMock()
    volcano.get_volcanic_activity = AsyncMock(side_effect=volcanic) if isinstance(volcanic, Exception) \
        else AsyncMock(return_value=volcanic or [])

    return DisasterService(usgs=usgs, weather=weather_service, volcano=volcano, store=store, settings=settings)


@pytest.mark.asyncio
async def test_one_failing_feed_yields_union_of_the_rest(settings):
    service = make_service(
        settings,
        quakes=[make_record("q1", hours_ago=5), make_record("q2", hours_ago=1)],
        weather=FeedError("openweathermap", "down"),
        tsunami=[make_record("t1", kind="tsunami", severity="high", hours_ago=3)],
        volcanic=[make_record("v1", kind="volcanic", hours_ago=0)],
    )

    feed = await service.get_all_disasters()

    assert [r.id for r in feed.data] == ["v1", "q2", "t1", "q1"]
    assert feed.count == 4
    assert feed.failed_sources == ["weather"]


@pytest.mark.asyncio
async def test_all_feeds_failing_gives_empty_feed(settings):
    error = FeedError("usgs", "down")
    service = make_service(settings, quakes=error, weather=error, tsunami=error, volcanic=error)

    feed = await service.get_all_disasters()

    assert feed.data == []
    assert sorted(feed.failed_sources) == ["earthquakes", "tsunami", "volcanic", "weather"]


@pytest.mark.asyncio
async def test_get_disasters_dispatches_on_type(settings):
    service = make_service(settings, volcanic=[make_record("v1", kind="volcanic")])

    records = await service.get_disasters("volcanic")

    assert [r.id for r in records] == ["v1"]
    service.usgs.get_earthquakes.assert_not_called()


@pytest.mark.asyncio
async def test_single_feed_errors_propagate(settings):
    service = make_service(settings, quakes=FeedError("usgs", "down"))

    with pytest.raises(FeedError):
        await service.get_disasters("earthquake")


@pytest.mark.asyncio
async def test_get_earthquakes_uses_lookback_window(settings):
    service = make_service(settings)

    await service.get_earthquakes(days=3, min_magnitude=5.5)

    start, end, min_magnitude = service.usgs.get_earthquakes.call_args.args
    assert end - start == timedelta(days=3)
    assert min_magnitude == 5.5


def test_compute_stats_counts_windows():
    records = [
        make_record("a", severity="critical", hours_ago=2),
        make_record("b", kind="weather", severity="low", hours_ago=30),
        make_record("c", severity="high", hours_ago=24 * 10),
    ]

    stats = DisasterService.compute_stats(records, now=BASE_TIME)

    assert stats.total == 3
    assert stats.by_type == {"earthquake": 2, "weather": 1}
    assert stats.by_severity == {"low": 1, "medium": 0, "high": 1, "critical": 1}
    assert stats.last_24_hours == 1
    assert stats.last_7_days == 2


@pytest.mark.asyncio
async def test_refresh_cache_writes_audit_entry_and_cache(settings, store):
    service = make_service(
        settings, store=store,
        quakes=[make_record("q1")],
        weather=FeedError("openweathermap", "down"),
    )

    feed = await service.refresh_cache()

    updates = store.docs(Collections.DISASTER_UPDATES)
    assert len(updates) == 1
    assert updates[0]["type"] == "disaster_update"
    assert updates[0]["count"] == 1
    assert updates[0]["data"][0]["id"] == "q1"

    cached = await service.get_cached_disasters()
    assert cached.count == feed.count == 1
    assert cached.failed_sources == ["weather"]
    assert cached.data[0].id == "q1"
    assert cached.data[0].time == BASE_TIME


@pytest.mark.asyncio
async def test_cache_unavailable_without_store(settings):
    service = make_service(settings)

    assert await service.get_cached_disasters() is None
    with pytest.raises(RuntimeError):
        await service.refresh_cache()
