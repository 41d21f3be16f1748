from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from disaster_monitor.config import Collections
from disaster_monitor.schemas.analytics import GeoPoint
from disaster_monitor.schemas.disasters import DisasterFeed, DisasterRecord
from disaster_monitor.services.analytics_service import (
    AnalyticsService,
    SCHEDULED_SNAPSHOT,
    calculate_distribution,
    calculate_risk_level,
    calculate_trend,
    dashboard_alerts,
    filter_regions,
    filter_trends_by_type,
    identify_hotspots,
    overall_confidence,
    region_for,
    resolve_time_range,
)


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def record(record_id, hours_ago, kind="earthquake", severity="medium", lat=30.5, lon=130.5):
    return DisasterRecord(
        id=record_id,
        type=kind,
        severity=severity,
        coordinates={"latitude": lat, "longitude": lon},
        time=NOW - timedelta(hours=hours_ago),
        source="test",
    )


def disaster_service_with(records):
    service = MagicMock()
    service.get_all_disasters = AsyncMock(return_value=DisasterFeed(
        data=records, count=len(records), last_updated=NOW,
    ))
    return service


# ==================== Helpers ====================

def test_resolve_time_range_falls_back_to_7d():
    assert resolve_time_range("30d") == "30d"
    assert resolve_time_range("1y") == "7d"
    assert resolve_time_range(None) == "7d"


@pytest.mark.parametrize("values, expected", [
    ([], "stable"),
    ([5], "stable"),
    ([2, 2, 4, 4], "increasing"),
    ([4, 4, 2, 2], "decreasing"),
    ([10, 10, 10, 10.5], "stable"),
    ([0, 0, 1], "increasing"),
    ([0, 0], "stable"),
])
def test_calculate_trend(values, expected):
    assert calculate_trend(values) == expected


def test_region_for():
    assert region_for(40, 70) == "Central Asia"
    assert region_for(30, 120) == "East Asia"
    assert region_for(10, 110) == "Southeast Asia"
    assert region_for(30, 50) == "West Asia"
    assert region_for(-40, 0) == "Other"


def test_identify_hotspots_needs_three_events_per_cell():
    points = [
        GeoPoint(lat=35.1, lng=139.2, type="earthquake", severity="critical"),
        GeoPoint(lat=35.9, lng=139.9, type="earthquake", severity="high"),
        GeoPoint(lat=35.5, lng=139.5, type="weather", severity="critical"),
        GeoPoint(lat=10.0, lng=100.0, type="weather", severity="low"),
        GeoPoint(lat=10.2, lng=100.3, type="weather", severity="low"),
    ]

    hotspots = identify_hotspots(points)

    assert len(hotspots) == 1
    assert (hotspots[0].lat, hotspots[0].lng, hotspots[0].count) == (35, 139, 3)
    assert hotspots[0].severity == "critical"


def test_identify_hotspots_floors_negative_coordinates():
    points = [GeoPoint(lat=-6.2, lng=106.8, type="weather", severity="low") for _ in range(3)]

    [hotspot] = identify_hotspots(points)

    assert (hotspot.lat, hotspot.lng) == (-7, 106)


def test_calculate_distribution():
    assert calculate_distribution([]) is None

    distribution = calculate_distribution([
        GeoPoint(lat=10, lng=100, type="weather"),
        GeoPoint(lat=30, lng=140, type="weather"),
    ])

    assert distribution.bounds.north == 30
    assert distribution.bounds.west == 100
    assert (distribution.center.lat, distribution.center.lng) == (20, 120)
    assert (distribution.spread.lat, distribution.spread.lng) == (20, 40)


def test_calculate_risk_level():
    assert calculate_risk_level({"low": 0, "critical": 0}) == "low"
    assert calculate_risk_level({"low": 7, "critical": 3}) == "critical"
    assert calculate_risk_level({"low": 8, "high": 2}) == "medium"
    assert calculate_risk_level({"low": 6, "high": 4}) == "high"
    assert calculate_risk_level({"low": 10}) == "low"


# ==================== Building ====================

def test_build_analytics_windows_and_aggregates():
    records = [
        record("a", 1, severity="critical"),
        record("b", 2, kind="weather", lat=30.2, lon=130.1),
        record("c", 30, severity="high", lat=30.8, lon=130.8),
        record("old", 24 * 10),
        record("future", -5),
    ]

    analytics = AnalyticsService.build_analytics(records, "7d", now=NOW)

    assert analytics.time_range == "7d"
    assert analytics.summary.total == 3
    assert analytics.summary.recent_24h == 2
    assert analytics.summary.by_type == {"earthquake": 2, "weather": 1}
    assert analytics.summary.by_severity == {"low": 0, "medium": 1, "high": 1, "critical": 1}
    # oldest in-window event is 30h old, so two days
    assert analytics.summary.average_per_day == 1.5

    assert list(analytics.trends.daily) == ["2024-06-14", "2024-06-15"]
    assert analytics.trends.daily["2024-06-15"].by_type == {"earthquake": 1, "weather": 1}
    assert analytics.trends.trend == "increasing"

    assert analytics.geographic.regions["East Asia"].total == 3
    assert len(analytics.geographic.hotspots) == 1
    assert analytics.severity.risk_level == "critical"
    assert analytics.severity.by_type["weather"]["medium"] == 1
    assert analytics.temporal.by_month == {"6": 3}

    predictions = analytics.predictions
    assert predictions.next_24h.expected == 3
    assert predictions.next_7d.expected == 4
    assert predictions.seasonal.peak_month == 6
    assert predictions.seasonal.seasonal_pattern[5] == 3
    assert predictions.risk_areas[0].probability == "medium"

    assert [r.type for r in analytics.recommendations] == ["geographic_hotspot"]


def test_build_analytics_empty():
    analytics = AnalyticsService.build_analytics([], "24h", now=NOW)

    assert analytics.summary.total == 0
    assert analytics.summary.average_per_day == 0
    assert analytics.geographic.distribution is None
    assert analytics.predictions.seasonal.peak_month is None
    assert analytics.recommendations == []
    assert overall_confidence(analytics.predictions) == "low"


def test_many_recent_events_trigger_alerts_and_recommendations():
    records = [record(f"q{i}", i * 0.5, severity="critical") for i in range(12)]

    analytics = AnalyticsService.build_analytics(records, "7d", now=NOW)
    alerts = dashboard_alerts(analytics, now=NOW)

    assert {a.type for a in alerts} == {"high_activity", "critical_severity", "geographic_hotspot"}
    assert {r.type for r in analytics.recommendations} == {
        "high_activity", "geographic_hotspot", "earthquake_cluster",
    }
    assert analytics.predictions.risk_areas[0].probability == "high"


def test_filter_trends_by_type():
    analytics = AnalyticsService.build_analytics(
        [record("a", 1), record("b", 2, kind="weather")], "7d", now=NOW
    )

    assert filter_trends_by_type(analytics, "disasters") is analytics
    weather = filter_trends_by_type(analytics, "weather")
    assert weather.summary.by_type == {"weather": 1}
    assert weather.trends.daily["2024-06-15"].total == 1


def test_filter_regions_is_case_insensitive():
    analytics = AnalyticsService.build_analytics(
        [record("a", 1), record("b", 1, lat=-40, lon=0)], "7d", now=NOW
    )

    geographic = filter_regions(analytics.geographic, "east")

    assert list(geographic.regions) == ["East Asia"]
    assert filter_regions(analytics.geographic, None) is analytics.geographic


# ==================== Persistence ====================

@pytest.mark.asyncio
async def test_generate_persists_snapshot_and_lists_history(store):
    service = AnalyticsService(disaster_service_with([record("a", 1)]), store)

    await service.generate_disaster_analytics("30d")
    await service.generate_disaster_analytics("7d", persist=False)
    await service.save_analytics(
        AnalyticsService.build_analytics([], "7d", now=NOW), SCHEDULED_SNAPSHOT
    )

    snapshots = store.docs(Collections.ANALYTICS)
    assert len(snapshots) == 2
    history = await service.get_historical_analytics(10)
    assert [h.time_range for h in history] == ["30d"]
    assert history[0].type == "disaster_analytics"


@pytest.mark.asyncio
async def test_save_analytics_swallows_store_errors():
    store = MagicMock()
    store.add = AsyncMock(side_effect=RuntimeError("unavailable"))
    service = AnalyticsService(disaster_service_with([]), store)

    result = await service.save_analytics(AnalyticsService.build_analytics([], now=NOW))

    assert result is None


@pytest.mark.asyncio
async def test_cache_round_trip(store):
    service = AnalyticsService(disaster_service_with([]), store)
    assert await service.get_cached_analytics() is None

    await service.update_cache(AnalyticsService.build_analytics([record("a", 1)], "7d", now=NOW))

    cached = await service.get_cached_analytics()
    assert cached["data"].summary.total == 1
    assert cached["last_updated"] is not None


@pytest.mark.asyncio
async def test_no_store_means_no_history():
    service = AnalyticsService(disaster_service_with([]))

    assert await service.get_historical_analytics() == []
    assert await service.save_analytics(AnalyticsService.build_analytics([], now=NOW)) is None
