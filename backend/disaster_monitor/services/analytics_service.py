"""
Disaster Analytics Service

Handles:
- Summary, trend, geographic, severity and temporal breakdowns
- Rule-based activity forecasts and recommendations
- Analytics snapshots and the scheduler's analytics cache

Forecast confidences are fixed business rules, not fitted statistics.
"""

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict, Any, Iterable

import numpy as np

from disaster_monitor.config import Collections, SeverityLevels
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.schemas.disasters import DisasterRecord, DisasterType
from disaster_monitor.schemas.analytics import (
    TimeRange, AnalyticsPeriod, AnalyticsSummary, DailyBucket, TrendAnalysis,
    GeoPoint, RegionBucket, Hotspot, Bounds, Distribution, GeographicAnalysis,
    SeverityAnalysis, TemporalPatterns, CountForecast, RiskArea,
    SeasonalForecast, Predictions, Recommendation, DisasterAnalytics,
    StoredAnalytics, DashboardAlert,
)
from .disaster_service import DisasterService

logger = logging.getLogger(__name__)

TIME_RANGES = {
    TimeRange.LAST_24H.value: timedelta(hours=24),
    TimeRange.LAST_7D.value: timedelta(days=7),
    TimeRange.LAST_30D.value: timedelta(days=30),
    TimeRange.LAST_90D.value: timedelta(days=90),
}
DEFAULT_TIME_RANGE = TimeRange.LAST_7D.value

TREND_THRESHOLD_PCT = 10
HOTSPOT_MIN_EVENTS = 3
HOTSPOT_GRID_DEGREES = 1
HIGH_ACTIVITY_EVENTS = 10
EARTHQUAKE_CLUSTER_EVENTS = 5

SEVERITY_SCORES = {"low": 1, "medium": 2, "high": 3, "critical": 4}
CONFIDENCE_SCORES = {"low": 1, "medium": 2, "high": 3}

ANALYTICS_SNAPSHOT = "disaster_analytics"
SCHEDULED_SNAPSHOT = "scheduled_analytics"
CACHE_DOCUMENT = "analytics"


# ==================== Pure helpers ====================

def resolve_time_range(value: Optional[str]) -> str:
    """Known ranges pass through; anything else falls back to 7d."""
    value = getattr(value, "value", value)
    return value if value in TIME_RANGES else DEFAULT_TIME_RANGE


def calculate_trend(values: List[int]) -> str:
    """Compare the means of the first and second halves of a series."""
    if len(values) < 2:
        return "stable"

    middle = len(values) // 2
    first_avg = float(np.mean(values[:middle]))
    second_avg = float(np.mean(values[middle:]))

    if first_avg == 0:
        return "increasing" if second_avg > 0 else "stable"

    change = (second_avg - first_avg) / first_avg * 100
    if change > TREND_THRESHOLD_PCT:
        return "increasing"
    if change < -TREND_THRESHOLD_PCT:
        return "decreasing"
    return "stable"


def region_for(lat: float, lng: float) -> str:
    """Coarse Asian region for a coordinate."""
    if 35 <= lat <= 50 and 60 <= lng <= 100:
        return "Central Asia"
    if 20 <= lat <= 35 and 100 <= lng <= 140:
        return "East Asia"
    if 0 <= lat <= 20 and 100 <= lng <= 140:
        return "Southeast Asia"
    if 20 <= lat <= 40 and 40 <= lng <= 60:
        return "West Asia"
    return "Other"


def cell_severity(severities: Iterable[Optional[str]]) -> str:
    avg_score = float(np.mean([SEVERITY_SCORES.get(s, 1) for s in severities]))
    if avg_score >= 3.5:
        return "critical"
    if avg_score >= 2.5:
        return "high"
    if avg_score >= 1.5:
        return "medium"
    return "low"


def identify_hotspots(points: List[GeoPoint]) -> List[Hotspot]:
    """Grid cells with at least HOTSPOT_MIN_EVENTS events."""
    grid: Dict[tuple, List[GeoPoint]] = defaultdict(list)
    for point in points:
        cell = (
            math.floor(point.lat / HOTSPOT_GRID_DEGREES) * HOTSPOT_GRID_DEGREES,
            math.floor(point.lng / HOTSPOT_GRID_DEGREES) * HOTSPOT_GRID_DEGREES,
        )
        grid[cell].append(point)

    return [
        Hotspot(
            lat=lat,
            lng=lng,
            count=len(members),
            severity=cell_severity(p.severity for p in members),
        )
        for (lat, lng), members in grid.items()
        if len(members) >= HOTSPOT_MIN_EVENTS
    ]


def calculate_distribution(points: List[GeoPoint]) -> Optional[Distribution]:
    if not points:
        return None

    lats = np.array([p.lat for p in points])
    lngs = np.array([p.lng for p in points])
    north, south = float(lats.max()), float(lats.min())
    east, west = float(lngs.max()), float(lngs.min())

    return Distribution(
        bounds=Bounds(north=north, south=south, east=east, west=west),
        center={"lat": (north + south) / 2, "lng": (east + west) / 2},
        spread={"lat": north - south, "lng": east - west},
    )


def calculate_risk_level(overall: Dict[str, int]) -> str:
    total = sum(overall.values())
    if total == 0:
        return "low"

    critical_ratio = overall.get("critical", 0) / total
    high_ratio = overall.get("high", 0) / total

    if critical_ratio > 0.2:
        return "critical"
    if critical_ratio > 0.1 or high_ratio > 0.3:
        return "high"
    if high_ratio > 0.1:
        return "medium"
    return "low"


def overall_confidence(predictions: Predictions) -> str:
    """Mean of the forecast confidences, mapped back to a label."""
    confidences = [
        predictions.next_24h.confidence,
        predictions.next_7d.confidence,
        predictions.seasonal.confidence,
    ]
    avg = float(np.mean([CONFIDENCE_SCORES.get(c, 1) for c in confidences]))
    if avg >= 2.5:
        return "high"
    if avg >= 1.5:
        return "medium"
    return "low"


def dashboard_alerts(
    analytics: DisasterAnalytics, now: Optional[datetime] = None
) -> List[DashboardAlert]:
    now = now or datetime.now(timezone.utc)
    alerts = []

    recent = analytics.summary.recent_24h
    if recent > HIGH_ACTIVITY_EVENTS:
        alerts.append(DashboardAlert(
            type="high_activity",
            severity="high",
            message=f"High disaster activity: {recent} events in last 24 hours",
            timestamp=now,
        ))

    critical = analytics.severity.overall.get("critical", 0)
    if critical > 0:
        alerts.append(DashboardAlert(
            type="critical_severity",
            severity="critical",
            message=f"{critical} critical severity events detected",
            timestamp=now,
        ))

    hotspots = len(analytics.geographic.hotspots)
    if hotspots > 0:
        alerts.append(DashboardAlert(
            type="geographic_hotspot",
            severity="medium",
            message=f"{hotspots} geographic hotspots identified",
            timestamp=now,
        ))

    return alerts


def filter_trends_by_type(analytics: DisasterAnalytics, disaster_type: str) -> DisasterAnalytics:
    """Narrow the summary and daily buckets to a single disaster type."""
    if disaster_type == "disasters":
        return analytics

    type_count = analytics.summary.by_type.get(disaster_type, 0)
    summary = analytics.summary.model_copy(update={"by_type": {disaster_type: type_count}})
    daily = {}
    for day, bucket in analytics.trends.daily.items():
        count = bucket.by_type.get(disaster_type, 0)
        daily[day] = DailyBucket(total=count, by_type={disaster_type: count})
    trends = analytics.trends.model_copy(update={"daily": daily})
    return analytics.model_copy(update={"summary": summary, "trends": trends})


def filter_regions(geographic: GeographicAnalysis, region: Optional[str]) -> GeographicAnalysis:
    """Keep regions whose name contains ``region``, case-insensitively."""
    if not region:
        return geographic
    needle = region.lower()
    regions = {
        name: bucket
        for name, bucket in geographic.regions.items()
        if needle in name.lower()
    }
    return geographic.model_copy(update={"regions": regions})


# ==================== Service ====================

class AnalyticsService:
    """Builds analytics over the aggregated disaster feed."""

    def __init__(self, disaster_service: DisasterService, store: Optional[DocumentStore] = None):
        self.disaster_service = disaster_service
        self.store = store

    async def generate_disaster_analytics(
        self, time_range: Optional[str] = None, persist: bool = True
    ) -> DisasterAnalytics:
        """Analytics over the live feeds for the requested window."""
        feed = await self.disaster_service.get_all_disasters()
        analytics = self.build_analytics(feed.data, time_range)
        if persist:
            await self.save_analytics(analytics)
        return analytics

    @classmethod
    def build_analytics(
        cls,
        records: List[DisasterRecord],
        time_range: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DisasterAnalytics:
        time_range = resolve_time_range(time_range)
        now = now or datetime.now(timezone.utc)
        start = now - TIME_RANGES[time_range]

        in_window = sorted(
            (r for r in records if start <= r.time <= now),
            key=lambda r: r.time,
        )
        points = [
            GeoPoint(
                lat=r.coordinates.latitude,
                lng=r.coordinates.longitude,
                type=r.type,
                severity=r.severity,
            )
            for r in in_window
        ]
        hotspots = identify_hotspots(points)

        return DisasterAnalytics(
            time_range=time_range,
            period=AnalyticsPeriod(start=start, end=now),
            summary=cls._summary(in_window, now),
            trends=cls._trends(in_window),
            geographic=GeographicAnalysis(
                regions=cls._regions(points),
                hotspots=hotspots,
                distribution=calculate_distribution(points),
            ),
            severity=cls._severity(in_window),
            temporal=cls._temporal(in_window),
            predictions=cls._predictions(in_window, hotspots, now),
            recommendations=cls._recommendations(in_window, hotspots, now),
        )

    @staticmethod
    def _summary(records: List[DisasterRecord], now: datetime) -> AnalyticsSummary:
        by_severity = {level: 0 for level in SeverityLevels.ORDER}
        for r in records:
            by_severity[r.severity] = by_severity.get(r.severity, 0) + 1

        if records:
            oldest = min(r.time for r in records)
            days = math.ceil((now - oldest).total_seconds() / 86400)
        else:
            days = 0

        return AnalyticsSummary(
            total=len(records),
            recent_24h=sum(1 for r in records if r.time > now - timedelta(hours=24)),
            by_type=dict(Counter(r.type for r in records)),
            by_severity=by_severity,
            average_per_day=len(records) / max(1, days),
        )

    @staticmethod
    def _trends(records: List[DisasterRecord]) -> TrendAnalysis:
        # records arrive in chronological order so the daily keys do too
        daily: Dict[str, DailyBucket] = {}
        hourly: Counter = Counter()
        for r in records:
            bucket = daily.setdefault(r.time.strftime("%Y-%m-%d"), DailyBucket())
            bucket.total += 1
            bucket.by_type[r.type] = bucket.by_type.get(r.type, 0) + 1
            hourly[str(r.time.hour)] += 1

        return TrendAnalysis(
            daily=daily,
            hourly=dict(hourly),
            trend=calculate_trend([b.total for b in daily.values()]),
        )

    @staticmethod
    def _regions(points: List[GeoPoint]) -> Dict[str, RegionBucket]:
        regions: Dict[str, RegionBucket] = {}
        for point in points:
            bucket = regions.setdefault(region_for(point.lat, point.lng), RegionBucket())
            bucket.total += 1
            bucket.by_type[point.type] = bucket.by_type.get(point.type, 0) + 1
            bucket.coordinates.append(point)
        return regions

    @staticmethod
    def _severity(records: List[DisasterRecord]) -> SeverityAnalysis:
        overall = {level: 0 for level in SeverityLevels.ORDER}
        by_type: Dict[str, Dict[str, int]] = {}
        for r in records:
            overall[r.severity] += 1
            per_type = by_type.setdefault(r.type, {level: 0 for level in SeverityLevels.ORDER})
            per_type[r.severity] += 1

        return SeverityAnalysis(
            overall=overall,
            by_type=by_type,
            risk_level=calculate_risk_level(overall),
        )

    @staticmethod
    def _temporal(records: List[DisasterRecord]) -> TemporalPatterns:
        return TemporalPatterns(
            by_day_of_week=dict(Counter(str(r.time.weekday()) for r in records)),
            by_hour=dict(Counter(str(r.time.hour) for r in records)),
            by_month=dict(Counter(str(r.time.month) for r in records)),
        )

    @staticmethod
    def _predictions(
        records: List[DisasterRecord], hotspots: List[Hotspot], now: datetime
    ) -> Predictions:
        last_24h = sum(1 for r in records if r.time > now - timedelta(hours=24))
        last_7d = sum(1 for r in records if r.time > now - timedelta(days=7))

        monthly = Counter(r.time.month for r in records)
        peak_month = max(monthly, key=monthly.get) if monthly else None

        return Predictions(
            next_24h=CountForecast(
                expected=math.ceil(last_24h * 1.1),
                confidence="medium",
                factors=["Historical patterns", "Recent activity"],
            ),
            next_7d=CountForecast(
                expected=math.ceil(last_7d * 1.05),
                confidence="low",
                factors=["Weekly patterns", "Seasonal trends"],
            ),
            risk_areas=[
                RiskArea(
                    **hotspot.model_dump(),
                    risk_level=hotspot.severity,
                    probability="high" if hotspot.count > 5 else "medium",
                )
                for hotspot in hotspots
            ],
            seasonal=SeasonalForecast(
                peak_month=peak_month,
                seasonal_pattern=[monthly.get(month, 0) for month in range(1, 13)],
                confidence="low",
            ),
        )

    @staticmethod
    def _recommendations(
        records: List[DisasterRecord], hotspots: List[Hotspot], now: datetime
    ) -> List[Recommendation]:
        recommendations = []

        recent = [r for r in records if r.time > now - timedelta(hours=24)]
        if len(recent) > HIGH_ACTIVITY_EVENTS:
            recommendations.append(Recommendation(
                type="high_activity",
                priority="high",
                message="High disaster activity detected. Consider increasing monitoring and preparedness measures.",
                actions=["Increase monitoring frequency", "Alert emergency services", "Review evacuation plans"],
            ))

        if hotspots:
            recommendations.append(Recommendation(
                type="geographic_hotspot",
                priority="medium",
                message=f"High activity detected in {len(hotspots)} geographic areas.",
                actions=["Focus monitoring on hotspot areas", "Deploy additional resources", "Issue area-specific alerts"],
            ))

        earthquakes = sum(1 for r in records if r.type == DisasterType.EARTHQUAKE)
        if earthquakes > EARTHQUAKE_CLUSTER_EVENTS:
            recommendations.append(Recommendation(
                type="earthquake_cluster",
                priority="high",
                message="Multiple earthquakes detected. Monitor for potential aftershocks.",
                actions=["Monitor seismic activity", "Check infrastructure", "Prepare for aftershocks"],
            ))

        return recommendations

    # ==================== Persistence ====================

    async def save_analytics(
        self, analytics: DisasterAnalytics, snapshot_type: str = ANALYTICS_SNAPSHOT
    ) -> Optional[str]:
        """Store a snapshot. Failures are logged, never raised."""
        if self.store is None:
            return None
        try:
            return await self.store.add(Collections.ANALYTICS, {
                **analytics.model_dump(mode="json"),
                "type": snapshot_type,
                "created_at": datetime.now(timezone.utc),
            })
        except Exception as e:
            logger.error(f"Error saving analytics: {e}")
            return None

    async def get_historical_analytics(self, limit: int = 10) -> List[StoredAnalytics]:
        if self.store is None:
            return []
        docs = await self.store.query(
            Collections.ANALYTICS,
            filters=[("type", "==", ANALYTICS_SNAPSHOT)],
            order_by="created_at",
            descending=True,
            limit=limit,
        )
        return [StoredAnalytics.model_validate(doc) for doc in docs]

    async def update_cache(self, analytics: DisasterAnalytics) -> None:
        await self.store.set(Collections.CACHE, CACHE_DOCUMENT, {
            "data": analytics.model_dump(mode="json"),
            "last_updated": datetime.now(timezone.utc),
        })

    async def get_cached_analytics(self) -> Optional[Dict[str, Any]]:
        if self.store is None:
            return None
        doc = await self.store.get(Collections.CACHE, CACHE_DOCUMENT)
        if doc is None or "data" not in doc:
            return None
        return {
            "data": DisasterAnalytics.model_validate(doc["data"]),
            "last_updated": doc.get("last_updated"),
        }
