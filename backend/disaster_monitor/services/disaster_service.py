"""
Disaster Aggregation Service

Fans out to the hazard feeds, merges whatever succeeded, and maintains the
Firestore disaster cache used by the background refresh job.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Iterable

from disaster_monitor.config import Settings, SeverityLevels, Collections, get_settings
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.schemas.disasters import (
    DisasterRecord, DisasterType, DisasterFeed, DisasterStats,
)
from .usgs_service import USGSService
from .weather_api_service import WeatherAPIService
from .volcano_service import VolcanoService

logger = logging.getLogger(__name__)

CACHE_DOCUMENT = "disasters"


def sort_by_time_desc(records: Iterable[DisasterRecord]) -> List[DisasterRecord]:
    return sorted(records, key=lambda r: r.time, reverse=True)


class DisasterService:
    """Aggregates the hazard feeds into a single disaster list."""

    def __init__(
        self,
        usgs: Optional[USGSService] = None,
        weather: Optional[WeatherAPIService] = None,
        volcano: Optional[VolcanoService] = None,
        store: Optional[DocumentStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.usgs = usgs or USGSService(self.settings)
        self.weather = weather or WeatherAPIService(self.settings)
        self.volcano = volcano or VolcanoService(self.settings)
        self.store = store

    # ==================== Single feeds ====================

    async def get_earthquakes(
        self, days: Optional[int] = None, min_magnitude: Optional[float] = None
    ) -> List[DisasterRecord]:
        end_time = datetime.now(timezone.utc)
        start_time = end_time - timedelta(days=days or self.settings.disaster_lookback_days)
        return await self.usgs.get_earthquakes(start_time, end_time, min_magnitude)

    async def get_weather_alerts(self) -> List[DisasterRecord]:
        return await self.weather.get_weather_alerts()

    async def get_tsunami_warnings(self) -> List[DisasterRecord]:
        return await self.usgs.get_tsunami_warnings()

    async def get_volcanic_activity(self) -> List[DisasterRecord]:
        return await self.volcano.get_volcanic_activity()

    # ==================== Aggregate ====================

    async def get_all_disasters(self) -> DisasterFeed:
        """All feeds merged, newest first. Failed feeds are skipped."""
        sources = {
            "earthquakes": self.get_earthquakes(),
            "weather": self.get_weather_alerts(),
            "tsunami": self.get_tsunami_warnings(),
            "volcanic": self.get_volcanic_activity(),
        }
        results = await asyncio.gather(*sources.values(), return_exceptions=True)

        records: List[DisasterRecord] = []
        failed = []
        for name, result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.warning(f"Disaster feed '{name}' failed: {result}")
                failed.append(name)
                continue
            records.extend(result)

        if failed and len(failed) == len(sources):
            logger.error("All disaster feeds failed")

        data = sort_by_time_desc(records)
        return DisasterFeed(
            data=data,
            count=len(data),
            last_updated=datetime.now(timezone.utc),
            failed_sources=failed,
        )

    async def get_disasters(
        self, disaster_type: Optional[str] = None, days: Optional[int] = None
    ) -> List[DisasterRecord]:
        """One feed when a type is given, otherwise the aggregate."""
        if disaster_type == DisasterType.EARTHQUAKE:
            return await self.get_earthquakes(days=days)
        if disaster_type == DisasterType.WEATHER:
            return await self.get_weather_alerts()
        if disaster_type == DisasterType.TSUNAMI:
            return await self.get_tsunami_warnings()
        if disaster_type == DisasterType.VOLCANIC:
            return await self.get_volcanic_activity()
        return (await self.get_all_disasters()).data

    async def get_disaster_stats(self) -> DisasterStats:
        feed = await self.get_all_disasters()
        return self.compute_stats(feed.data)

    @staticmethod
    def compute_stats(
        records: List[DisasterRecord], now: Optional[datetime] = None
    ) -> DisasterStats:
        now = now or datetime.now(timezone.utc)
        one_day_ago = now - timedelta(days=1)
        one_week_ago = now - timedelta(days=7)

        by_type = {}
        by_severity = {level: 0 for level in SeverityLevels.ORDER}
        last_24h = last_7d = 0
        for record in records:
            by_type[record.type] = by_type.get(record.type, 0) + 1
            by_severity[record.severity] = by_severity.get(record.severity, 0) + 1
            if record.time >= one_day_ago:
                last_24h += 1
            if record.time >= one_week_ago:
                last_7d += 1

        return DisasterStats(
            total=len(records),
            by_type=by_type,
            by_severity=by_severity,
            last_24_hours=last_24h,
            last_7_days=last_7d,
        )

    # ==================== Cache ====================

    async def get_cached_disasters(self) -> Optional[DisasterFeed]:
        """The last feed written by refresh_cache, if any."""
        if self.store is None:
            return None
        doc = await self.store.get(Collections.CACHE, CACHE_DOCUMENT)
        if doc is None:
            return None
        data = [DisasterRecord.model_validate(item) for item in doc.get("data", [])]
        return DisasterFeed(
            data=data,
            count=doc.get("count", len(data)),
            last_updated=doc.get("last_updated") or datetime.now(timezone.utc),
            failed_sources=doc.get("failed_sources", []),
        )

    async def refresh_cache(self) -> DisasterFeed:
        """Fetch all feeds, append an audit entry and overwrite the cache."""
        if self.store is None:
            raise RuntimeError("Document store not configured")

        feed = await self.get_all_disasters()
        now = datetime.now(timezone.utc)
        data = [record.model_dump(mode="json") for record in feed.data]

        await self.store.add(Collections.DISASTER_UPDATES, {
            "data": data,
            "count": feed.count,
            "failed_sources": feed.failed_sources,
            "timestamp": now,
            "type": "disaster_update",
        })
        await self.store.set(Collections.CACHE, CACHE_DOCUMENT, {
            "data": data,
            "count": feed.count,
            "failed_sources": feed.failed_sources,
            "last_updated": now,
        })

        logger.info(f"Disaster data updated: {feed.count} events")
        return feed
