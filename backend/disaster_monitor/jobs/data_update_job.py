"""
Periodic background jobs.

Four asyncio loops run inside the application process: disaster cache
refresh, analytics generation, daily retention cleanup and the vehicle
liveness sweep. Each job skips a run if its previous run is still going.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set

from disaster_monitor.config import Settings, Collections, get_settings
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.services.analytics_service import AnalyticsService, SCHEDULED_SNAPSHOT
from disaster_monitor.services.disaster_service import DisasterService
from disaster_monitor.services.v2v_service import V2VService

logger = logging.getLogger(__name__)

DISASTER_REFRESH = "disaster_refresh"
ANALYTICS = "analytics"
CLEANUP = "cleanup"
VEHICLE_STATUS = "vehicle_status"


def seconds_until_hour(hour: int, now: datetime) -> float:
    """Seconds from now until the next hour:00 UTC."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DataUpdateJob:
    """Runs the scheduled maintenance jobs."""

    def __init__(
        self,
        store: DocumentStore,
        disaster_service: DisasterService,
        analytics_service: AnalyticsService,
        v2v_service: V2VService,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.disaster_service = disaster_service
        self.analytics_service = analytics_service
        self.v2v_service = v2v_service
        self.settings = settings or get_settings()

        self._tasks: List[asyncio.Task] = []
        self._running: Set[str] = set()
        self.last_run: Dict[str, datetime] = {}

    # ==================== Lifecycle ====================

    def start(self) -> None:
        if self._tasks:
            return
        logger.info("Starting data update jobs...")
        s = self.settings
        self._tasks = [
            asyncio.create_task(self._every(DISASTER_REFRESH, s.disaster_refresh_seconds, self.update_disaster_data)),
            asyncio.create_task(self._every(ANALYTICS, s.analytics_refresh_seconds, self.generate_analytics)),
            asyncio.create_task(self._daily(CLEANUP, s.cleanup_hour_utc, self.cleanup_old_data)),
            asyncio.create_task(self._every(VEHICLE_STATUS, s.vehicle_status_seconds, self.update_vehicle_status)),
        ]
        logger.info("Data update jobs started successfully")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Data update jobs stopped")

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def _every(self, name: str, interval: float, job: Callable[[], Awaitable]) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._guarded(name, job)

    async def _daily(self, name: str, hour: int, job: Callable[[], Awaitable]) -> None:
        while True:
            await asyncio.sleep(seconds_until_hour(hour, datetime.now(timezone.utc)))
            await self._guarded(name, job)

    async def _guarded(self, name: str, job: Callable[[], Awaitable]) -> bool:
        """Run a job unless it is already running. Failures are logged, not raised."""
        if name in self._running:
            logger.warning(f"Job '{name}' already running, skipping...")
            return False

        self._running.add(name)
        try:
            await job()
            self.last_run[name] = datetime.now(timezone.utc)
        except Exception as e:
            logger.error(f"Error in job '{name}': {e}", exc_info=True)
        finally:
            self._running.discard(name)
        return True

    # ==================== Jobs ====================

    async def update_disaster_data(self) -> None:
        logger.info("Starting disaster data update...")
        await self.disaster_service.refresh_cache()

    async def generate_analytics(self) -> None:
        logger.info("Generating analytics...")
        analytics = await self.analytics_service.generate_disaster_analytics("7d", persist=False)
        await self.analytics_service.save_analytics(analytics, SCHEDULED_SNAPSHOT)
        await self.analytics_service.update_cache(analytics)
        logger.info("Analytics generated successfully")

    async def cleanup_old_data(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Delete records older than each collection's retention window."""
        now = now or datetime.now(timezone.utc)
        retention = {
            Collections.DISASTER_UPDATES: self.settings.disaster_update_retention_days,
            Collections.CHAT_HISTORY: self.settings.chat_retention_days,
            Collections.MESSAGES: self.settings.message_retention_days,
        }

        deleted = {}
        for collection, days in retention.items():
            stale = await self.store.query(
                collection, filters=[("timestamp", "<", now - timedelta(days=days))]
            )
            deleted[collection] = await self.store.delete_many(collection, [doc["id"] for doc in stale])

        logger.info(
            "Data cleanup completed: "
            + ", ".join(f"{count} {collection}" for collection, count in deleted.items())
        )
        return deleted

    async def update_vehicle_status(self) -> None:
        await self.v2v_service.sweep_statuses()

    # ==================== Manual ====================

    async def refresh_all(self) -> None:
        """Refresh the disaster cache, then regenerate analytics."""
        logger.info("Manual data refresh initiated...")
        await self._guarded(DISASTER_REFRESH, self.update_disaster_data)
        await self._guarded(ANALYTICS, self.generate_analytics)
        logger.info("Manual data refresh completed")

    def get_status(self) -> Dict:
        s = self.settings
        return {
            "is_running": self.is_running,
            "active_jobs": sorted(self._running),
            "last_run": {name: ts.isoformat() for name, ts in self.last_run.items()},
            "jobs": {
                DISASTER_REFRESH: f"every {s.disaster_refresh_seconds}s",
                ANALYTICS: f"every {s.analytics_refresh_seconds}s",
                CLEANUP: f"daily at {s.cleanup_hour_utc:02d}:00 UTC",
                VEHICLE_STATUS: f"every {s.vehicle_status_seconds}s",
            },
        }
