import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from disaster_monitor.config import Collections
from disaster_monitor.jobs.data_update_job import DataUpdateJob, seconds_until_hour


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def job(store, settings):
    analytics = MagicMock()
    analytics.generate_disaster_analytics = AsyncMock(return_value="analytics")
    analytics.save_analytics = AsyncMock()
    analytics.update_cache = AsyncMock()
    return DataUpdateJob(
        store=store,
        disaster_service=MagicMock(refresh_cache=AsyncMock()),
        analytics_service=analytics,
        v2v_service=MagicMock(sweep_statuses=AsyncMock(return_value=0)),
        settings=settings,
    )


def test_seconds_until_hour():
    assert seconds_until_hour(2, datetime(2024, 6, 15, 1, 30, tzinfo=timezone.utc)) == 1800
    assert seconds_until_hour(2, datetime(2024, 6, 15, 2, 0, tzinfo=timezone.utc)) == 24 * 3600
    assert seconds_until_hour(2, NOW) == 14 * 3600


@pytest.mark.asyncio
async def test_reentrant_run_is_skipped(job):
    release = asyncio.Event()
    calls = 0

    async def slow_job():
        nonlocal calls
        calls += 1
        await release.wait()

    first = asyncio.create_task(job._guarded("slow", slow_job))
    await asyncio.sleep(0)

    assert await job._guarded("slow", slow_job) is False
    release.set()
    assert await first is True
    assert calls == 1
    assert "slow" in job.last_run


@pytest.mark.asyncio
async def test_job_failure_is_logged_not_raised(job):
    async def broken():
        raise RuntimeError("feed outage")

    assert await job._guarded("broken", broken) is True
    assert "broken" not in job.last_run
    # the guard is released after a failure
    assert job.get_status()["active_jobs"] == []


@pytest.mark.asyncio
async def test_generate_analytics_snapshots_and_caches(job):
    await job.generate_analytics()

    job.analytics_service.generate_disaster_analytics.assert_awaited_once_with("7d", persist=False)
    job.analytics_service.save_analytics.assert_awaited_once_with("analytics", "scheduled_analytics")
    job.analytics_service.update_cache.assert_awaited_once_with("analytics")


@pytest.mark.asyncio
async def test_cleanup_respects_retention_windows(job, store):
    def at(days):
        return {"timestamp": NOW - timedelta(days=days)}

    await store.add(Collections.DISASTER_UPDATES, at(31))
    await store.add(Collections.DISASTER_UPDATES, at(29))
    await store.add(Collections.CHAT_HISTORY, at(91))
    await store.add(Collections.CHAT_HISTORY, at(60))
    await store.add(Collections.MESSAGES, at(8))
    await store.add(Collections.MESSAGES, at(8))
    await store.add(Collections.MESSAGES, at(1))

    deleted = await job.cleanup_old_data(now=NOW)

    assert deleted == {
        Collections.DISASTER_UPDATES: 1,
        Collections.CHAT_HISTORY: 1,
        Collections.MESSAGES: 2,
    }
    assert len(store.docs(Collections.DISASTER_UPDATES)) == 1
    assert len(store.docs(Collections.CHAT_HISTORY)) == 1
    assert len(store.docs(Collections.MESSAGES)) == 1


@pytest.mark.asyncio
async def test_refresh_all_runs_refresh_then_analytics(job):
    order = []
    job.disaster_service.refresh_cache = AsyncMock(side_effect=lambda: order.append("refresh"))
    job.analytics_service.update_cache = AsyncMock(side_effect=lambda _: order.append("analytics"))

    await job.refresh_all()

    assert order == ["refresh", "analytics"]


@pytest.mark.asyncio
async def test_start_and_stop(job):
    job.start()
    status = job.get_status()
    assert status["is_running"] is True
    assert status["jobs"]["cleanup"] == "daily at 02:00 UTC"

    await job.stop()
    assert job.is_running is False


@pytest.mark.asyncio
async def test_loop_runs_job_on_interval(job):
    task = asyncio.create_task(job._every("vehicle_status", 0, job.update_vehicle_status))
    for _ in range(5):
        await asyncio.sleep(0)
    task.cancel()

    assert job.v2v_service.sweep_statuses.await_count >= 1
