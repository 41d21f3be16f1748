"""
Disaster Feed API Routes
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from disaster_monitor.exceptions import FeedError
from disaster_monitor.schemas.disasters import (
    DisasterType, Severity, DisasterListResponse, DisasterStatsResponse,
)
from disaster_monitor.services.disaster_service import DisasterService
from .deps import get_disaster_service, get_optional_user

router = APIRouter(dependencies=[Depends(get_optional_user)])


def _list_response(records, filters, last_updated=None) -> DisasterListResponse:
    return DisasterListResponse(
        data=records,
        count=len(records),
        filters={k: v for k, v in filters.items() if v is not None},
        last_updated=last_updated or datetime.now(timezone.utc),
    )


@router.get("/", response_model=DisasterListResponse)
async def list_disasters(
    type: Optional[DisasterType] = None,
    severity: Optional[Severity] = None,
    limit: int = Query(50, ge=1, le=100),
    days: int = Query(7, ge=1, le=30),
    cached: bool = False,
    service: DisasterService = Depends(get_disaster_service),
):
    """Current disasters, optionally narrowed to one feed and severity."""
    last_updated = None
    try:
        feed = await service.get_cached_disasters() if cached and type is None else None
        if feed is not None:
            records, last_updated = feed.data, feed.last_updated
        else:
            records = await service.get_disasters(type, days=days)
    except FeedError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if severity:
        records = [r for r in records if r.severity == severity]
    records = records[:limit]

    filters = {
        "type": type.value if type else None,
        "severity": severity.value if severity else None,
        "limit": limit,
        "days": days,
    }
    return _list_response(records, filters, last_updated)


@router.get("/stats", response_model=DisasterStatsResponse)
async def get_disaster_stats(service: DisasterService = Depends(get_disaster_service)):
    stats = await service.get_disaster_stats()
    return DisasterStatsResponse(data=stats, last_updated=datetime.now(timezone.utc))


@router.get("/earthquakes", response_model=DisasterListResponse)
async def get_earthquakes(
    min_magnitude: float = Query(4.0, ge=0, le=10, alias="minMagnitude"),
    days: int = Query(7, ge=1, le=30),
    service: DisasterService = Depends(get_disaster_service),
):
    try:
        records = await service.get_earthquakes(days=days, min_magnitude=min_magnitude)
    except FeedError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _list_response(records, {"minMagnitude": min_magnitude, "days": days})


@router.get("/weather", response_model=DisasterListResponse)
async def get_weather_alerts(service: DisasterService = Depends(get_disaster_service)):
    try:
        records = await service.get_weather_alerts()
    except FeedError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _list_response(records, {})


@router.get("/tsunami", response_model=DisasterListResponse)
async def get_tsunami_warnings(service: DisasterService = Depends(get_disaster_service)):
    try:
        records = await service.get_tsunami_warnings()
    except FeedError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _list_response(records, {})


@router.get("/volcanic", response_model=DisasterListResponse)
async def get_volcanic_activity(service: DisasterService = Depends(get_disaster_service)):
    try:
        records = await service.get_volcanic_activity()
    except FeedError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _list_response(records, {})
