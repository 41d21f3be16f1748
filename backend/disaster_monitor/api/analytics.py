"""
Disaster Analytics API Routes
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from disaster_monitor.exceptions import AIServiceError
from disaster_monitor.schemas.auth import AuthenticatedUser
from disaster_monitor.schemas.analytics import (
    TimeRange, TrendPeriod, PredictionHorizon, TrendType, GeographicLevel,
    Dashboard, TrendsData, GeographicData, PredictionsData,
    AnalyticsResponse, HistoricalAnalyticsResponse, DashboardResponse,
    TrendsResponse, GeographicResponse, PredictionsResponse, AIInsightsResponse,
)
from disaster_monitor.services.analytics_service import (
    AnalyticsService, dashboard_alerts, filter_trends_by_type, filter_regions,
    overall_confidence,
)
from disaster_monitor.services.gemini_service import GeminiService
from .deps import get_analytics_service, get_ai_service, get_current_user, get_optional_user

router = APIRouter()


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("/disasters", response_model=AnalyticsResponse)
async def get_disaster_analytics(
    time_range: TimeRange = Query(TimeRange.LAST_7D, alias="timeRange"),
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.generate_disaster_analytics(time_range.value)
    return AnalyticsResponse(data=analytics, last_updated=_now())


@router.get("/historical", response_model=HistoricalAnalyticsResponse)
async def get_historical_analytics(
    limit: int = Query(10, ge=1, le=50),
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    snapshots = await service.get_historical_analytics(limit)
    return HistoricalAnalyticsResponse(data=snapshots, count=len(snapshots))


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Current 7-day analytics, recent snapshots and derived alerts."""
    current, historical = await asyncio.gather(
        service.generate_disaster_analytics(TimeRange.LAST_7D.value),
        service.get_historical_analytics(5),
    )
    return DashboardResponse(data=Dashboard(
        current=current,
        historical=historical,
        alerts=dashboard_alerts(current),
        last_updated=_now(),
    ))


@router.get("/trends", response_model=TrendsResponse)
async def get_trends(
    type: TrendType = TrendType.DISASTERS,
    period: TrendPeriod = TrendPeriod.LAST_30D,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.generate_disaster_analytics(period.value)
    analytics = filter_trends_by_type(analytics, type.value)
    return TrendsResponse(
        data=TrendsData(
            type=type,
            period=period,
            trends=analytics.trends,
            summary=analytics.summary,
            predictions=analytics.predictions,
        ),
        last_updated=_now(),
    )


@router.get("/geographic", response_model=GeographicResponse)
async def get_geographic(
    region: Optional[str] = None,
    level: GeographicLevel = GeographicLevel.COUNTRY,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.generate_disaster_analytics(TimeRange.LAST_30D.value)
    geographic = filter_regions(analytics.geographic, region)
    return GeographicResponse(
        data=GeographicData(
            level=level,
            region=region,
            geographic=geographic,
            hotspots=geographic.hotspots,
            distribution=geographic.distribution,
        ),
        last_updated=_now(),
    )


@router.get("/predictions", response_model=PredictionsResponse)
async def get_predictions(
    horizon: PredictionHorizon = PredictionHorizon.NEXT_7D,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    analytics = await service.generate_disaster_analytics(TimeRange.LAST_30D.value)
    return PredictionsResponse(data=PredictionsData(
        horizon=horizon,
        predictions=analytics.predictions,
        confidence=overall_confidence(analytics.predictions),
        last_updated=_now(),
    ))


@router.post("/ai-insights", response_model=AIInsightsResponse)
async def get_ai_insights(
    time_range: TimeRange = Query(TimeRange.LAST_7D, alias="timeRange"),
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
    ai: GeminiService = Depends(get_ai_service),
):
    """Ask the AI model to interpret the current analytics."""
    analytics = await service.generate_disaster_analytics(time_range.value, persist=False)
    try:
        analysis = await ai.analyze_trends(analytics.model_dump(
            mode="json", include={"summary", "trends", "severity", "temporal", "predictions"}
        ))
    except AIServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return AIInsightsResponse(time_range=time_range, analysis=analysis, timestamp=_now())


@router.get("/cached", response_model=AnalyticsResponse)
async def get_cached_analytics(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """The snapshot last written by the scheduled analytics job."""
    cached = await service.get_cached_analytics()
    if cached is None:
        raise HTTPException(status_code=404, detail="No cached analytics available")
    return AnalyticsResponse(data=cached["data"], last_updated=cached["last_updated"] or _now())
