"""
Disaster analytics schemas.

Keys of histogram dicts are strings so snapshots can be stored as
Firestore maps unchanged.
"""

from datetime import datetime
from typing import Optional, List, Dict
from pydantic import Field
from enum import Enum

from .common import BaseSchema, LatLng


class TimeRange(str, Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"


class TrendPeriod(str, Enum):
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"


class PredictionHorizon(str, Enum):
    NEXT_24H = "24h"
    NEXT_7D = "7d"
    NEXT_30D = "30d"


class TrendType(str, Enum):
    DISASTERS = "disasters"
    EARTHQUAKE = "earthquake"
    WEATHER = "weather"
    TSUNAMI = "tsunami"
    VOLCANIC = "volcanic"


class GeographicLevel(str, Enum):
    COUNTRY = "country"
    STATE = "state"
    CITY = "city"


class AnalyticsPeriod(BaseSchema):
    start: datetime
    end: datetime


class AnalyticsSummary(BaseSchema):
    total: int
    recent_24h: int
    by_type: Dict[str, int]
    by_severity: Dict[str, int]
    average_per_day: float


class DailyBucket(BaseSchema):
    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)


class TrendAnalysis(BaseSchema):
    daily: Dict[str, DailyBucket]
    hourly: Dict[str, int]
    trend: str


class GeoPoint(BaseSchema):
    lat: float
    lng: float
    type: str
    severity: Optional[str] = None


class RegionBucket(BaseSchema):
    total: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    coordinates: List[GeoPoint] = Field(default_factory=list)


class Hotspot(BaseSchema):
    lat: float
    lng: float
    count: int
    severity: str


class Bounds(BaseSchema):
    north: float
    south: float
    east: float
    west: float


class Distribution(BaseSchema):
    bounds: Bounds
    center: LatLng
    spread: LatLng


class GeographicAnalysis(BaseSchema):
    regions: Dict[str, RegionBucket]
    hotspots: List[Hotspot]
    distribution: Optional[Distribution] = None


class SeverityAnalysis(BaseSchema):
    overall: Dict[str, int]
    by_type: Dict[str, Dict[str, int]]
    risk_level: str


class TemporalPatterns(BaseSchema):
    by_day_of_week: Dict[str, int]
    by_hour: Dict[str, int]
    by_month: Dict[str, int]


class CountForecast(BaseSchema):
    expected: int
    confidence: str
    factors: List[str]


class RiskArea(Hotspot):
    risk_level: str
    probability: str


class SeasonalForecast(BaseSchema):
    peak_month: Optional[int] = None
    seasonal_pattern: List[int]
    confidence: str


class Predictions(BaseSchema):
    next_24h: CountForecast
    next_7d: CountForecast
    risk_areas: List[RiskArea]
    seasonal: SeasonalForecast


class Recommendation(BaseSchema):
    type: str
    priority: str
    message: str
    actions: List[str]


class DisasterAnalytics(BaseSchema):
    time_range: TimeRange
    period: AnalyticsPeriod
    summary: AnalyticsSummary
    trends: TrendAnalysis
    geographic: GeographicAnalysis
    severity: SeverityAnalysis
    temporal: TemporalPatterns
    predictions: Predictions
    recommendations: List[Recommendation]


class StoredAnalytics(DisasterAnalytics):
    id: str
    type: str
    created_at: datetime


class DashboardAlert(BaseSchema):
    type: str
    severity: str
    message: str
    timestamp: datetime


class Dashboard(BaseSchema):
    current: DisasterAnalytics
    historical: List[StoredAnalytics]
    alerts: List[DashboardAlert]
    last_updated: datetime


class TrendsData(BaseSchema):
    type: TrendType
    period: TrendPeriod
    trends: TrendAnalysis
    summary: AnalyticsSummary
    predictions: Predictions


class GeographicData(BaseSchema):
    level: GeographicLevel
    region: Optional[str] = None
    geographic: GeographicAnalysis
    hotspots: List[Hotspot]
    distribution: Optional[Distribution] = None


class PredictionsData(BaseSchema):
    horizon: PredictionHorizon
    predictions: Predictions
    confidence: str
    last_updated: datetime


# Responses

class AnalyticsResponse(BaseSchema):
    success: bool = True
    data: DisasterAnalytics
    last_updated: datetime


class HistoricalAnalyticsResponse(BaseSchema):
    success: bool = True
    data: List[StoredAnalytics]
    count: int


class DashboardResponse(BaseSchema):
    success: bool = True
    data: Dashboard


class TrendsResponse(BaseSchema):
    success: bool = True
    data: TrendsData
    last_updated: datetime


class GeographicResponse(BaseSchema):
    success: bool = True
    data: GeographicData
    last_updated: datetime


class PredictionsResponse(BaseSchema):
    success: bool = True
    data: PredictionsData


class AIInsightsResponse(BaseSchema):
    success: bool = True
    time_range: TimeRange
    analysis: str
    timestamp: datetime
