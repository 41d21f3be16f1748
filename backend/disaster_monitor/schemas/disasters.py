"""
Disaster feed schemas.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import Field
from enum import Enum

from .common import BaseSchema, Coordinates


class DisasterType(str, Enum):
    EARTHQUAKE = "earthquake"
    WEATHER = "weather"
    TSUNAMI = "tsunami"
    VOLCANIC = "volcanic"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DisasterRecord(BaseSchema):
    """Normalized hazard event shared by every feed."""
    id: str
    type: DisasterType
    severity: Severity
    title: str = ""
    description: str = ""
    location: Optional[str] = None
    coordinates: Coordinates
    time: datetime
    source: str

    # Earthquake / tsunami
    magnitude: Optional[float] = None
    url: Optional[str] = None
    tsunami: Optional[bool] = None
    alert: Optional[str] = None
    significance: Optional[int] = None

    # Weather
    city: Optional[str] = None
    region: Optional[str] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    weather_condition: Optional[str] = None
    end_time: Optional[datetime] = None
    is_forecast: bool = False

    # Volcanic
    name: Optional[str] = None
    alert_level: Optional[str] = None
    last_eruption: Optional[str] = None
    elevation: Optional[float] = None


class DisasterFeed(BaseSchema):
    """Aggregated result of one refresh across all feeds."""
    data: List[DisasterRecord]
    count: int
    last_updated: datetime
    failed_sources: List[str] = Field(default_factory=list)


class DisasterListResponse(BaseSchema):
    success: bool = True
    data: List[DisasterRecord]
    count: int
    filters: Dict[str, Any] = Field(default_factory=dict)
    last_updated: datetime


class DisasterStats(BaseSchema):
    total: int
    by_type: Dict[str, int]
    by_severity: Dict[str, int]
    last_24_hours: int
    last_7_days: int


class DisasterStatsResponse(BaseSchema):
    success: bool = True
    data: DisasterStats
    last_updated: datetime
