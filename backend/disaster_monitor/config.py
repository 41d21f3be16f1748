"""
Disaster Monitor & V2V Messaging API
Configuration Settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Disaster Monitor & V2V Messaging API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # API
    api_prefix: str = "/api"
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    frontend_url: str = "http://localhost:5173"

    # Firebase (env credentials win over the credentials file)
    firebase_project_id: Optional[str] = None
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_credentials_path: str = Field(
        default="firebase.config.json",
        description="Service account JSON used when env credentials are absent"
    )

    # Generative AI
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"

    # External hazard feeds
    usgs_api_url: str = "https://earthquake.usgs.gov/fdsnws/event/1"
    usgs_volcano_feed_url: str = "https://www.usgs.gov/volcanoes/feed/geojson.php"
    weather_api_key: Optional[str] = None
    weather_api_url: str = "https://api.openweathermap.org/data/2.5"

    external_api_timeout_seconds: int = 30
    volcano_feed_timeout_seconds: int = 10

    # Monitoring window
    monitoring_region: str = "asia"
    earthquake_min_magnitude: float = 4.0
    tsunami_min_magnitude: float = 6.0
    disaster_lookback_days: int = 7

    # Rate limiting (per client IP)
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900  # 15 minutes

    # V2V
    nearby_default_radius_km: float = 10.0
    broadcast_radius_km: float = 50.0
    vehicle_warning_minutes: int = 10
    vehicle_inactive_minutes: int = 30

    # Background jobs
    jobs_enabled: bool = True
    disaster_refresh_seconds: int = 300
    analytics_refresh_seconds: int = 3600
    vehicle_status_seconds: int = 60
    cleanup_hour_utc: int = Field(default=2, ge=0, le=23)

    # Retention
    disaster_update_retention_days: int = 30
    chat_retention_days: int = 90
    message_retention_days: int = 7

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


class DisasterTypes:
    """Hazard categories produced by the feed adapters."""
    EARTHQUAKE = "earthquake"
    WEATHER = "weather"
    TSUNAMI = "tsunami"
    VOLCANIC = "volcanic"

    ALL = (EARTHQUAKE, WEATHER, TSUNAMI, VOLCANIC)


class SeverityLevels:
    """Ordinal severity scale, lowest first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    ORDER = (LOW, MEDIUM, HIGH, CRITICAL)

    @classmethod
    def rank(cls, level) -> int:
        """1 for low up to 4 for critical; unknown levels rank 0."""
        value = getattr(level, "value", level)
        return cls.ORDER.index(value) + 1 if value in cls.ORDER else 0


class VehicleStatuses:
    """Vehicle liveness states."""
    ACTIVE = "active"
    WARNING = "warning"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class Collections:
    """Firestore collection names."""
    USERS = "users"
    VEHICLES = "vehicles"
    MESSAGES = "v2v_messages"
    CHAT_HISTORY = "chat_history"
    ANALYTICS = "analytics"
    CACHE = "cache"
    DISASTER_UPDATES = "disaster_updates"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
