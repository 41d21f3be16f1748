"""
OpenWeatherMap API Service

Scans current weather and the 5-day / 3-hour forecast for a fixed set of
monitored cities and turns severe conditions into weather disaster records.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional

from disaster_monitor.config import SeverityLevels
from disaster_monitor.exceptions import FeedError
from disaster_monitor.schemas.disasters import DisasterRecord, DisasterType, Severity
from .feed_client import FeedClient

logger = logging.getLogger(__name__)

# Thresholds (wind in m/s, temperature in Celsius)
HIGH_WIND_THRESHOLD = 13.9  # Beaufort 7+, ~50 km/h
CRITICAL_WIND_THRESHOLD = 20.8
MEDIUM_WIND_THRESHOLD = 10.8
EXTREME_HEAT_THRESHOLD = 40
EXTREME_COLD_THRESHOLD = -20
HEAT_INDEX_TEMP_THRESHOLD = 30
HEAT_INDEX_HUMIDITY_THRESHOLD = 80

SEVERE_CONDITIONS = (
    "thunderstorm", "tornado", "hurricane", "typhoon",
    "blizzard", "snowstorm", "sandstorm", "duststorm",
)

CURRENT_ALERT_HOURS = 6
FORECAST_ALERT_HOURS = 3

MONITORED_CITIES = [
    {"name": "Tokyo", "lat": 35.6762, "lon": 139.6503, "country": "Japan"},
    {"name": "Seoul", "lat": 37.5665, "lon": 126.9780, "country": "South Korea"},
    {"name": "Beijing", "lat": 39.9042, "lon": 116.4074, "country": "China"},
    {"name": "Shanghai", "lat": 31.2304, "lon": 121.4737, "country": "China"},
    {"name": "Mumbai", "lat": 19.0760, "lon": 72.8777, "country": "India"},
    {"name": "Delhi", "lat": 28.7041, "lon": 77.1025, "country": "India"},
    {"name": "Bangkok", "lat": 13.7563, "lon": 100.5018, "country": "Thailand"},
    {"name": "Jakarta", "lat": -6.2088, "lon": 106.8456, "country": "Indonesia"},
    {"name": "Manila", "lat": 14.5995, "lon": 120.9842, "country": "Philippines"},
    {"name": "Ho Chi Minh City", "lat": 10.8231, "lon": 106.6297, "country": "Vietnam"},
]


def _readings(sample: Dict[str, Any]):
    main = sample.get("main") or {}
    weather_info = (sample.get("weather") or [{}])[0]
    wind_speed = (sample.get("wind") or {}).get("speed") or 0
    return (
        wind_speed,
        main.get("temp") or 0,
        main.get("humidity") or 0,
        weather_info.get("main") or "",
        weather_info.get("description") or "",
    )


def is_severe_weather(sample: Dict[str, Any]) -> bool:
    """True when an OpenWeatherMap sample warrants an alert."""
    wind_speed, temp, humidity, condition, description = _readings(sample)
    condition, description = condition.lower(), description.lower()

    if wind_speed > HIGH_WIND_THRESHOLD:
        return True
    if temp > EXTREME_HEAT_THRESHOLD or temp < EXTREME_COLD_THRESHOLD:
        return True
    if any(c in condition or c in description for c in SEVERE_CONDITIONS):
        return True
    if "heavy" in description or "extreme" in description:
        return True
    # Heat index
    if temp > HEAT_INDEX_TEMP_THRESHOLD and humidity > HEAT_INDEX_HUMIDITY_THRESHOLD:
        return True
    return False


def weather_severity(sample: Dict[str, Any]) -> Severity:
    """Severity of a sample from fixed wind/temperature/condition thresholds."""
    wind_speed, temp, _, condition, description = _readings(sample)
    condition, description = condition.lower(), description.lower()

    if wind_speed > CRITICAL_WIND_THRESHOLD or temp > 45 or temp < -30:
        return Severity.CRITICAL
    if "tornado" in condition or "hurricane" in condition:
        return Severity.CRITICAL

    if wind_speed > HIGH_WIND_THRESHOLD or temp > EXTREME_HEAT_THRESHOLD or temp < EXTREME_COLD_THRESHOLD:
        return Severity.HIGH
    if "thunderstorm" in condition and "heavy" in description:
        return Severity.HIGH

    if wind_speed > MEDIUM_WIND_THRESHOLD or temp > 35 or temp < -10:
        return Severity.MEDIUM
    if "thunderstorm" in condition or "blizzard" in condition:
        return Severity.MEDIUM

    return Severity.LOW


def weather_description(sample: Dict[str, Any]) -> str:
    wind_speed, temp, humidity, condition, description = _readings(sample)

    desc = f"{condition}: {description}"
    desc += f" | Temperature: {temp}°C"
    desc += f" | Humidity: {humidity}%"
    desc += f" | Wind: {wind_speed} m/s"

    if wind_speed > HIGH_WIND_THRESHOLD:
        desc += " | High wind warning"
    if temp > EXTREME_HEAT_THRESHOLD:
        desc += " | Extreme heat warning"
    if temp < EXTREME_COLD_THRESHOLD:
        desc += " | Extreme cold warning"
    return desc


def remove_duplicate_alerts(alerts: List[DisasterRecord]) -> List[DisasterRecord]:
    """Keep the first alert per (city, condition, severity)."""
    seen = set()
    unique = []
    for alert in alerts:
        key = (alert.city, alert.weather_condition, alert.severity)
        if key in seen:
            continue
        seen.add(key)
        unique.append(alert)
    return unique


class WeatherAPIService(FeedClient):
    """Stateless client for OpenWeatherMap API calls."""

    source = "openweathermap"

    def __init__(self, *args, cities: Optional[List[Dict[str, Any]]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = self.settings.weather_api_key
        self.base_url = self.settings.weather_api_url
        self.cities = cities if cities is not None else MONITORED_CITIES

    async def get_weather_alerts(self) -> List[DisasterRecord]:
        """Severe-weather alerts across all monitored cities, most severe first."""
        if not self.api_key:
            raise FeedError(self.source, "OpenWeatherMap API key not configured")

        now = datetime.now(timezone.utc)
        results = await asyncio.gather(
            *(self._city_alerts(city, now) for city in self.cities),
            return_exceptions=True,
        )

        alerts: List[DisasterRecord] = []
        for city, result in zip(self.cities, results):
            if isinstance(result, Exception):
                # One city failing must not hide the others
                logger.warning(f"Error fetching weather for {city['name']}: {result}")
                continue
            alerts.extend(result)

        unique = remove_duplicate_alerts(alerts)
        unique.sort(key=lambda a: (SeverityLevels.rank(a.severity), a.time), reverse=True)
        return unique

    async def _city_alerts(self, city: Dict[str, Any], now: datetime) -> List[DisasterRecord]:
        params = {"lat": str(city["lat"]), "lon": str(city["lon"]), "units": "metric"}
        current, forecast = await asyncio.gather(
            self._make_owm_request("weather", params),
            self._make_owm_request("forecast", params),
        )

        stamp = int(now.timestamp() * 1000)
        slug = city["name"].replace(" ", "_")
        alerts = []

        if is_severe_weather(current):
            alerts.append(self._to_record(
                current, city,
                record_id=f"weather_{slug}_{stamp}",
                title=f"Severe Weather Alert - {city['name']}",
                start=now,
                hours=CURRENT_ALERT_HOURS,
                is_forecast=False,
            ))

        for index, item in enumerate(forecast.get("list", [])):
            if not is_severe_weather(item):
                continue
            start = datetime.fromtimestamp(item["dt"], tz=timezone.utc)
            alerts.append(self._to_record(
                item, city,
                record_id=f"weather_forecast_{slug}_{index}_{stamp}",
                title=f"Weather Warning - {city['name']}",
                start=start,
                hours=FORECAST_ALERT_HOURS,
                is_forecast=True,
            ))

        return alerts

    @staticmethod
    def _to_record(
        sample: Dict[str, Any],
        city: Dict[str, Any],
        record_id: str,
        title: str,
        start: datetime,
        hours: int,
        is_forecast: bool,
    ) -> DisasterRecord:
        wind_speed, temp, humidity, condition, _ = _readings(sample)
        return DisasterRecord(
            id=record_id,
            type=DisasterType.WEATHER,
            severity=weather_severity(sample),
            title=title,
            description=weather_description(sample),
            location=f"{city['name']}, {city['country']}",
            coordinates={"latitude": city["lat"], "longitude": city["lon"]},
            time=start,
            end_time=start + timedelta(hours=hours),
            source="OpenWeatherMap",
            city=city["name"],
            region=city["country"],
            temperature=temp,
            humidity=humidity,
            wind_speed=wind_speed,
            weather_condition=condition,
            is_forecast=is_forecast,
        )

    async def _make_owm_request(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        """Authenticated GET against the OpenWeatherMap API."""
        data = await self._fetch_json(
            f"{self.base_url}/{endpoint}", {**params, "appid": self.api_key}
        )

        if data.get("cod") and str(data["cod"]) not in ("200",):
            error_msg = data.get("message", "Unknown error")
            logger.error(f"OpenWeatherMap API error: {error_msg}")
            raise FeedError(self.source, f"OpenWeatherMap API error: {error_msg}")

        return data
