"""
USGS Earthquake Service

Earthquake and tsunami-flagged events from the USGS FDSN event API,
normalized into disaster records.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional

from disaster_monitor.schemas.disasters import DisasterRecord, DisasterType, Severity
from .feed_client import FeedClient

logger = logging.getLogger(__name__)

# (min_lat, max_lat, min_lon, max_lon)
REGION_BOUNDS = {
    "asia": (-10, 50, 60, 180),
}

TSUNAMI_CRITICAL_MAGNITUDE = 7.5


def _usgs_time(value: datetime) -> str:
    """USGS expects UTC ISO-8601 without an offset."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def earthquake_severity(magnitude: Optional[float]) -> Severity:
    """Classify an earthquake by magnitude."""
    if magnitude is None:
        return Severity.LOW
    if magnitude >= 7:
        return Severity.CRITICAL
    if magnitude >= 6:
        return Severity.HIGH
    if magnitude >= 5:
        return Severity.MEDIUM
    return Severity.LOW


def tsunami_severity(magnitude: Optional[float]) -> Severity:
    if magnitude is not None and magnitude >= TSUNAMI_CRITICAL_MAGNITUDE:
        return Severity.CRITICAL
    return Severity.HIGH


class USGSService(FeedClient):
    """Stateless client for the USGS event query API."""

    source = "usgs"

    @property
    def query_url(self) -> str:
        return f"{self.settings.usgs_api_url}/query"

    async def get_earthquakes(
        self,
        start_time: datetime,
        end_time: datetime,
        min_magnitude: Optional[float] = None,
        region: Optional[str] = None,
    ) -> List[DisasterRecord]:
        """Earthquakes in the window, newest first, optionally bounded to a region."""
        if min_magnitude is None:
            min_magnitude = self.settings.earthquake_min_magnitude
        region = region or self.settings.monitoring_region

        params: Dict[str, Any] = {
            "format": "geojson",
            "starttime": _usgs_time(start_time),
            "endtime": _usgs_time(end_time),
            "minmagnitude": min_magnitude,
            "orderby": "time-desc",
        }
        bounds = REGION_BOUNDS.get(region)
        if bounds:
            params["minlatitude"], params["maxlatitude"] = bounds[0], bounds[1]
            params["minlongitude"], params["maxlongitude"] = bounds[2], bounds[3]

        data = await self._fetch_json(self.query_url, params)

        records = []
        for feature in data.get("features", []):
            record = self._to_record(feature, DisasterType.EARTHQUAKE)
            if record is not None:
                records.append(record)
        return records

    async def get_tsunami_warnings(self) -> List[DisasterRecord]:
        """Strong quakes from the last 24 hours that USGS flags as tsunami-capable."""
        end_time = datetime.now(timezone.utc)
        params = {
            "format": "geojson",
            "starttime": _usgs_time(end_time - timedelta(hours=24)),
            "endtime": _usgs_time(end_time),
            "minmagnitude": self.settings.tsunami_min_magnitude,
            "orderby": "time-desc",
        }

        data = await self._fetch_json(self.query_url, params)

        records = []
        for feature in data.get("features", []):
            if feature.get("properties", {}).get("tsunami") != 1:
                continue
            record = self._to_record(feature, DisasterType.TSUNAMI)
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def _to_record(feature: Dict[str, Any], kind: DisasterType) -> Optional[DisasterRecord]:
        props = feature.get("properties", {})
        coords = (feature.get("geometry") or {}).get("coordinates") or []
        if len(coords) < 2 or props.get("time") is None:
            logger.debug(f"Skipping USGS feature without geometry/time: {feature.get('id')}")
            return None

        magnitude = props.get("mag")
        if kind == DisasterType.TSUNAMI:
            record_id = f"tsunami_{feature.get('id')}"
            severity = tsunami_severity(magnitude)
            title = f"Tsunami Warning - M{magnitude} {props.get('place', '')}".strip()
        else:
            record_id = str(feature.get("id"))
            severity = earthquake_severity(magnitude)
            title = props.get("title") or f"M{magnitude} - {props.get('place', '')}"

        return DisasterRecord(
            id=record_id,
            type=kind,
            severity=severity,
            title=title,
            description=f"Magnitude {magnitude} earthquake near {props.get('place', 'unknown location')}",
            location=props.get("place"),
            coordinates={
                "latitude": coords[1],
                "longitude": coords[0],
                "depth": coords[2] if len(coords) > 2 else None,
            },
            time=datetime.fromtimestamp(props["time"] / 1000, tz=timezone.utc),
            source="USGS",
            magnitude=magnitude,
            url=props.get("url"),
            tsunami=bool(props.get("tsunami")),
            alert=props.get("alert"),
            significance=props.get("sig"),
        )
