"""
USGS Volcano Service
"""

import logging
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from disaster_monitor.schemas.disasters import DisasterRecord, DisasterType, Severity
from .feed_client import FeedClient

logger = logging.getLogger(__name__)

QUIET_ALERT_LEVELS = ("green", "normal")

ALERT_LEVEL_SEVERITY = {
    "red": Severity.CRITICAL,
    "warning": Severity.CRITICAL,
    "orange": Severity.HIGH,
    "watch": Severity.HIGH,
    "yellow": Severity.MEDIUM,
    "advisory": Severity.MEDIUM,
}


def volcano_severity(alert_level: Optional[str]) -> Severity:
    """Map a USGS color code or alert level to a severity."""
    return ALERT_LEVEL_SEVERITY.get((alert_level or "").lower(), Severity.LOW)


def _feature_time(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class VolcanoService(FeedClient):
    """Stateless client for the USGS volcano GeoJSON feed."""

    source = "usgs_volcano"

    async def get_volcanic_activity(self) -> List[DisasterRecord]:
        """Volcanoes at an elevated alert level."""
        data = await self._fetch_json(
            self.settings.usgs_volcano_feed_url,
            timeout=self.settings.volcano_feed_timeout_seconds,
        )
        features = data.get("features", []) if isinstance(data, dict) else []

        fetched_at = datetime.now(timezone.utc)
        records = []
        for feature in features:
            props = feature.get("properties", {})
            alert_level = props.get("alert_level")
            if not alert_level or str(alert_level).lower() in QUIET_ALERT_LEVELS:
                continue

            coords = (feature.get("geometry") or {}).get("coordinates") or []
            if len(coords) < 2:
                logger.debug(f"Skipping volcano without geometry: {props.get('id')}")
                continue

            name = props.get("volcano_name") or "Unknown volcano"
            records.append(DisasterRecord(
                id=f"volcano_{props.get('id')}",
                type=DisasterType.VOLCANIC,
                severity=volcano_severity(alert_level),
                title=f"Volcanic Activity - {name}",
                description=f"{name} is at alert level {alert_level}",
                location=props.get("location"),
                coordinates={"latitude": coords[1], "longitude": coords[0]},
                time=_feature_time(props.get("time")) or fetched_at,
                source="USGS Volcano",
                name=name,
                alert_level=alert_level,
                last_eruption=(
                    str(props["last_eruption_year"])
                    if props.get("last_eruption_year") is not None else None
                ),
                elevation=props.get("elevation"),
            ))

        return records
