"""
Vehicle-to-Vehicle Messaging Service

Handles:
- Vehicle registration, location and liveness tracking
- Proximity search (bounding box prefilter + haversine refinement)
- Direct and AI-enhanced messages
- Emergency broadcast fan-out to nearby vehicles
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict, Any, Tuple

from disaster_monitor.config import Settings, Collections, VehicleStatuses, get_settings
from disaster_monitor.exceptions import AIServiceError
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.realtime import ConnectionManager
from disaster_monitor.schemas.auth import AuthenticatedUser
from disaster_monitor.schemas.v2v import (
    VehicleRegister, LocationUpdate, MessageCreate, EmergencyCreate,
    V2VMessage, V2VStats, SenderInfo, MessageType, MessagePriority,
)
from .gemini_service import GeminiService
from .geo import haversine_km, bounding_box, longitude_ranges

logger = logging.getLogger(__name__)


def minutes_since(last_seen: Optional[datetime], now: datetime) -> float:
    if last_seen is None:
        return float("inf")
    if last_seen.tzinfo is None:
        last_seen = last_seen.replace(tzinfo=timezone.utc)
    return (now - last_seen).total_seconds() / 60


def vehicle_status(
    last_seen: Optional[datetime],
    now: datetime,
    warning_minutes: int = 10,
    inactive_minutes: int = 30,
) -> str:
    """Liveness from minutes since last seen. Exactly 10 is active, exactly 30 is warning."""
    elapsed = minutes_since(last_seen, now)
    if elapsed > inactive_minutes:
        return VehicleStatuses.INACTIVE
    if elapsed > warning_minutes:
        return VehicleStatuses.WARNING
    return VehicleStatuses.ACTIVE


class V2VService:
    """Vehicle registry and message exchange backed by the document store."""

    def __init__(
        self,
        store: DocumentStore,
        ai: Optional[GeminiService] = None,
        connections: Optional[ConnectionManager] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.ai = ai
        self.connections = connections
        self.settings = settings or get_settings()

    def _status(self, last_seen: Optional[datetime], now: datetime) -> str:
        return vehicle_status(
            last_seen, now,
            self.settings.vehicle_warning_minutes,
            self.settings.vehicle_inactive_minutes,
        )

    # ==================== Vehicles ====================

    async def register_vehicle(
        self, data: VehicleRegister, user: AuthenticatedUser
    ) -> Tuple[str, Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        vehicle = {
            **data.model_dump(exclude_none=True),
            "user_id": user.uid,
            "owner_email": user.email,
            "status": VehicleStatuses.ACTIVE,
            "last_seen": now,
            "created_at": now,
            "updated_at": now,
        }
        vehicle_id = await self.store.add(Collections.VEHICLES, vehicle)
        logger.info(f"Registered vehicle {vehicle_id} for user {user.uid}")
        return vehicle_id, {"id": vehicle_id, **vehicle}

    async def get_vehicle(self, vehicle_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(Collections.VEHICLES, vehicle_id)

    async def update_vehicle_location(self, vehicle_id: str, location: LocationUpdate) -> bool:
        """Record a position fix. Returns False if the vehicle is unknown."""
        now = datetime.now(timezone.utc)
        return await self.store.update(Collections.VEHICLES, vehicle_id, {
            "location": location.model_dump(),
            "status": VehicleStatuses.ACTIVE,
            "last_seen": now,
            "updated_at": now,
        })

    async def get_nearby_vehicles(
        self, vehicle_id: str, radius_km: Optional[float] = None
    ) -> Optional[List[Dict[str, Any]]]:
        """Active vehicles within radius_km, nearest first. None if the reference is unknown."""
        radius_km = radius_km or self.settings.nearby_default_radius_km
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle is None:
            return None

        lat = vehicle["location"]["latitude"]
        lon = vehicle["location"]["longitude"]
        min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius_km)

        base_filters = [
            ("location.latitude", ">=", min_lat),
            ("location.latitude", "<=", max_lat),
            ("status", "==", VehicleStatuses.ACTIVE),
        ]
        ranges = longitude_ranges(min_lon, max_lon)
        if ranges is None:
            candidates = await self.store.query(Collections.VEHICLES, filters=base_filters)
        else:
            # one query per side of the antimeridian
            candidates = []
            for lo, hi in ranges:
                candidates.extend(await self.store.query(Collections.VEHICLES, filters=[
                    *base_filters,
                    ("location.longitude", ">=", lo),
                    ("location.longitude", "<=", hi),
                ]))

        nearby = []
        for candidate in candidates:
            if candidate["id"] == vehicle_id:
                continue
            distance = haversine_km(
                lat, lon,
                candidate["location"]["latitude"], candidate["location"]["longitude"],
            )
            if distance <= radius_km:
                nearby.append({**candidate, "distance": round(distance, 2)})

        nearby.sort(key=lambda v: v["distance"])
        return nearby

    async def get_vehicle_status(
        self, vehicle_id: str, now: Optional[datetime] = None
    ) -> Optional[Dict[str, Any]]:
        now = now or datetime.now(timezone.utc)
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle is None:
            return None

        elapsed = minutes_since(vehicle.get("last_seen"), now)
        return {
            **vehicle,
            "status": self._status(vehicle.get("last_seen"), now),
            "time_since_last_seen": round(elapsed) if elapsed != float("inf") else -1,
        }

    # ==================== Messages ====================

    async def send_message(
        self,
        sender_id: str,
        data: MessageCreate,
        user: AuthenticatedUser,
        **extra: Any,
    ) -> Tuple[str, Dict[str, Any]]:
        """Store one message, touch the sender and push to the target's room."""
        now = datetime.now(timezone.utc)
        message = V2VMessage(
            sender_vehicle_id=sender_id,
            target_vehicle_id=data.target_vehicle_id,
            message=data.message,
            type=data.type,
            priority=data.priority,
            status="sent",
            sender_info=SenderInfo(vehicle_id=sender_id, user_id=user.uid),
            timestamp=now,
            **extra,
        ).model_dump(exclude={"id"}, exclude_none=True)

        message_id = await self.store.add(Collections.MESSAGES, message)
        if not await self.store.update(Collections.VEHICLES, sender_id, {
            "last_activity": now,
            "updated_at": now,
        }):
            logger.warning(f"Sender vehicle {sender_id} not found while sending {message_id}")

        message = {"id": message_id, **message}
        if self.connections is not None:
            await self.connections.send_to_vehicle(data.target_vehicle_id, "v2v-message", message)
        return message_id, message

    async def send_ai_message(
        self,
        sender_id: str,
        target_id: str,
        text: str,
        context: Optional[Dict[str, Any]],
        user: AuthenticatedUser,
    ) -> Tuple[str, Dict[str, Any], bool]:
        """Send an AI-enhanced text message, falling back to the original text."""
        context = dict(context or {})
        data = MessageCreate(
            target_vehicle_id=target_id,
            message=text,
            type=MessageType.TEXT,
            priority=context.get("priority") or MessagePriority.MEDIUM,
            use_ai=True,
        )

        sender = await self.get_vehicle(sender_id)
        target = await self.get_vehicle(target_id)
        ai_context = {
            **context,
            "sender_vehicle": sender,
            "target_vehicle": target,
            "message_type": "v2v_communication",
            "region": self.settings.monitoring_region,
            "user_id": user.uid,
        }

        try:
            if self.ai is None:
                raise AIServiceError("AI service not available")
            enhanced = await self.ai.enhance_v2v_message(text, ai_context)
        except AIServiceError as e:
            logger.warning(f"AI enhancement failed, sending original message: {e}")
            message_id, message = await self.send_message(
                sender_id, data, user, ai_enhanced=False, original_message=text,
            )
            return message_id, message, False

        data = data.model_copy(update={"message": enhanced["enhanced_message"]})
        message_id, message = await self.send_message(
            sender_id, data, user,
            ai_enhanced=True,
            original_message=text,
            ai_insights=enhanced["insights"],
        )
        return message_id, message, True

    async def broadcast_emergency(
        self, sender_id: str, data: EmergencyCreate, user: AuthenticatedUser
    ) -> Tuple[str, int]:
        """Store a master emergency message and one copy per nearby vehicle.

        Copies are written in batches after the master; a failure part way
        leaves the earlier writes in place.
        """
        master = V2VMessage(
            sender_vehicle_id=sender_id,
            type=MessageType.EMERGENCY,
            priority=MessagePriority.HIGH,
            status="broadcast",
            emergency_type=data.emergency_type,
            description=data.description,
            severity=data.severity,
            location=data.location,
            sender_info=SenderInfo(vehicle_id=sender_id, user_id=user.uid),
            timestamp=datetime.now(timezone.utc),
        ).model_dump(exclude={"id"}, exclude_none=True)
        master_id = await self.store.add(Collections.MESSAGES, master)

        nearby = await self.get_nearby_vehicles(sender_id, self.settings.broadcast_radius_km)
        if not nearby:
            logger.info(f"Emergency {master_id} from {sender_id} reached no vehicles")
            return master_id, 0

        copies = [
            {**master, "target_vehicle_id": vehicle["id"], "master_message_id": master_id}
            for vehicle in nearby
        ]
        copy_ids = await self.store.add_many(Collections.MESSAGES, copies)

        if self.connections is not None:
            for copy_id, copy in zip(copy_ids, copies):
                await self.connections.send_to_vehicle(
                    copy["target_vehicle_id"], "emergency-broadcast", {"id": copy_id, **copy}
                )

        logger.info(f"Emergency {master_id} broadcast to {len(copies)} vehicles")
        return master_id, len(copies)

    async def get_messages(self, vehicle_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return await self.store.query(
            Collections.MESSAGES,
            filters=[("target_vehicle_id", "==", vehicle_id)],
            order_by="timestamp",
            descending=True,
            limit=limit,
        )

    # ==================== Fleet ====================

    async def get_stats(self, now: Optional[datetime] = None) -> V2VStats:
        now = now or datetime.now(timezone.utc)
        vehicles = await self.store.query(Collections.VEHICLES)
        messages = await self.store.query(
            Collections.MESSAGES,
            filters=[("timestamp", ">=", now - timedelta(hours=24))],
        )

        active = sum(
            1 for v in vehicles
            if minutes_since(v.get("last_seen"), now) <= self.settings.vehicle_inactive_minutes
        )
        return V2VStats(
            total_vehicles=len(vehicles),
            active_vehicles=active,
            inactive_vehicles=len(vehicles) - active,
            total_messages_24h=len(messages),
            emergency_messages_24h=sum(1 for m in messages if m.get("type") == MessageType.EMERGENCY),
            by_vehicle_type=dict(Counter(v.get("vehicle_type", "unknown") for v in vehicles)),
            last_updated=now,
        )

    async def sweep_statuses(self, now: Optional[datetime] = None) -> int:
        """Recompute liveness for active/warning vehicles and persist the changes."""
        now = now or datetime.now(timezone.utc)
        vehicles = await self.store.query(
            Collections.VEHICLES,
            filters=[("status", "in", [VehicleStatuses.ACTIVE, VehicleStatuses.WARNING])],
        )

        updates = {}
        for vehicle in vehicles:
            status = self._status(vehicle.get("last_seen"), now)
            if status != vehicle.get("status"):
                updates[vehicle["id"]] = {"status": status, "updated_at": now}

        if updates:
            await self.store.update_many(Collections.VEHICLES, updates)
            logger.info(f"Updated {len(updates)} vehicle statuses")
        return len(updates)
