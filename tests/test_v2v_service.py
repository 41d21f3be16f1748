from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from disaster_monitor.config import Collections
from disaster_monitor.exceptions import AIServiceError
from disaster_monitor.schemas.v2v import EmergencyCreate, LocationUpdate, MessageCreate, VehicleRegister
from disaster_monitor.services.geo import bounding_box, haversine_km, longitude_ranges
from disaster_monitor.services.v2v_service import V2VService, vehicle_status


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

# Tokyo Station and points at known distances from it
TOKYO = (35.6812, 139.7671)


def vehicle_doc(lat, lon, status="active", minutes_ago=0, vehicle_type="car"):
    return {
        "vehicle_type": vehicle_type,
        "make": "Toyota",
        "model": "Prius",
        "year": 2020,
        "location": {"latitude": lat, "longitude": lon, "heading": 0, "speed": 0},
        "user_id": "alice",
        "status": status,
        "last_seen": NOW - timedelta(minutes=minutes_ago),
    }


async def seed(store, doc_id, doc):
    await store.set(Collections.VEHICLES, doc_id, doc)
    return doc_id


@pytest.fixture
def service(store, settings):
    return V2VService(store, settings=settings)


# ==================== Geometry ====================

def test_haversine_known_distance():
    # Tokyo to Osaka is roughly 400 km
    assert 390 < haversine_km(35.6812, 139.7671, 34.7025, 135.4959) < 410
    assert haversine_km(*TOKYO, *TOKYO) == 0


def test_bounding_box_encloses_radius():
    min_lat, max_lat, min_lon, max_lon = bounding_box(*TOKYO, 10)
    assert min_lat < TOKYO[0] < max_lat
    assert min_lon < TOKYO[1] < max_lon
    # the box corners along each axis lie at or beyond the radius
    assert haversine_km(*TOKYO, max_lat, TOKYO[1]) >= 10
    assert haversine_km(*TOKYO, TOKYO[0], max_lon) >= 10


def test_bounding_box_near_pole_is_capped():
    _, _, min_lon, max_lon = bounding_box(89.999, 0, 50)
    assert max_lon - min_lon <= 360


def test_longitude_ranges_split_at_antimeridian():
    assert longitude_ranges(10, 20) == [(10, 20)]
    assert longitude_ranges(179.9, 180.1) == [(179.9, 180), (-180, pytest.approx(-179.9))]
    assert longitude_ranges(-180.1, -179.9) == [(pytest.approx(179.9), 180), (-180, -179.9)]
    assert longitude_ranges(-180, 180) is None


# ==================== Status ====================

@pytest.mark.parametrize("minutes, expected", [
    (0, "active"),
    (9.9, "active"),
    (10, "active"),
    (10.5, "warning"),
    (30, "warning"),
    (31, "inactive"),
])
def test_vehicle_status_boundaries(minutes, expected):
    assert vehicle_status(NOW - timedelta(minutes=minutes), NOW) == expected


def test_vehicle_status_never_seen_is_inactive():
    assert vehicle_status(None, NOW) == "inactive"


# ==================== Registry ====================

@pytest.mark.asyncio
async def test_register_vehicle_sets_owner_and_status(service, store, user):
    data = VehicleRegister(
        vehicle_type="truck", make="Isuzu", model="Elf", year=2019,
        location={"latitude": 35.0, "longitude": 139.0},
    )

    vehicle_id, vehicle = await service.register_vehicle(data, user)

    stored = await store.get(Collections.VEHICLES, vehicle_id)
    assert stored["user_id"] == "alice"
    assert stored["owner_email"] == "alice@example.com"
    assert stored["status"] == "active"
    assert stored["vehicle_type"] == "truck"
    assert vehicle["id"] == vehicle_id


@pytest.mark.asyncio
async def test_update_location_unknown_vehicle(service):
    location = LocationUpdate(latitude=1, longitude=2)
    assert await service.update_vehicle_location("missing", location) is False


@pytest.mark.asyncio
async def test_update_location_reactivates(service, store):
    await seed(store, "v1", vehicle_doc(*TOKYO, status="inactive", minutes_ago=60))

    assert await service.update_vehicle_location("v1", LocationUpdate(latitude=35.0, longitude=139.0, speed=40))

    stored = await store.get(Collections.VEHICLES, "v1")
    assert stored["status"] == "active"
    assert stored["location"]["speed"] == 40


# ==================== Nearby ====================

@pytest.mark.asyncio
async def test_nearby_excludes_self_and_out_of_radius(service, store):
    await seed(store, "me", vehicle_doc(*TOKYO))
    await seed(store, "close", vehicle_doc(35.6900, 139.7700))          # ~1 km
    await seed(store, "closer", vehicle_doc(35.6820, 139.7680))         # ~0.1 km
    await seed(store, "corner", vehicle_doc(35.7600, 139.8600))         # in the box, ~12 km
    await seed(store, "far", vehicle_doc(34.7025, 135.4959))            # Osaka
    await seed(store, "idle", vehicle_doc(35.6830, 139.7680, status="inactive"))

    nearby = await service.get_nearby_vehicles("me", 10)

    assert [v["id"] for v in nearby] == ["closer", "close"]
    for vehicle in nearby:
        assert vehicle["distance"] <= 10
        assert vehicle["id"] != "me"


@pytest.mark.asyncio
async def test_nearby_crosses_the_antimeridian(service, store):
    await seed(store, "me", vehicle_doc(-17.0, 179.99))
    await seed(store, "east", vehicle_doc(-17.0, -179.99))
    await seed(store, "west", vehicle_doc(-17.0, 179.95))

    nearby = await service.get_nearby_vehicles("me", 10)

    assert sorted(v["id"] for v in nearby) == ["east", "west"]
    east = next(v for v in nearby if v["id"] == "east")
    assert east["distance"] < 3


@pytest.mark.asyncio
async def test_nearby_unknown_vehicle_returns_none(service):
    assert await service.get_nearby_vehicles("ghost", 10) is None


@pytest.mark.asyncio
async def test_vehicle_status_reports_minutes(service, store):
    await seed(store, "v1", vehicle_doc(*TOKYO, minutes_ago=15))

    status = await service.get_vehicle_status("v1", now=NOW)

    assert status["status"] == "warning"
    assert status["time_since_last_seen"] == 15
    assert await service.get_vehicle_status("missing", now=NOW) is None


# ==================== Messages ====================

@pytest.mark.asyncio
async def test_send_message_stores_and_pushes(store, settings, user):
    await seed(store, "sender", vehicle_doc(*TOKYO))
    connections = MagicMock()
    connections.send_to_vehicle = AsyncMock(return_value=1)
    service = V2VService(store, connections=connections, settings=settings)

    message_id, message = await service.send_message(
        "sender", MessageCreate(target_vehicle_id="target", message="Road blocked"), user,
        ai_enhanced=False,
    )

    stored = await store.get(Collections.MESSAGES, message_id)
    assert stored["status"] == "sent"
    assert stored["type"] == "info"
    assert stored["priority"] == "medium"
    assert stored["sender_info"] == {"vehicle_id": "sender", "user_id": "alice"}
    assert "last_activity" in await store.get(Collections.VEHICLES, "sender")
    connections.send_to_vehicle.assert_awaited_once()
    assert connections.send_to_vehicle.call_args.args[:2] == ("target", "v2v-message")
    assert message["id"] == message_id


@pytest.mark.asyncio
async def test_ai_message_enhanced(store, settings, user):
    await seed(store, "sender", vehicle_doc(*TOKYO))
    ai = MagicMock()
    ai.enhance_v2v_message = AsyncMock(return_value={
        "enhanced_message": "URGENT: road blocked ahead",
        "insights": "Obstruction reported",
        "urgency": "high",
        "message_type": "warning",
    })
    service = V2VService(store, ai=ai, settings=settings)

    message_id, message, enhanced = await service.send_ai_message(
        "sender", "target", "road blocked", {}, user
    )

    assert enhanced is True
    assert message["message"] == "URGENT: road blocked ahead"
    assert message["original_message"] == "road blocked"
    assert message["ai_insights"] == "Obstruction reported"
    assert message["type"] == "text"


@pytest.mark.asyncio
async def test_ai_failure_falls_back_to_original(store, settings, user):
    await seed(store, "sender", vehicle_doc(*TOKYO))
    ai = MagicMock()
    ai.enhance_v2v_message = AsyncMock(side_effect=AIServiceError("quota"))
    service = V2VService(store, ai=ai, settings=settings)

    message_id, message, enhanced = await service.send_ai_message(
        "sender", "target", "road blocked", {}, user
    )

    assert enhanced is False
    stored = await store.get(Collections.MESSAGES, message_id)
    assert stored["message"] == "road blocked"
    assert stored["ai_enhanced"] is False
    assert stored["original_message"] == "road blocked"


@pytest.mark.asyncio
async def test_broadcast_stores_master_plus_one_copy_per_vehicle(service, store, user):
    await seed(store, "sender", vehicle_doc(*TOKYO))
    await seed(store, "a", vehicle_doc(35.70, 139.78))
    await seed(store, "b", vehicle_doc(35.60, 139.70))
    await seed(store, "c", vehicle_doc(35.90, 139.90))
    await seed(store, "far", vehicle_doc(34.7025, 135.4959))

    master_id, count = await service.broadcast_emergency(
        "sender",
        EmergencyCreate(emergency_type="flood", description="Bridge submerged", severity="critical"),
        user,
    )

    messages = store.docs(Collections.MESSAGES)
    assert count == 3
    assert len(messages) == count + 1
    copies = [m for m in messages if m.get("master_message_id") == master_id]
    assert sorted(m["target_vehicle_id"] for m in copies) == ["a", "b", "c"]
    assert all(m["type"] == "emergency" and m["priority"] == "high" for m in messages)


@pytest.mark.asyncio
async def test_broadcast_with_no_neighbours_stores_only_master(service, store, user):
    await seed(store, "sender", vehicle_doc(*TOKYO))

    master_id, count = await service.broadcast_emergency(
        "sender",
        EmergencyCreate(emergency_type="fire", description="Smoke", severity="high"),
        user,
    )

    assert count == 0
    assert [m["id"] for m in store.docs(Collections.MESSAGES)] == [master_id]


@pytest.mark.asyncio
async def test_get_messages_newest_first(service, store):
    for minutes in (30, 5, 15):
        await store.add(Collections.MESSAGES, {
            "target_vehicle_id": "v1", "message": str(minutes),
            "timestamp": NOW - timedelta(minutes=minutes),
        })
    await store.add(Collections.MESSAGES, {"target_vehicle_id": "v2", "timestamp": NOW})

    messages = await service.get_messages("v1", limit=2)

    assert [m["message"] for m in messages] == ["5", "15"]


# ==================== Fleet ====================

@pytest.mark.asyncio
async def test_stats(service, store):
    await seed(store, "a", vehicle_doc(*TOKYO, minutes_ago=1))
    await seed(store, "b", vehicle_doc(*TOKYO, minutes_ago=45, vehicle_type="truck"))
    await store.add(Collections.MESSAGES, {"type": "emergency", "timestamp": NOW - timedelta(hours=1)})
    await store.add(Collections.MESSAGES, {"type": "info", "timestamp": NOW - timedelta(hours=2)})
    await store.add(Collections.MESSAGES, {"type": "info", "timestamp": NOW - timedelta(days=2)})

    stats = await service.get_stats(now=NOW)

    assert stats.total_vehicles == 2
    assert stats.active_vehicles == 1
    assert stats.inactive_vehicles == 1
    assert stats.total_messages_24h == 2
    assert stats.emergency_messages_24h == 1
    assert stats.by_vehicle_type == {"car": 1, "truck": 1}


@pytest.mark.asyncio
async def test_sweep_statuses_updates_changed_vehicles_only(service, store):
    await seed(store, "fresh", vehicle_doc(*TOKYO, minutes_ago=2))
    await seed(store, "stale", vehicle_doc(*TOKYO, minutes_ago=20))
    await seed(store, "gone", vehicle_doc(*TOKYO, status="warning", minutes_ago=40))
    await seed(store, "shop", vehicle_doc(*TOKYO, status="maintenance", minutes_ago=600))

    changed = await service.sweep_statuses(now=NOW)

    assert changed == 2
    assert (await store.get(Collections.VEHICLES, "fresh"))["status"] == "active"
    assert (await store.get(Collections.VEHICLES, "stale"))["status"] == "warning"
    assert (await store.get(Collections.VEHICLES, "gone"))["status"] == "inactive"
    assert (await store.get(Collections.VEHICLES, "shop"))["status"] == "maintenance"
