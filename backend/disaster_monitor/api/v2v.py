"""
Vehicle-to-Vehicle API Routes
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from disaster_monitor.exceptions import AIServiceError
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.realtime import ConnectionManager
from disaster_monitor.schemas.auth import AuthenticatedUser
from disaster_monitor.schemas.common import StatusResponse
from disaster_monitor.schemas.v2v import (
    VehicleRegister, LocationUpdate, MessageCreate, EmergencyCreate, AIResponseRequest,
    Vehicle, NearbyVehicle, V2VMessage, VehicleStatusData,
    VehicleRegisterResponse, NearbyVehiclesResponse, MessageSendResponse,
    BroadcastResponse, MessagesResponse, VehicleStatusResponse, V2VStatsResponse,
    AIReplyResponse,
)
from disaster_monitor.services.gemini_service import GeminiService
from disaster_monitor.services.v2v_service import V2VService
from .deps import get_store, get_ai_service, get_connection_manager, get_current_user

router = APIRouter()


def get_v2v_service(
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
    connections: Optional[ConnectionManager] = Depends(get_connection_manager),
) -> V2VService:
    return V2VService(store, ai, connections)


async def _require_vehicle(service: V2VService, vehicle_id: str) -> dict:
    vehicle = await service.get_vehicle(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


@router.get("/stats", response_model=V2VStatsResponse)
async def get_v2v_stats(
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    return V2VStatsResponse(data=await service.get_stats())


@router.post("/register", response_model=VehicleRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_vehicle(
    data: VehicleRegister,
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    """Register a vehicle owned by the caller."""
    vehicle_id, vehicle = await service.register_vehicle(data, user)
    return VehicleRegisterResponse(vehicle_id=vehicle_id, data=Vehicle.model_validate(vehicle))


@router.put("/{vehicle_id}/location", response_model=StatusResponse)
async def update_vehicle_location(
    vehicle_id: str,
    data: LocationUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    if not await service.update_vehicle_location(vehicle_id, data):
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return StatusResponse(message="Vehicle location updated successfully")


@router.post("/{vehicle_id}/message", response_model=MessageSendResponse)
async def send_message(
    vehicle_id: str,
    data: MessageCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    """Send a message to another vehicle, AI-enhanced unless useAI is false."""
    await _require_vehicle(service, vehicle_id)

    if data.use_ai:
        message_id, message, enhanced = await service.send_ai_message(
            vehicle_id,
            data.target_vehicle_id,
            data.message,
            {"message_type": data.type, "priority": data.priority},
            user,
        )
    else:
        message_id, message = await service.send_message(vehicle_id, data, user, ai_enhanced=False)
        enhanced = False

    return MessageSendResponse(
        message_id=message_id,
        data=V2VMessage.model_validate(message),
        ai_enhanced=enhanced,
    )


@router.post("/{vehicle_id}/emergency", response_model=BroadcastResponse)
async def broadcast_emergency(
    vehicle_id: str,
    data: EmergencyCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    """Broadcast an emergency to every active vehicle in the broadcast radius."""
    message_id, count = await service.broadcast_emergency(vehicle_id, data, user)
    return BroadcastResponse(message_id=message_id, broadcast_count=count)


@router.get("/{vehicle_id}/nearby", response_model=NearbyVehiclesResponse)
async def get_nearby_vehicles(
    vehicle_id: str,
    radius: float = Query(10, ge=0.1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    vehicles = await service.get_nearby_vehicles(vehicle_id, radius)
    if vehicles is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return NearbyVehiclesResponse(
        data=[NearbyVehicle.model_validate(v) for v in vehicles],
        count=len(vehicles),
        radius=radius,
    )


@router.get("/{vehicle_id}/messages", response_model=MessagesResponse)
async def get_messages(
    vehicle_id: str,
    limit: int = Query(50, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    await _require_vehicle(service, vehicle_id)
    messages = await service.get_messages(vehicle_id, limit)
    return MessagesResponse(
        data=[V2VMessage.model_validate(m) for m in messages],
        count=len(messages),
    )


@router.get("/{vehicle_id}/status", response_model=VehicleStatusResponse)
async def get_vehicle_status(
    vehicle_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
):
    vehicle = await service.get_vehicle_status(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return VehicleStatusResponse(data=VehicleStatusData.model_validate(vehicle))


@router.post("/{vehicle_id}/ai-response", response_model=AIReplyResponse)
async def generate_ai_response(
    vehicle_id: str,
    data: AIResponseRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: V2VService = Depends(get_v2v_service),
    ai: GeminiService = Depends(get_ai_service),
):
    """Suggest a reply to a V2V message."""
    await _require_vehicle(service, vehicle_id)
    context = {
        **data.context,
        "vehicle_id": vehicle_id,
        "user_id": user.uid,
        "region": "Asia",
    }
    try:
        response = await ai.generate_v2v_response(data.message, context)
    except AIServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return AIReplyResponse(response=response, timestamp=datetime.now(timezone.utc))
