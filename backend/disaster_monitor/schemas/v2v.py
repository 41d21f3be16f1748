"""
Vehicle-to-vehicle schemas.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from pydantic import Field, field_validator
from enum import Enum

from .common import BaseSchema
from .disasters import Severity


class VehicleType(str, Enum):
    CAR = "car"
    TRUCK = "truck"
    MOTORCYCLE = "motorcycle"
    BUS = "bus"
    EMERGENCY = "emergency"


class VehicleStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class MessageType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    EMERGENCY = "emergency"
    TEXT = "text"


class MessagePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class VehicleLocation(BaseSchema):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    heading: float = Field(default=0, ge=0, le=360)
    speed: float = Field(default=0, ge=0)


# Requests

class VehicleRegister(BaseSchema):
    vehicle_type: VehicleType
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int
    location: VehicleLocation
    license_plate: Optional[str] = None

    @field_validator("year")
    @classmethod
    def year_in_range(cls, value: int) -> int:
        max_year = datetime.now(timezone.utc).year + 1
        if not 1900 <= value <= max_year:
            raise ValueError(f"Invalid year: must be between 1900 and {max_year}")
        return value


class LocationUpdate(VehicleLocation):
    pass


class MessageCreate(BaseSchema):
    target_vehicle_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: MessageType = MessageType.INFO
    priority: MessagePriority = MessagePriority.MEDIUM
    use_ai: bool = Field(default=True, alias="useAI")


class EmergencyCreate(BaseSchema):
    emergency_type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    severity: Severity
    location: Optional[VehicleLocation] = None


class AIResponseRequest(BaseSchema):
    message: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


# Documents

class SenderInfo(BaseSchema):
    vehicle_id: str
    user_id: Optional[str] = None


class Vehicle(BaseSchema):
    id: str
    vehicle_type: VehicleType
    make: str
    model: str
    year: int
    location: VehicleLocation
    license_plate: Optional[str] = None
    user_id: Optional[str] = None
    owner_email: Optional[str] = None
    status: VehicleStatus = VehicleStatus.ACTIVE
    last_seen: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NearbyVehicle(Vehicle):
    distance: float


class VehicleStatusData(Vehicle):
    time_since_last_seen: int


class V2VMessage(BaseSchema):
    id: Optional[str] = None
    sender_vehicle_id: str
    target_vehicle_id: Optional[str] = None
    message: Optional[str] = None
    type: MessageType
    priority: MessagePriority
    status: str
    ai_enhanced: bool = False
    original_message: Optional[str] = None
    ai_insights: Optional[str] = None
    sender_info: Optional[SenderInfo] = None
    timestamp: datetime

    # Emergency broadcasts
    emergency_type: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[Severity] = None
    location: Optional[VehicleLocation] = None
    master_message_id: Optional[str] = None


class V2VStats(BaseSchema):
    total_vehicles: int
    active_vehicles: int
    inactive_vehicles: int
    total_messages_24h: int
    emergency_messages_24h: int
    by_vehicle_type: Dict[str, int]
    last_updated: datetime


# Responses

class VehicleRegisterResponse(BaseSchema):
    success: bool = True
    vehicle_id: str
    data: Vehicle


class NearbyVehiclesResponse(BaseSchema):
    success: bool = True
    data: List[NearbyVehicle]
    count: int
    radius: float


class MessageSendResponse(BaseSchema):
    success: bool = True
    message_id: str
    data: V2VMessage
    ai_enhanced: bool


class BroadcastResponse(BaseSchema):
    success: bool = True
    message_id: str
    broadcast_count: int


class MessagesResponse(BaseSchema):
    success: bool = True
    data: List[V2VMessage]
    count: int


class VehicleStatusResponse(BaseSchema):
    success: bool = True
    data: VehicleStatusData


class V2VStatsResponse(BaseSchema):
    success: bool = True
    data: V2VStats


class AIReplyResponse(BaseSchema):
    success: bool = True
    response: str
    timestamp: datetime
