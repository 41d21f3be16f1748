"""
Common schema definitions used across the API.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python and storage."""
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


class Coordinates(BaseSchema):
    """Geographic point, optionally with depth in km."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    depth: Optional[float] = None


class LatLng(BaseSchema):
    lat: float
    lng: float


class StatusResponse(BaseSchema):
    """Generic status response."""
    success: bool = True
    message: str


class ErrorResponse(BaseSchema):
    """Error envelope."""
    success: bool = False
    error: str
    details: Optional[List[Dict[str, Any]]] = None


class HealthCheckResponse(BaseSchema):
    """Health check response."""
    status: str
    service: str
    version: str
    environment: str
    uptime: float
    timestamp: datetime
