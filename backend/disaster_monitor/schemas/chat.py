"""
AI chat, analysis and planning schemas.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Union
from pydantic import Field
from enum import Enum

from .common import BaseSchema


class ChatType(str, Enum):
    CHAT = "chat"
    DISASTER_ANALYSIS = "disaster_analysis"
    EMERGENCY_PLAN = "emergency_plan"


class ChatMessageRequest(BaseSchema):
    message: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)


class AnalyzeDisasterRequest(BaseSchema):
    disaster_data: Dict[str, Any]


class EmergencyPlanRequest(BaseSchema):
    disaster_type: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    severity: str = Field(..., min_length=1)


class SafetyRecommendationsRequest(BaseSchema):
    disaster_type: str = Field(..., min_length=1)
    user_location: str = Field(..., min_length=1)


class ChatRecord(BaseSchema):
    """One stored AI interaction."""
    id: str
    user_id: str
    type: ChatType
    input: Union[str, Dict[str, Any]]
    response: str
    context: Optional[Dict[str, Any]] = None
    timestamp: datetime


class ChatReplyResponse(BaseSchema):
    success: bool = True
    response: str
    timestamp: datetime


class AnalysisResponse(BaseSchema):
    success: bool = True
    analysis: str
    timestamp: datetime


class EmergencyPlanResponse(BaseSchema):
    success: bool = True
    plan: str
    disaster_type: str
    location: str
    severity: str
    timestamp: datetime


class SafetyRecommendationsResponse(BaseSchema):
    success: bool = True
    recommendations: str
    disaster_type: str
    user_location: str
    timestamp: datetime


class ChatHistoryResponse(BaseSchema):
    success: bool = True
    data: List[ChatRecord]
    count: int
