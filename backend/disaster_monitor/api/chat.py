"""
AI Chat API Routes
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from disaster_monitor.exceptions import AIServiceError
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.schemas.auth import AuthenticatedUser
from disaster_monitor.schemas.chat import (
    ChatType, ChatMessageRequest, AnalyzeDisasterRequest, EmergencyPlanRequest,
    SafetyRecommendationsRequest, ChatRecord, ChatReplyResponse, AnalysisResponse,
    EmergencyPlanResponse, SafetyRecommendationsResponse, ChatHistoryResponse,
)
from disaster_monitor.schemas.common import StatusResponse
from disaster_monitor.services.chat_service import ChatService
from disaster_monitor.services.gemini_service import GeminiService
from .deps import get_store, get_ai_service, get_current_user

router = APIRouter()


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/message", response_model=ChatReplyResponse)
async def send_chat_message(
    data: ChatMessageRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
):
    """Ask the assistant a question, with context from the caller's profile."""
    service = ChatService(store, ai)
    try:
        response = await service.send_message(user.uid, data.message, data.context)
    except AIServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return ChatReplyResponse(response=response, timestamp=_now())


@router.post("/analyze-disaster", response_model=AnalysisResponse)
async def analyze_disaster(
    data: AnalyzeDisasterRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
):
    service = ChatService(store, ai)
    try:
        analysis = await service.analyze_disaster(user.uid, data.disaster_data)
    except AIServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return AnalysisResponse(analysis=analysis, timestamp=_now())


@router.post("/emergency-plan", response_model=EmergencyPlanResponse)
async def generate_emergency_plan(
    data: EmergencyPlanRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
):
    service = ChatService(store, ai)
    try:
        plan = await service.generate_emergency_plan(
            user.uid, data.disaster_type, data.location, data.severity
        )
    except AIServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return EmergencyPlanResponse(
        plan=plan,
        disaster_type=data.disaster_type,
        location=data.location,
        severity=data.severity,
        timestamp=_now(),
    )


@router.post("/safety-recommendations", response_model=SafetyRecommendationsResponse)
async def safety_recommendations(
    data: SafetyRecommendationsRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
):
    service = ChatService(store, ai)
    try:
        recommendations = await service.safety_recommendations(data.disaster_type, data.user_location)
    except AIServiceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return SafetyRecommendationsResponse(
        recommendations=recommendations,
        disaster_type=data.disaster_type,
        user_location=data.user_location,
        timestamp=_now(),
    )


@router.get("/history", response_model=ChatHistoryResponse)
async def get_chat_history(
    limit: int = Query(20, ge=1, le=100),
    type: Optional[ChatType] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
):
    """The caller's AI interactions, newest first."""
    service = ChatService(store, ai)
    entries = await service.get_history(user.uid, limit, type)
    records = [ChatRecord.model_validate(entry) for entry in entries]
    return ChatHistoryResponse(data=records, count=len(records))


@router.delete("/history/{entry_id}", response_model=StatusResponse)
async def delete_chat_entry(
    entry_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    ai: GeminiService = Depends(get_ai_service),
):
    service = ChatService(store, ai)
    try:
        deleted = await service.delete_entry(user.uid, entry_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Chat history entry not found")
    return StatusResponse(message="Chat history entry deleted successfully")
