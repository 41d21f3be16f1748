"""
AI Chat Service

Runs AI prompts on behalf of a user and keeps every interaction in the
user's chat history, tagged by kind.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Union

from disaster_monitor.config import Collections
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.schemas.chat import ChatType
from .gemini_service import GeminiService

logger = logging.getLogger(__name__)


class ChatService:
    """AI interactions and their stored history."""

    def __init__(self, store: DocumentStore, ai: GeminiService):
        self.store = store
        self.ai = ai

    async def _record(
        self,
        user_id: str,
        chat_type: ChatType,
        input_data: Union[str, Dict[str, Any]],
        response: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        return await self.store.add(Collections.CHAT_HISTORY, {
            "user_id": user_id,
            "type": getattr(chat_type, "value", chat_type),
            "input": input_data,
            "response": response,
            "context": context,
            "timestamp": datetime.now(timezone.utc),
        })

    async def _user_context(self, user_id: str, context: Dict[str, Any]) -> Dict[str, Any]:
        profile = await self.store.get(Collections.USERS, user_id) or {}
        return {
            **context,
            "recent_disasters": context.get("recent_disasters") or context.get("recentDisasters"),
            "user_role": profile.get("role") or "General public",
            "user_location": profile.get("location") or "Asia",
            "preferences": profile.get("preferences") or {},
        }

    async def send_message(
        self, user_id: str, message: str, context: Optional[Dict[str, Any]] = None
    ) -> str:
        chat_context = await self._user_context(user_id, context or {})
        response = await self.ai.chat(message, chat_context)
        await self._record(user_id, ChatType.CHAT, message, response, chat_context)
        return response

    async def analyze_disaster(self, user_id: str, disaster_data: Dict[str, Any]) -> str:
        analysis = await self.ai.analyze_disaster(disaster_data)
        await self._record(user_id, ChatType.DISASTER_ANALYSIS, disaster_data, analysis)
        return analysis

    async def generate_emergency_plan(
        self, user_id: str, disaster_type: str, location: str, severity: str
    ) -> str:
        plan = await self.ai.generate_emergency_plan(disaster_type, location, severity)
        await self._record(user_id, ChatType.EMERGENCY_PLAN, {
            "disaster_type": disaster_type,
            "location": location,
            "severity": severity,
        }, plan)
        return plan

    async def safety_recommendations(self, disaster_type: str, user_location: str) -> str:
        return await self.ai.generate_safety_recommendations(disaster_type, user_location)

    async def get_history(
        self, user_id: str, limit: int = 20, chat_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        filters = [("user_id", "==", user_id)]
        if chat_type:
            filters.append(("type", "==", getattr(chat_type, "value", chat_type)))
        return await self.store.query(
            Collections.CHAT_HISTORY,
            filters=filters,
            order_by="timestamp",
            descending=True,
            limit=limit,
        )

    async def delete_entry(self, user_id: str, entry_id: str) -> bool:
        """Delete an owned entry. False if missing; PermissionError if owned by someone else."""
        entry = await self.store.get(Collections.CHAT_HISTORY, entry_id)
        if entry is None:
            return False
        if entry.get("user_id") != user_id:
            logger.warning(f"User {user_id} tried to delete chat entry {entry_id} they do not own")
            raise PermissionError("Unauthorized to delete this entry")
        await self.store.delete(Collections.CHAT_HISTORY, entry_id)
        return True
