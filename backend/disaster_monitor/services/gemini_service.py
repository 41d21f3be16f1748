"""
Gemini AI Service

Prompt builders around the hosted Gemini model for disaster analysis,
chat, planning and V2V message enhancement.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import google.generativeai as genai

from disaster_monitor.exceptions import AIServiceError

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """First-brace-to-last-brace JSON object in a model reply, if it parses."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse AI response as JSON: {e}")
        return None
    return parsed if isinstance(parsed, dict) else None


def _json_block(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class GeminiService:
    """Thin async wrapper over a Gemini GenerativeModel."""

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-1.5-flash",
        model: Any = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.model = model
        if self.model is None and api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)
        if self.model is None:
            logger.warning("GEMINI_API_KEY not configured; AI features are disabled")

    @property
    def configured(self) -> bool:
        return self.model is not None

    async def _generate(self, prompt: str, operation: str) -> str:
        if self.model is None:
            raise AIServiceError("Gemini API key not configured")
        try:
            response = await self.model.generate_content_async(prompt)
            return response.text
        except Exception as e:
            logger.error(f"Gemini {operation} failed: {e}")
            raise AIServiceError(f"AI {operation} failed: {e}") from e

    async def analyze_disaster(self, disaster: Dict[str, Any]) -> str:
        coords = disaster.get("coordinates")
        if not isinstance(coords, dict):
            coords = {}
        prompt = f"""
Review this disaster event and summarise what responders and residents need to know.

Type: {disaster.get('type')}
Location: {disaster.get('location')}
Magnitude or severity: {disaster.get('magnitude') or disaster.get('severity')}
Time: {disaster.get('time')}
Coordinates: {coords.get('latitude')}, {coords.get('longitude')}

Cover, briefly:
1. Regional risk
2. Likely impact on surrounding areas
3. Safety advice for the public
4. Suggested emergency response
5. What to keep monitoring over the coming weeks
"""
        return await self._generate(prompt, "disaster analysis")

    async def chat(self, message: str, context: Optional[Dict[str, Any]] = None) -> str:
        context = context or {}
        system_prompt = f"""
You assist with natural disaster preparedness and emergency response across Asia,
covering earthquakes, severe storms, tsunamis and volcanic activity.

Region: {context.get('region') or 'Asia'}
User role: {context.get('user_role') or 'General public'}
User location: {context.get('user_location') or 'Not specified'}
Recent disasters: {context.get('recent_disasters') or 'None specified'}

Rules:
- Stick to established science and official emergency guidance.
- Put immediate safety actions before longer-term planning.
- Point to local emergency services when that helps.
- Say so when unsure and refer the user to official sources.
- Keep answers short.
"""
        return await self._generate(f"{system_prompt}\nUser question: {message}", "chat")

    async def generate_emergency_plan(self, disaster_type: str, location: str, severity: str) -> str:
        prompt = f"""
Draft an emergency response plan for an emergency management team.

Disaster type: {disaster_type}
Location: {location}
Severity: {severity}

Structure it as:
1. First 24 hours
2. Days 1-7
3. Weeks 1-4
4. Beyond the first month
5. Resources needed
6. Communication protocol
7. Evacuation procedure, where relevant
8. Safety checklist
"""
        return await self._generate(prompt, "emergency plan")

    async def analyze_trends(self, data: Dict[str, Any]) -> str:
        prompt = f"""
Identify trends in the following disaster analytics.

{_json_block(data)}

Report on key trends, seasonal patterns, geographic hotspots, severity patterns,
an outlook for the next 30 days, preparedness recommendations and areas of concern.
"""
        return await self._generate(prompt, "trend analysis")

    async def generate_safety_recommendations(self, disaster_type: str, user_location: str) -> str:
        prompt = f"""
Give personal safety recommendations for someone at {user_location} facing a {disaster_type}.

Include immediate measures, an emergency kit list, evacuation planning,
how to stay in contact, preparing home and workplace, community resources,
warning signs, and recovery steps. Tailor them to the location.
"""
        return await self._generate(prompt, "safety recommendations")

    async def enhance_v2v_message(self, text: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Rewrite a V2V message for clarity. Falls back to the raw reply when it is not JSON."""
        context = context or {}
        sender = context.get("sender_vehicle")
        target = context.get("target_vehicle")
        prompt = f"""
You rewrite vehicle-to-vehicle (V2V) messages exchanged during disaster response in Asia.

Message: "{text}"

Sender vehicle: {_json_block(sender) if sender else 'Unknown'}
Target vehicle: {_json_block(target) if target else 'Unknown'}
Message type: {context.get('message_type') or 'v2v_communication'}
Region: {context.get('region') or 'Asia'}

Make it clear and professional, mark the urgency, and add safety information
only if it is relevant. Keep it under 200 characters.

Reply with JSON only:
{{"enhanced_message": "...", "insights": "...", "urgency": "low|medium|high|critical", "message_type": "info|warning|emergency|coordination"}}
"""
        reply = await self._generate(prompt, "message enhancement")

        parsed = extract_json_object(reply)
        if parsed is None:
            return {
                "enhanced_message": reply.strip(),
                "insights": "AI-enhanced message",
                "urgency": "medium",
                "message_type": "info",
            }
        return {
            "enhanced_message": parsed.get("enhanced_message") or parsed.get("enhancedMessage") or text,
            "insights": parsed.get("insights") or "",
            "urgency": parsed.get("urgency") or "medium",
            "message_type": parsed.get("message_type") or parsed.get("messageType") or "info",
        }

    async def generate_v2v_response(self, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        context = context or {}
        prompt = f"""
Reply on behalf of a V2V assistant during a disaster response.

Incoming message: "{text}"
Region: {context.get('region') or 'Asia'}
Message type: {context.get('message_type') or 'v2v_communication'}
Sender context: {context.get('sender_context') or 'Emergency vehicle communication'}

Acknowledge the message, add any useful coordination or safety information,
and stay under 150 characters.
"""
        return (await self._generate(prompt, "V2V response")).strip()
