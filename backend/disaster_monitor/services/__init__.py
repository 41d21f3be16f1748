"""
Services for the disaster monitor and V2V messaging API
"""

from .usgs_service import USGSService
from .weather_api_service import WeatherAPIService
from .volcano_service import VolcanoService
from .disaster_service import DisasterService
from .analytics_service import AnalyticsService
from .gemini_service import GeminiService
from .v2v_service import V2VService
from .chat_service import ChatService
from .user_service import UserService, FirebaseTokenVerifier

__all__ = [
    "USGSService",
    "WeatherAPIService",
    "VolcanoService",
    "DisasterService",
    "AnalyticsService",
    "GeminiService",
    "V2VService",
    "ChatService",
    "UserService",
    "FirebaseTokenVerifier",
]
