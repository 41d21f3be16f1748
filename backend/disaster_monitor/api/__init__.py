"""
API Routes for the disaster monitor and V2V messaging service
"""

from fastapi import APIRouter

from .auth import router as auth_router
from .disasters import router as disasters_router
from .chat import router as chat_router
from .v2v import router as v2v_router
from .analytics import router as analytics_router

# Main API router
api_router = APIRouter()

api_router.include_router(
    auth_router,
    prefix="/auth",
    tags=["Authentication"]
)

api_router.include_router(
    disasters_router,
    prefix="/disasters",
    tags=["Disasters"]
)

api_router.include_router(
    chat_router,
    prefix="/chat",
    tags=["AI Chat"]
)

api_router.include_router(
    v2v_router,
    prefix="/v2v",
    tags=["V2V Messaging"]
)

api_router.include_router(
    analytics_router,
    prefix="/analytics",
    tags=["Analytics"]
)

__all__ = ["api_router"]
