"""
Shared route dependencies.

Long-lived clients are built once in the application lifespan and kept on
``app.state``; these getters hand them to routes.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from disaster_monitor.exceptions import AuthenticationError
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.realtime import ConnectionManager
from disaster_monitor.schemas.auth import AuthenticatedUser
from disaster_monitor.services.analytics_service import AnalyticsService
from disaster_monitor.services.disaster_service import DisasterService
from disaster_monitor.services.gemini_service import GeminiService
from disaster_monitor.services.user_service import FirebaseTokenVerifier

bearer_scheme = HTTPBearer(auto_error=False)


def get_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document store not configured",
        )
    return store


def get_optional_store(request: Request) -> Optional[DocumentStore]:
    return getattr(request.app.state, "store", None)


def get_ai_service(request: Request) -> GeminiService:
    return request.app.state.ai


def get_disaster_service(request: Request) -> DisasterService:
    return request.app.state.disaster_service


def get_analytics_service(
    disaster_service: DisasterService = Depends(get_disaster_service),
    store: Optional[DocumentStore] = Depends(get_optional_store),
) -> AnalyticsService:
    return AnalyticsService(disaster_service, store)


def get_connection_manager(request: Request) -> Optional[ConnectionManager]:
    return getattr(request.app.state, "connections", None)


def get_token_verifier(request: Request) -> Optional[FirebaseTokenVerifier]:
    return getattr(request.app.state, "token_verifier", None)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: Optional[FirebaseTokenVerifier] = Depends(get_token_verifier),
) -> AuthenticatedUser:
    """Require a valid bearer ID token."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if verifier is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication not configured",
        )
    try:
        return await verifier.verify(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: Optional[FirebaseTokenVerifier] = Depends(get_token_verifier),
) -> Optional[AuthenticatedUser]:
    """The caller if a valid token was sent; bad or missing tokens are ignored."""
    if credentials is None or verifier is None:
        return None
    try:
        return await verifier.verify(credentials.credentials)
    except AuthenticationError:
        return None
