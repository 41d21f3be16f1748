"""
Authentication and Profile API Routes
"""

from fastapi import APIRouter, Depends, HTTPException

from disaster_monitor.exceptions import AuthenticationError
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.schemas.auth import (
    AuthenticatedUser, VerifyTokenRequest, ProfileUpdate, UserProfile, UserResponse,
)
from disaster_monitor.schemas.common import StatusResponse
from disaster_monitor.services.user_service import UserService
from .deps import get_store, get_token_verifier, get_current_user

router = APIRouter()


@router.post("/verify", response_model=UserResponse)
async def verify_token(
    data: VerifyTokenRequest,
    store: DocumentStore = Depends(get_store),
    verifier=Depends(get_token_verifier),
):
    """Verify a Firebase ID token and create or refresh the user's profile."""
    if verifier is None:
        raise HTTPException(status_code=503, detail="Authentication not configured")
    service = UserService(store, verifier)
    try:
        profile = await service.verify_and_sync(data.id_token)
    except AuthenticationError:
        raise HTTPException(status_code=401, detail="Invalid token or authentication failed")
    return UserResponse(user=UserProfile.model_validate(profile))


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    service = UserService(store)
    profile = await service.get_profile(user.uid)
    if profile is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    return UserResponse(user=UserProfile.model_validate({"uid": user.uid, **profile}))


@router.put("/profile", response_model=StatusResponse)
async def update_profile(
    data: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    service = UserService(store)
    if not await service.update_profile(user.uid, data):
        raise HTTPException(status_code=404, detail="User profile not found")
    return StatusResponse(message="Profile updated successfully")


@router.delete("/account", response_model=StatusResponse)
async def delete_account(
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    verifier=Depends(get_token_verifier),
):
    """Delete the profile document and the Firebase Auth user."""
    service = UserService(store, verifier)
    await service.delete_account(user.uid)
    return StatusResponse(message="Account deleted successfully")
