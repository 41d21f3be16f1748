"""
Authentication and user profile schemas.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import Field

from .common import BaseSchema


class AuthenticatedUser(BaseSchema):
    """Claims taken from a verified identity-provider token."""
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    email_verified: bool = False


class VerifyTokenRequest(BaseSchema):
    id_token: str = Field(..., min_length=1)


class UserPreferences(BaseSchema):
    notifications: bool = True
    language: str = "en"
    region: str = "asia"


class UserProfile(BaseSchema):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    email_verified: bool = False
    role: Optional[str] = None
    location: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=2)
    location: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None


class UserResponse(BaseSchema):
    success: bool = True
    user: UserProfile
