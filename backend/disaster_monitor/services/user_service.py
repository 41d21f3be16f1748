"""
User accounts: Firebase ID token verification and Firestore profiles.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import firebase_admin
from firebase_admin import auth
from starlette.concurrency import run_in_threadpool

from disaster_monitor.config import Collections
from disaster_monitor.exceptions import AuthenticationError
from disaster_monitor.models.base import DocumentStore
from disaster_monitor.schemas.auth import AuthenticatedUser, ProfileUpdate, UserPreferences

logger = logging.getLogger(__name__)

_TOKEN_ERRORS = (
    auth.InvalidIdTokenError,
    auth.ExpiredIdTokenError,
    auth.RevokedIdTokenError,
    auth.CertificateFetchError,
    auth.UserDisabledError,
    ValueError,
)


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens and manages identity-provider users."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    async def verify(self, id_token: str) -> AuthenticatedUser:
        try:
            claims = await run_in_threadpool(auth.verify_id_token, id_token, self.app)
        except _TOKEN_ERRORS as e:
            logger.warning(f"Token verification failed: {e}")
            raise AuthenticationError(str(e)) from e
        return AuthenticatedUser(
            uid=claims["uid"],
            email=claims.get("email"),
            name=claims.get("name"),
            picture=claims.get("picture"),
            email_verified=claims.get("email_verified", False),
        )

    async def delete_user(self, uid: str) -> None:
        await run_in_threadpool(auth.delete_user, uid, self.app)


class UserService:
    """Profiles keyed by the identity-provider uid."""

    def __init__(self, store: DocumentStore, verifier: Optional[FirebaseTokenVerifier] = None):
        self.store = store
        self.verifier = verifier

    async def verify_and_sync(self, id_token: str) -> Dict[str, Any]:
        """Verify a token and create or refresh the matching profile."""
        user = await self.verifier.verify(id_token)
        now = datetime.now(timezone.utc)
        profile = user.model_dump()

        existing = await self.store.get(Collections.USERS, user.uid)
        if existing is not None:
            existing.pop("id", None)
            profile = {**profile, **existing, "last_login_at": now}
            await self.store.update(Collections.USERS, user.uid, {"last_login_at": now})
        else:
            profile = {
                **profile,
                "preferences": UserPreferences().model_dump(),
                "created_at": now,
                "last_login_at": now,
            }
            await self.store.set(Collections.USERS, user.uid, profile)
            logger.info(f"Created profile for user {user.uid}")
        return profile

    async def get_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        profile = await self.store.get(Collections.USERS, uid)
        if profile is not None:
            profile.pop("id", None)
        return profile

    async def update_profile(self, uid: str, data: ProfileUpdate) -> bool:
        changes = data.model_dump(exclude_unset=True)
        changes["updated_at"] = datetime.now(timezone.utc)
        return await self.store.update(Collections.USERS, uid, changes)

    async def delete_account(self, uid: str) -> None:
        await self.store.delete(Collections.USERS, uid)
        if self.verifier is not None:
            await self.verifier.delete_user(uid)
        logger.info(f"Deleted account {uid}")
