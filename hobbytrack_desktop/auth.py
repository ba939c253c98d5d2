"""Authentication against the hosted backend."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .api_client import ApiError, SupabaseClient
from .models import UserProfile

logger = logging.getLogger(__name__)


def profile_from_user(user: dict[str, Any]) -> UserProfile:
    """Build display metadata; the full name falls back to the email."""
    metadata = user.get("user_metadata") or {}
    email = user.get("email") or ""
    full_name = metadata.get("full_name")
    avatar = metadata.get("picture") or metadata.get("avatar_url")
    return UserProfile(
        id=str(user.get("id", "")),
        email=email,
        name=full_name if isinstance(full_name, str) and full_name else email,
        avatar_url=avatar if isinstance(avatar, str) else None,
    )


class AuthManager:
    """Keeps the signed-in user. The tracker only ever reads ``current_user_id``."""

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client
        self.current_user: Optional[dict[str, Any]] = None
        self.user_profile: Optional[UserProfile] = None
        self.refresh_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def current_user_id(self) -> Optional[str]:
        if not self.current_user:
            return None
        user_id = self.current_user.get("id")
        return str(user_id) if user_id else None

    # ------------------------------------------------------------------
    def restore_session(self, access_token: Optional[str]) -> bool:
        """Re-attach a stored access token. No token means signed out."""
        if not access_token:
            self._clear()
            return False
        self.client.access_token = access_token
        try:
            user = self.client.get_user()
        except ApiError as exc:
            logger.info("Stored session is no longer valid: %s", exc)
            self._clear()
            return False
        self._apply_user(user)
        return self.is_authenticated

    def sign_in_with_password(self, email: str, password: str) -> bool:
        try:
            session = self.client.token_with_password(email, password)
        except ApiError as exc:
            logger.warning("Sign in failed: %s", exc)
            self._clear()
            return False
        return self._apply_session(session)

    def sign_in_with_id_token(self, id_token: str, *, provider: str = "google") -> bool:
        if not id_token:
            logger.warning("No ID token received from %s", provider)
            return False
        try:
            session = self.client.token_with_id_token(provider, id_token)
        except ApiError as exc:
            logger.warning("Sign in with %s failed: %s", provider, exc)
            self._clear()
            return False
        return self._apply_session(session)

    def sign_out(self) -> None:
        if not self.is_authenticated:
            return
        try:
            self.client.logout()
        except ApiError as exc:
            logger.warning("Sign out failed: %s", exc)
            return
        self._clear()

    # ------------------------------------------------------------------
    def _apply_session(self, session: dict[str, Any]) -> bool:
        access_token = session.get("access_token")
        user = session.get("user")
        if not access_token or not isinstance(user, dict):
            logger.warning("Auth response did not contain a session")
            self._clear()
            return False
        self.client.access_token = access_token
        self.refresh_token = session.get("refresh_token")
        self._apply_user(user)
        return self.is_authenticated

    def _apply_user(self, user: dict[str, Any]) -> None:
        if not user.get("id"):
            self._clear()
            return
        self.current_user = user
        self.user_profile = profile_from_user(user)
        logger.info("Signed in as %s", self.user_profile.email or self.user_profile.id)

    def _clear(self) -> None:
        self.current_user = None
        self.user_profile = None
        self.refresh_token = None
        self.client.access_token = None


__all__ = ["AuthManager", "profile_from_user"]
