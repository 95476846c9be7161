"""Access to the hosted Supabase project.

Every request that acts for a signed-in user gets its own client whose
PostgREST calls carry that user's access token, so the database's row-level
security policies decide what the caller can read or change. The anonymous
client is only used for auth calls (password sign-in, token lookups).
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from supabase import AuthError, Client, create_client

from .config import Settings
from .models import SessionUser

logger = logging.getLogger("coachdash.gateway")


class GatewayNotConfigured(RuntimeError):
    """Raised when the Supabase URL or anon key is missing."""


class SupabaseGateway:
    """Create Supabase clients for the configured project."""

    def __init__(
        self,
        url: Optional[str],
        anon_key: Optional[str],
        *,
        client_factory: Callable[[str, str], Any] = create_client,
    ) -> None:
        self._url = (url or "").strip().rstrip("/")
        self._anon_key = (anon_key or "").strip()
        self._client_factory = client_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseGateway":
        return cls(settings.supabase_url, settings.supabase_anon_key)

    @property
    def configured(self) -> bool:
        return bool(self._url and self._anon_key)

    def _new_client(self) -> Client:
        if not self.configured:
            raise GatewayNotConfigured("SUPABASE_URL and SUPABASE_ANON_KEY must be configured")
        return self._client_factory(self._url, self._anon_key)

    def anonymous(self) -> Client:
        return self._new_client()

    def for_token(self, access_token: str) -> Client:
        client = self._new_client()
        client.postgrest.auth(access_token)
        return client

    def get_user(self, access_token: str) -> Optional[SessionUser]:
        """Resolve ``access_token`` to a user, or ``None`` when it is not valid."""

        if not access_token:
            return None
        try:
            response = self.anonymous().auth.get_user(access_token)
        except AuthError as exc:
            logger.info("Rejected session token: %s", exc)
            return None
        user = getattr(response, "user", None) if response is not None else None
        if user is None:
            return None
        return SessionUser.from_auth_user(user)

    def sign_in(self, email: str, password: str) -> Optional[str]:
        """Exchange credentials for an access token."""

        try:
            response = self.anonymous().auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as exc:
            logger.info("Sign-in rejected: %s", exc)
            return None
        session = getattr(response, "session", None)
        if session is None:
            return None
        return session.access_token


__all__ = ["GatewayNotConfigured", "SupabaseGateway"]
