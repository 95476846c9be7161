"""Resolve the signed-in caller for API routes and dashboard pages."""

from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .gateway import SupabaseGateway
from .models import SessionUser

SESSION_TOKEN_KEY = "access_token"


class SessionResolver:
    """Look up the caller behind a session cookie or bearer token."""

    def __init__(self, gateway: SupabaseGateway) -> None:
        self._gateway = gateway
        self._bearer = HTTPBearer(auto_error=False)

    @staticmethod
    def remember(request: Request, access_token: str) -> None:
        request.session.clear()
        request.session[SESSION_TOKEN_KEY] = access_token

    @staticmethod
    def forget(request: Request) -> None:
        request.session.clear()

    async def access_token(self, request: Request) -> Optional[str]:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is not None and credentials.scheme.lower() == "bearer" and credentials.credentials:
            return credentials.credentials
        token = request.session.get(SESSION_TOKEN_KEY) if "session" in request.scope else None
        if isinstance(token, str) and token:
            return token
        return None

    def resolve_token(self, request: Request, token: Optional[str]) -> Optional[SessionUser]:
        if not token:
            return None
        user = self._gateway.get_user(token)
        if user is None and "session" in request.scope:
            request.session.pop(SESSION_TOKEN_KEY, None)
        return user


__all__ = ["SESSION_TOKEN_KEY", "SessionResolver"]
