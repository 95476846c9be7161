"""JSON endpoints for the coaching dashboard."""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional

import anyio
import httpx
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from postgrest.exceptions import APIError as PostgrestError
from pydantic import BaseModel, ConfigDict, Field

from .admin import HashCheck, is_user_admin, verify_admin_hash
from .competitors import import_competitors
from .config import Settings
from .deliverability import EmailDeliverabilityChecker
from .errors import APIError, INTERNAL_ERROR_MESSAGE
from .gateway import SupabaseGateway
from .models import DRAFT_COLUMNS, Draft, SessionUser
from .sessions import SessionResolver

logger = logging.getLogger("coachdash.api")

AUTH_ENDPOINTS = [
    "/api/auth/signin",
    "/api/auth/callback",
    "/api/auth/signout",
    "/api/auth/session",
    "/api/auth/csrf",
    "/api/auth/providers",
    "/api/auth/test",
]

INVALID_EMAIL_MESSAGE = "Please enter a valid email address."
_PARENT_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class DraftUpsertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    mode: Literal["dm", "group", "announcement", "reply", "forward"]
    body: Optional[str] = ""
    subject: Optional[str] = ""
    high_priority: Optional[bool] = Field(default=False, alias="highPriority")
    dm_recipient_id: Optional[str] = Field(default=None, alias="dmRecipientId")
    group_recipient_ids: Optional[List[str]] = Field(default=None, alias="groupRecipientIds")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    thread_id: Optional[str] = Field(default=None, alias="threadId")

    def to_record(self, user_id: str) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "user_id": user_id,
            "mode": self.mode,
            "body": self.body or "",
            "subject": self.subject or "",
            "high_priority": bool(self.high_priority),
            "dm_recipient_id": self.dm_recipient_id,
            "group_recipient_ids": list(self.group_recipient_ids or []),
            "conversation_id": self.conversation_id,
            "thread_id": self.thread_id,
        }
        if self.id:
            record["id"] = self.id
        return record


class BulkImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rows: Optional[List[Dict[str, Any]]] = None
    on_conflict: Literal["skip", "update"] = Field(default="skip", alias="onConflict")


@dataclass(frozen=True)
class Caller:
    """An authenticated user plus a database client acting as that user."""

    user: SessionUser
    client: Any


def delegate_message(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc) or "Request failed"


def shape_conversations(rows: Optional[Iterable[Dict[str, Any]]], *, archived: bool) -> List[Dict[str, Any]]:
    """Keep the archived or active conversations and clamp their unread counts.

    A conversation counts as archived only when every one of its messages is,
    which the database reports as ``all_archived``.
    """

    shaped: List[Dict[str, Any]] = []
    for row in rows or []:
        if (row.get("all_archived") is True) != archived:
            continue
        conversation = dict(row)
        if conversation.get("last_message_at"):
            try:
                unread = int(conversation.get("unread_count") or 0)
            except (TypeError, ValueError):
                unread = 0
            conversation["unread_count"] = max(0, unread)
        else:
            conversation["unread_count"] = 0
        shaped.append(conversation)
    return shaped


def debug_environment(settings: Settings) -> Dict[str, object]:
    return {
        "nodeEnv": settings.environment,
        "hasNextAuthUrl": bool(settings.auth_url),
        "nextAuthUrl": settings.auth_url,
        "hasNextAuthSecret": bool(settings.session_secret),
        "hasAirtableClientId": bool(settings.airtable_client_id),
        "hasAirtableClientSecret": bool(settings.airtable_client_secret),
        "hasAirtableBaseId": bool(settings.airtable_base_id),
        "hasAccessToken": bool(settings.access_token),
    }


def register_api_routes(
    app: FastAPI,
    *,
    settings: Settings,
    gateway: SupabaseGateway,
    resolver: SessionResolver,
    email_checker: EmailDeliverabilityChecker,
) -> None:
    """Expose the JSON API under ``/api`` on the provided application."""

    router = APIRouter(prefix="/api")

    async def require_caller(request: Request) -> Caller:
        token = await resolver.access_token(request)
        user = await anyio.to_thread.run_sync(resolver.resolve_token, request, token)
        if user is None or token is None:
            raise APIError(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
        return Caller(user=user, client=gateway.for_token(token))

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @router.post("/admin/verify-access")
    async def verify_access(request: Request) -> Dict[str, bool]:
        try:
            body = await request.json()
        except ValueError as exc:
            logger.error("Error verifying access: unreadable body (%s)", exc)
            raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE) from exc

        submitted = body.get("hash") if isinstance(body, dict) else None
        outcome = verify_admin_hash(settings.admin_creation_key_hash, submitted)
        if outcome is HashCheck.MISSING:
            raise APIError(status.HTTP_400_BAD_REQUEST, "Hash required")
        if outcome is HashCheck.NOT_CONFIGURED:
            raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Admin creation not configured")
        if outcome is HashCheck.MISMATCH:
            logger.warning("Rejected admin creation hash")
            raise APIError(status.HTTP_401_UNAUTHORIZED, "Invalid hash")
        return {"authorized": True}

    @router.get("/messaging/conversations")
    def list_conversations(
        archived: Optional[str] = None,
        caller: Caller = Depends(require_caller),
    ) -> Dict[str, List[Dict[str, Any]]]:
        params = {"p_user_id": caller.user.id}
        try:
            rows = caller.client.rpc("list_conversations_enriched", params).execute().data
        except (PostgrestError, httpx.HTTPError) as exc:
            logger.info("Enriched conversation listing failed, using legacy listing: %s", delegate_message(exc))
            try:
                rows = caller.client.rpc("list_conversations_with_unread", params).execute().data
            except (PostgrestError, httpx.HTTPError) as legacy_exc:
                raise APIError(status.HTTP_400_BAD_REQUEST, delegate_message(legacy_exc)) from legacy_exc
        return {"conversations": shape_conversations(rows, archived=archived == "true")}

    @router.get("/messaging/drafts")
    def list_drafts(caller: Caller = Depends(require_caller)) -> Dict[str, List[Dict[str, Any]]]:
        try:
            response = (
                caller.client.table("message_drafts")
                .select(DRAFT_COLUMNS)
                .eq("user_id", caller.user.id)
                .order("updated_at", desc=True)
                .execute()
            )
        except PostgrestError as exc:
            raise APIError(status.HTTP_400_BAD_REQUEST, delegate_message(exc)) from exc
        return {"drafts": [Draft.from_row(row).to_payload() for row in response.data or []]}

    @router.post("/messaging/drafts")
    def save_draft(
        payload: DraftUpsertRequest,
        caller: Caller = Depends(require_caller),
    ) -> Dict[str, Dict[str, Any]]:
        try:
            response = (
                caller.client.table("message_drafts")
                .upsert(payload.to_record(caller.user.id), on_conflict="id")
                .execute()
            )
        except PostgrestError as exc:
            raise APIError(status.HTTP_400_BAD_REQUEST, delegate_message(exc)) from exc
        rows = response.data or []
        if not rows:
            raise APIError(status.HTTP_400_BAD_REQUEST, "Draft was not saved")
        return {"draft": Draft.from_row(rows[0]).to_payload()}

    @router.delete("/messaging/drafts/{draft_id}")
    def delete_draft(draft_id: str, caller: Caller = Depends(require_caller)) -> Dict[str, bool]:
        try:
            (
                caller.client.table("message_drafts")
                .delete()
                .eq("id", draft_id)
                .eq("user_id", caller.user.id)
                .execute()
            )
        except PostgrestError as exc:
            raise APIError(status.HTTP_400_BAD_REQUEST, delegate_message(exc)) from exc
        return {"ok": True}

    @router.get("/users/admins")
    def list_admins(caller: Caller = Depends(require_caller)) -> Dict[str, List[Dict[str, Any]]]:
        if not is_user_admin(caller.client, caller.user.id):
            raise APIError(status.HTTP_403_FORBIDDEN, "Forbidden")
        try:
            response = caller.client.rpc("list_admins_minimal", {}).execute()
        except PostgrestError as exc:
            raise APIError(status.HTTP_400_BAD_REQUEST, delegate_message(exc)) from exc
        return {"admins": response.data or []}

    @router.post("/competitors/bulk-import")
    def bulk_import_competitors(
        payload: BulkImportRequest,
        caller: Caller = Depends(require_caller),
    ) -> Dict[str, int]:
        if is_user_admin(caller.client, caller.user.id):
            raise APIError(status.HTTP_403_FORBIDDEN, "Bulk import is available to coaches only")
        rows = payload.rows or []
        if not rows:
            raise APIError(status.HTTP_400_BAD_REQUEST, "No rows provided")
        summary = import_competitors(caller.client, caller.user.id, rows, on_conflict=payload.on_conflict)
        logger.info(
            "Bulk import for coach %s: %s inserted, %s updated, %s skipped, %s errors",
            caller.user.id,
            summary.inserted,
            summary.updated,
            summary.skipped,
            summary.errors,
        )
        return asdict(summary)

    @router.post("/validate-parent-email")
    async def validate_parent_email(request: Request):
        try:
            body = await request.json()
            raw_email = body.get("email") if isinstance(body, dict) else None
            email = raw_email.strip().lower() if isinstance(raw_email, str) else ""

            if not _PARENT_EMAIL_RE.match(email):
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"valid": False, "message": INVALID_EMAIL_MESSAGE},
                )

            result = await anyio.to_thread.run_sync(email_checker.check, email)
            if not result.is_valid:
                return {
                    "valid": False,
                    "message": result.reason or "This email address appears to be undeliverable.",
                }
            return {"valid": True}
        except Exception:
            # A broken check must never block the parent consent form.
            logger.warning("Parent email validation failed; allowing the address", exc_info=True)
            return {"valid": True}

    @router.get("/debug")
    async def debug() -> Dict[str, Dict[str, object]]:
        return {"env": debug_environment(settings)}

    @router.get("/auth")
    async def auth_overview() -> Dict[str, object]:
        return {
            "message": "Dashboard authentication API",
            "endpoints": AUTH_ENDPOINTS,
            "documentation": "https://supabase.com/docs/guides/auth",
            "note": "This is an API endpoint for authentication. It should not be accessed directly.",
        }

    @router.get("/auth/signin/error")
    async def signin_error(request: Request) -> RedirectResponse:
        error = request.query_params.get("error") or "unknown"
        logger.error("Sign-in error: %s (params=%s)", error, dict(request.query_params))
        return RedirectResponse(
            str(request.url.replace(path="/auth/error")),
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )

    @router.get("/auth/error")
    async def auth_error(request: Request):
        error = request.query_params.get("error") or "direct_access"
        logger.error("Auth API error: %s (params=%s)", error, dict(request.query_params))
        if error == "direct_access":
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "direct_access",
                    "message": (
                        "This is an authentication error handling endpoint. "
                        "It should not be accessed directly."
                    ),
                    "help": (
                        "If you're seeing this message, you might have navigated to this URL "
                        "directly. Please go to the sign-in page instead."
                    ),
                    "signInUrl": str(request.url.replace(path="/auth/login", query="")),
                },
            )
        return RedirectResponse(
            str(request.url.replace(path="/auth/error")),
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )

    app.include_router(router)


__all__ = [
    "BulkImportRequest",
    "Caller",
    "DraftUpsertRequest",
    "debug_environment",
    "register_api_routes",
    "shape_conversations",
]
