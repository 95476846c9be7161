"""Server-rendered dashboard pages and their access gates."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from .admin import HashCheck, is_user_admin, verify_admin_hash
from .config import Settings
from .features import enabled_features
from .gateway import SupabaseGateway
from .models import SessionUser
from .sessions import SESSION_TOKEN_KEY, SessionResolver

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

logger = logging.getLogger("coachdash.pages")

_AUTH_ERROR_MESSAGES: Dict[str, str] = {
    "Configuration": "There is a server configuration error. Please check your OAuth credentials.",
    "AccessDenied": "You denied access to your account. Please try again and approve the permissions.",
}


def describe_auth_error(error: Optional[str]) -> str:
    if not error:
        return "An unknown error occurred"
    return _AUTH_ERROR_MESSAGES.get(error, f"Authentication error: {error}")


def build_templates(settings: Settings) -> Jinja2Templates:
    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["features"] = enabled_features(settings.features)
    return templates


def register_ui_routes(
    app: FastAPI,
    *,
    settings: Settings,
    gateway: SupabaseGateway,
    resolver: SessionResolver,
    templates: Optional[Jinja2Templates] = None,
) -> None:
    """Expose the browser pages on the provided FastAPI application."""

    templates = templates or build_templates(settings)

    def _redirect(request: Request, name: str) -> RedirectResponse:
        return RedirectResponse(request.url_for(name), status_code=status.HTTP_303_SEE_OTHER)

    def _current_session(request: Request) -> tuple[Optional[SessionUser], Optional[str]]:
        token = request.session.get(SESSION_TOKEN_KEY)
        if not isinstance(token, str) or not token:
            return None, None
        return resolver.resolve_token(request, token), token

    @app.get("/", response_class=HTMLResponse)
    def root(request: Request):
        user, _ = _current_session(request)
        if user is None:
            return _redirect(request, "show_login")
        return _redirect(request, "dashboard")

    @app.get("/auth/login", response_class=HTMLResponse, name="show_login")
    def login_form(request: Request):
        user, _ = _current_session(request)
        if user is not None:
            return _redirect(request, "dashboard")
        error = request.session.pop("login_error", None)
        return templates.TemplateResponse(request, "login.html", {"error": error})

    @app.post("/auth/login", name="process_login")
    def process_login(request: Request, email: str = Form(...), password: str = Form(...)):
        access_token = gateway.sign_in(email.strip().lower(), password)
        if access_token is None:
            request.session["login_error"] = "Invalid email or password."
            return _redirect(request, "show_login")
        resolver.remember(request, access_token)
        return _redirect(request, "dashboard")

    @app.get("/auth/logout", name="logout")
    def logout(request: Request):
        resolver.forget(request)
        return _redirect(request, "show_login")

    @app.get("/auth/error", response_class=HTMLResponse, name="auth_error_page")
    def auth_error_page(request: Request):
        message = describe_auth_error(request.query_params.get("error"))
        return templates.TemplateResponse(request, "auth_error.html", {"message": message})

    @app.get("/dashboard", response_class=HTMLResponse, name="dashboard")
    def dashboard(request: Request):
        user, token = _current_session(request)
        if user is None or token is None:
            return _redirect(request, "show_login")
        is_admin = is_user_admin(gateway.for_token(token), user.id)
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {"user": user, "is_admin": is_admin},
        )

    @app.get("/dashboard/admin-tools", response_class=HTMLResponse, name="admin_tools")
    def admin_tools(request: Request):
        user, token = _current_session(request)
        if user is None or token is None:
            return _redirect(request, "show_login")
        if not is_user_admin(gateway.for_token(token), user.id):
            logger.info("Non-admin user %s redirected away from admin tools", user.id)
            return _redirect(request, "dashboard")
        return templates.TemplateResponse(request, "admin_tools.html", {"user": user})

    @app.get("/admin-setup", response_class=HTMLResponse, name="admin_setup")
    def admin_setup(request: Request, hash: Optional[str] = None):
        outcome = verify_admin_hash(settings.admin_creation_key_hash, hash)
        if outcome is HashCheck.NOT_CONFIGURED:
            logger.error("Admin setup requested but ADMIN_CREATION_KEY_HASH is not configured")
        return templates.TemplateResponse(
            request,
            "admin_setup.html",
            {"authorized": outcome is HashCheck.AUTHORIZED},
        )


__all__ = ["TEMPLATE_DIR", "build_templates", "describe_auth_error", "register_ui_routes"]
