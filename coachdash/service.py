"""Application factory combining the JSON API and the dashboard pages."""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from .api import register_api_routes
from .config import Settings, load_settings
from .deliverability import EmailDeliverabilityChecker
from .errors import register_error_handlers
from .gateway import SupabaseGateway
from .pages import register_ui_routes
from .sessions import SessionResolver

logger = logging.getLogger("coachdash.service")

SESSION_COOKIE = "coachdash_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7


def _resolve_session_secret(settings: Settings) -> str:
    if settings.session_secret:
        return settings.session_secret
    if settings.is_production:
        raise RuntimeError("NEXTAUTH_SECRET must be configured in production")
    logger.warning(
        "NEXTAUTH_SECRET is not set; using a random session secret. Sessions will not"
        " survive a restart."
    )
    return secrets.token_urlsafe(32)


def create_app(
    *,
    settings: Optional[Settings] = None,
    gateway: Optional[SupabaseGateway] = None,
    email_checker: Optional[EmailDeliverabilityChecker] = None,
    include_api: bool = True,
    include_web: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application for the dashboard."""

    app_settings = settings or load_settings()
    app_gateway = gateway or SupabaseGateway.from_settings(app_settings)
    checker = email_checker or EmailDeliverabilityChecker(app_settings.abstract_email_api_key)
    resolver = SessionResolver(app_gateway)

    if not app_gateway.configured:
        logger.warning("Supabase is not configured; authenticated routes will fail")
    if not app_settings.session_secure:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    app = FastAPI(
        title="Coach Dashboard",
        version="0.1.0",
        description="Coaching and competition management dashboard.",
    )
    app.state.settings = app_settings
    app.state.gateway = app_gateway
    app.state.session_resolver = resolver

    register_error_handlers(app)
    app.add_middleware(
        SessionMiddleware,
        secret_key=_resolve_session_secret(app_settings),
        session_cookie=SESSION_COOKIE,
        https_only=app_settings.session_secure,
        same_site="lax",
        max_age=SESSION_MAX_AGE,
    )

    if include_api:
        register_api_routes(
            app,
            settings=app_settings,
            gateway=app_gateway,
            resolver=resolver,
            email_checker=checker,
        )

    if include_web:
        register_ui_routes(app, settings=app_settings, gateway=app_gateway, resolver=resolver)

    return app


def create_api_app(**kwargs) -> FastAPI:
    """Return an application exposing only the JSON API."""

    return create_app(include_api=True, include_web=False, **kwargs)


def create_web_app(**kwargs) -> FastAPI:
    """Return an application exposing only the dashboard pages."""

    return create_app(include_api=False, include_web=True, **kwargs)


__all__ = ["create_api_app", "create_app", "create_web_app"]
