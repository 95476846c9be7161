"""Admin authorization helpers."""
from __future__ import annotations

import hashlib
import logging
import secrets
from enum import Enum
from typing import Any, Optional

from postgrest.exceptions import APIError as PostgrestError

logger = logging.getLogger("coachdash.admin")

ADMIN_ROLE = "admin"


class HashCheck(str, Enum):
    """Outcome of comparing a submitted admin creation hash."""

    AUTHORIZED = "authorized"
    MISSING = "missing"
    NOT_CONFIGURED = "not_configured"
    MISMATCH = "mismatch"


def hash_admin_key(admin_key: str) -> str:
    """Return the value to configure as ``ADMIN_CREATION_KEY_HASH``."""

    return hashlib.sha256(admin_key.encode("utf-8")).hexdigest()


def verify_admin_hash(expected_hash: Optional[str], submitted: object) -> HashCheck:
    if not submitted:
        return HashCheck.MISSING
    if not expected_hash:
        return HashCheck.NOT_CONFIGURED
    if not isinstance(submitted, str):
        return HashCheck.MISMATCH
    if secrets.compare_digest(submitted.encode("utf-8"), expected_hash.encode("utf-8")):
        return HashCheck.AUTHORIZED
    return HashCheck.MISMATCH


def fetch_role(client: Any, user_id: str) -> Optional[str]:
    """Return the ``profiles.role`` for ``user_id``; errors propagate."""

    response = client.table("profiles").select("role").eq("id", user_id).single().execute()
    profile = getattr(response, "data", None) if response is not None else None
    if not isinstance(profile, dict):
        return None
    role = profile.get("role")
    return role if isinstance(role, str) else None


def is_user_admin(client: Any, user_id: str) -> bool:
    """Return ``True`` only for a profile whose role is exactly ``admin``.

    Lookup failures are logged and reported as ``False`` so callers can use
    the result directly as a deny-by-default gate.
    """

    try:
        role = fetch_role(client, user_id)
    except PostgrestError as exc:
        logger.warning("Profile lookup failed for %s: %s", user_id, exc.message)
        return False
    except Exception:
        logger.exception("Error checking admin status for %s", user_id)
        return False
    return role == ADMIN_ROLE


__all__ = [
    "ADMIN_ROLE",
    "HashCheck",
    "fetch_role",
    "hash_admin_key",
    "is_user_admin",
    "verify_admin_hash",
]
