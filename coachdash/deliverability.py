"""Email deliverability checks backed by the Abstract email-reputation API.

The check is advisory: whenever the service cannot give a definite answer
(no API key, HTTP failure, unexpected payload) the address is reported as
valid with ``was_checked`` set to ``False``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger("coachdash.deliverability")

ABSTRACT_EMAIL_URL = "https://emailreputation.abstractapi.com/v1/"
DEFAULT_TIMEOUT = 8.0

UNDELIVERABLE_MESSAGE = "This email address appears to be undeliverable."
BAD_DOMAIN_MESSAGE = "This email domain does not exist or cannot receive email."
REJECTED_MESSAGE = "This email address was rejected by the mail server."
BAD_FORMAT_MESSAGE = "This email address format is invalid."
UNVERIFIED_MESSAGE = "This email address could not be verified and may not receive messages."


@dataclass(frozen=True)
class DeliverabilityResult:
    is_valid: bool
    deliverability: str
    reason: Optional[str] = None
    was_checked: bool = False


class EmailDeliverabilityChecker:
    """Query the reputation API for a single address."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._client = client
        self._timeout = timeout

    def _get(self, email: str) -> httpx.Response:
        params = {"api_key": self._api_key, "email": email}
        if self._client is not None:
            return self._client.get(ABSTRACT_EMAIL_URL, params=params, timeout=self._timeout)
        return httpx.get(ABSTRACT_EMAIL_URL, params=params, timeout=self._timeout)

    def check(self, email: str) -> DeliverabilityResult:
        if not self._api_key:
            logger.warning("ABSTRACT_EMAIL_API_KEY not configured, skipping email deliverability check")
            return DeliverabilityResult(is_valid=True, deliverability="SKIPPED")

        try:
            response = self._get(email)
        except httpx.HTTPError as exc:
            logger.warning("Email deliverability check failed: %s", exc)
            return DeliverabilityResult(is_valid=True, deliverability="ERROR")

        if response.status_code >= 400:
            logger.warning("Abstract API returned non-OK status %s", response.status_code)
            return DeliverabilityResult(is_valid=True, deliverability="ERROR")

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Abstract API returned an unreadable response")
            return DeliverabilityResult(is_valid=True, deliverability="ERROR")

        details = payload.get("email_deliverability") if isinstance(payload, dict) else None
        if not isinstance(details, dict):
            details = {}
        return _classify(details)


def _flag(details: dict, key: str) -> bool:
    value = details.get(key)
    return True if value is None else bool(value)


def _classify(details: dict) -> DeliverabilityResult:
    deliverability = str(details.get("status") or "unknown").lower()
    mx_valid = _flag(details, "is_mx_valid")
    smtp_valid = _flag(details, "is_smtp_valid")
    format_valid = _flag(details, "is_format_valid")

    if not format_valid:
        return DeliverabilityResult(False, deliverability, BAD_FORMAT_MESSAGE, True)

    if deliverability == "undeliverable":
        reason = UNDELIVERABLE_MESSAGE
        if not mx_valid:
            reason = BAD_DOMAIN_MESSAGE
        elif not smtp_valid:
            reason = REJECTED_MESSAGE
        return DeliverabilityResult(False, deliverability, reason, True)

    if not mx_valid:
        return DeliverabilityResult(False, deliverability, BAD_DOMAIN_MESSAGE, True)

    if deliverability == "risky" and not smtp_valid:
        return DeliverabilityResult(False, deliverability, UNVERIFIED_MESSAGE, True)

    return DeliverabilityResult(True, deliverability, None, True)


__all__ = ["DeliverabilityResult", "EmailDeliverabilityChecker"]
