"""Validation and persistence for coach-submitted competitor rosters."""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from .enums import (
    ALLOWED_DIVISIONS,
    ALLOWED_ETHNICITIES,
    ALLOWED_GENDERS,
    ALLOWED_GRADES,
    ALLOWED_LEVELS_OF_TECHNOLOGY,
    ALLOWED_RACES,
    derive_division_from_grade,
    normalize_enum_value,
    normalize_grade,
    parse_boolean,
    require_allowed,
)

logger = logging.getLogger("coachdash.competitors")

_EMAIL_RE = re.compile(r".+@.+\..+")
_YEARS_RE = re.compile(r"^[+-]?\d+")

CONFLICT_MODES = ("skip", "update")


class CompetitorRowError(ValueError):
    """A roster row failed validation."""


@dataclass(frozen=True)
class CompetitorRow:
    first_name: str
    last_name: str
    grade: str
    is_18_or_over: bool
    email_school: Optional[str]
    email_personal: Optional[str]
    parent_name: Optional[str]
    parent_email: Optional[str]
    division: Optional[str]
    gender: Optional[str]
    race: Optional[str]
    ethnicity: Optional[str]
    level_of_technology: Optional[str]
    years_competing: Optional[int]

    @property
    def dedupe_email(self) -> Optional[str]:
        return self.email_school or self.email_personal or self.parent_email

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ImportSummary:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0


def is_valid_email(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(_EMAIL_RE.search(value.strip().lower()))


def _text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    return str(value).strip() if value is not None else ""


def _years_competing(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        raise CompetitorRowError("Invalid years_competing")
    if isinstance(value, int):
        years = value
    else:
        text = str(value if value is not None else "").strip()
        if not text:
            return None
        match = _YEARS_RE.match(text)
        if match is None:
            raise CompetitorRowError("Invalid years_competing")
        years = int(match.group(0))
    if years < 0 or years > 20:
        raise CompetitorRowError("Invalid years_competing")
    return years


def parse_competitor_row(raw: Mapping[str, Any]) -> CompetitorRow:
    """Normalise and validate one roster row, raising :class:`CompetitorRowError`."""

    first_name = _text(raw, "first_name")
    last_name = _text(raw, "last_name")
    grade = normalize_grade(_text(raw, "grade"))
    is_adult = parse_boolean(raw.get("is_18_or_over"))
    email_school = _text(raw, "email_school").lower()
    email_personal = _text(raw, "email_personal").lower()
    parent_name = _text(raw, "parent_name")
    parent_email = _text(raw, "parent_email").lower()

    if not first_name or not last_name or not grade or is_adult is None:
        raise CompetitorRowError("Missing required fields")
    if grade not in ALLOWED_GRADES:
        raise CompetitorRowError("Invalid grade")
    if not is_valid_email(email_school):
        raise CompetitorRowError("School email is required and must be valid")
    if not is_adult:
        if parent_name and not is_valid_email(parent_email):
            raise CompetitorRowError(
                "Parent email is required and must be valid when parent name is provided"
            )
        if not parent_name and parent_email and not is_valid_email(parent_email):
            raise CompetitorRowError("Parent email is invalid")

    try:
        division = require_allowed("division", normalize_enum_value(raw.get("division")), ALLOWED_DIVISIONS)
        gender = require_allowed("gender", normalize_enum_value(raw.get("gender")), ALLOWED_GENDERS)
        race = require_allowed("race", normalize_enum_value(raw.get("race")), ALLOWED_RACES)
        ethnicity = require_allowed("ethnicity", normalize_enum_value(raw.get("ethnicity")), ALLOWED_ETHNICITIES)
        level = require_allowed(
            "level_of_technology",
            normalize_enum_value(raw.get("level_of_technology")),
            ALLOWED_LEVELS_OF_TECHNOLOGY,
        )
    except ValueError as exc:
        raise CompetitorRowError(str(exc)) from exc

    years = _years_competing(raw.get("years_competing"))

    return CompetitorRow(
        first_name=first_name,
        last_name=last_name,
        grade=grade,
        is_18_or_over=is_adult,
        email_school=email_school or None,
        email_personal=email_personal or None,
        parent_name=parent_name or None,
        parent_email=parent_email or None,
        division=division or derive_division_from_grade(grade, is_adult),
        gender=gender or None,
        race=race or None,
        ethnicity=ethnicity or None,
        level_of_technology=level or None,
        years_competing=years,
    )


def quote_filter_value(value: str) -> str:
    """Quote ``value`` for use inside a PostgREST ``or`` filter."""

    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _find_existing(client: Any, coach_id: str, email: str) -> Optional[str]:
    quoted = quote_filter_value(email)
    response = (
        client.table("competitors")
        .select("id")
        .eq("coach_id", coach_id)
        .or_(f"email_school.eq.{quoted},email_personal.eq.{quoted}")
        .limit(1)
        .execute()
    )
    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return str(rows[0]["id"])


def import_competitors(
    client: Any,
    coach_id: str,
    rows: Iterable[Mapping[str, Any]],
    *,
    on_conflict: str = "skip",
) -> ImportSummary:
    """Insert or update each row for ``coach_id``; bad rows are counted, not raised."""

    summary = ImportSummary()
    for raw in rows:
        try:
            row = parse_competitor_row(raw)
            email = row.dedupe_email
            existing_id = _find_existing(client, coach_id, email) if email else None

            if existing_id is not None:
                if on_conflict != "update":
                    summary.skipped += 1
                    continue
                client.table("competitors").update(row.to_record()).eq("id", existing_id).execute()
                summary.updated += 1
                continue

            record = row.to_record()
            record.update({"coach_id": coach_id, "status": "profile", "is_active": True})
            client.table("competitors").insert(record).execute()
            summary.inserted += 1
        except Exception as exc:
            logger.info("Skipping roster row: %s", exc)
            summary.errors += 1
    return summary


__all__ = [
    "CONFLICT_MODES",
    "CompetitorRow",
    "CompetitorRowError",
    "ImportSummary",
    "import_competitors",
    "is_valid_email",
    "parse_competitor_row",
    "quote_filter_value",
]
