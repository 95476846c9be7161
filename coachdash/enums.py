"""Canonical values for enumerated competitor fields and the helpers that map
free-text input (forms, spreadsheet imports) onto them.

Every helper here is total: blank or unexpected input yields ``""`` or
``None`` rather than an exception, and nothing outside the allowed sets is
ever produced except by passing the caller's own normalised text through.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

ALLOWED_DIVISIONS = ("middle_school", "high_school", "college")
ALLOWED_GENDERS = ("male", "female", "other", "prefer_not_to_say")
ALLOWED_RACES = ("white", "black", "hispanic", "asian", "native", "pacific", "other")
ALLOWED_ETHNICITIES = ("not_hispanic", "hispanic")
ALLOWED_LEVELS_OF_TECHNOLOGY = ("beginner", "intermediate", "advanced", "expert")
ALLOWED_GRADES = ("6", "7", "8", "9", "10", "11", "12", "college")
ALLOWED_PROGRAM_TRACKS = ("traditional", "adult_ed")
ALLOWED_DEVICE_TYPES = ("chrome_book", "laptop", "desktop", "tablet", "other")

_SEPARATORS = re.compile(r"[-_]+")
_WHITESPACE = re.compile(r"\s+")
_LEADING_INT = re.compile(r"^[+-]?\d+")

_SPECIAL_CASES = {
    "middle school": "middle_school",
    "high school": "high_school",
    "adult ed": "adult_ed",
    "adult education": "adult_ed",
    "continuing ed": "adult_ed",
    "traditional college": "traditional",
    "traditional": "traditional",
    "chrome book": "chrome_book",
    "chromebook": "chrome_book",
}

_ADULT_TRACK_ALIASES = {"adult", "adult ed", "continuing ed", "continuing education", "adult education"}
_TRADITIONAL_TRACK_ALIASES = {"traditional", "traditional student", "traditional college"}

_TRUE_WORDS = {"y", "yes", "true", "1"}
_FALSE_WORDS = {"n", "no", "false", "0"}


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_enum_value(value: Optional[str]) -> str:
    raw = _as_text(value)
    if not raw:
        return ""
    squashed = _WHITESPACE.sub(" ", _SEPARATORS.sub(" ", raw)).strip()
    special = _SPECIAL_CASES.get(squashed)
    if special is not None:
        return special
    return _WHITESPACE.sub("_", squashed)


def normalize_grade(value: Optional[str]) -> str:
    return _as_text(value)


def normalize_program_track(value: Optional[str]) -> str:
    raw = _as_text(value)
    if not raw:
        return ""
    if raw in _ADULT_TRACK_ALIASES:
        return "adult_ed"
    if _WHITESPACE.sub("_", raw) in {"adult_ed", "continuing_ed"}:
        return "adult_ed"
    if raw in _TRADITIONAL_TRACK_ALIASES:
        return "traditional"
    return normalize_enum_value(raw)


def parse_boolean(value: object) -> Optional[bool]:
    """Interpret spreadsheet-style yes/no answers; anything else is ``None``."""

    if isinstance(value, bool):
        return value
    text = str(value if value is not None else "").strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    return None


def derive_division_from_grade(grade: Optional[str], is_adult: bool = False) -> Optional[str]:
    """Map a school grade to its competition division.

    Adults always compete in ``college``. Otherwise grades 6-8 are
    ``middle_school``, 9-12 ``high_school`` and the literal ``college`` maps
    to itself. Any other value has no division.
    """

    if is_adult:
        return "college"
    if grade is None:
        return None
    normalized = str(grade).strip().lower()
    if not normalized:
        return None
    if normalized == "college":
        return "college"
    match = _LEADING_INT.match(normalized)
    if match is None:
        return None
    parsed = int(match.group(0))
    if 6 <= parsed <= 8:
        return "middle_school"
    if 9 <= parsed <= 12:
        return "high_school"
    return None


def require_allowed(field: str, value: str, allowed: Iterable[str]) -> str:
    if value and value not in allowed:
        raise ValueError(f"Invalid {field}")
    return value


__all__ = [
    "ALLOWED_DEVICE_TYPES",
    "ALLOWED_DIVISIONS",
    "ALLOWED_ETHNICITIES",
    "ALLOWED_GENDERS",
    "ALLOWED_GRADES",
    "ALLOWED_LEVELS_OF_TECHNOLOGY",
    "ALLOWED_PROGRAM_TRACKS",
    "ALLOWED_RACES",
    "derive_division_from_grade",
    "normalize_enum_value",
    "normalize_grade",
    "normalize_program_track",
    "parse_boolean",
    "require_allowed",
]
