"""Configuration management for the coaching dashboard service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml


_FLAG_VARIABLES = {
    "message_read_receipts": "NEXT_PUBLIC_ENABLE_READ_RECEIPTS",
    "message_threading": "NEXT_PUBLIC_ENABLE_THREADING",
    "batch_read_marking": "NEXT_PUBLIC_ENABLE_BATCH_READ",
    "read_receipts_in_groups_only": "NEXT_PUBLIC_READ_RECEIPTS_GROUPS_ONLY",
}

_SETTING_VARIABLES = {
    "admin_creation_key_hash": "ADMIN_CREATION_KEY_HASH",
    "auth_url": "NEXTAUTH_URL",
    "session_secret": "NEXTAUTH_SECRET",
    "airtable_client_id": "AIRTABLE_CLIENT_ID",
    "airtable_client_secret": "AIRTABLE_CLIENT_SECRET",
    "airtable_base_id": "AIRTABLE_BASE_ID",
    "access_token": "YOUR_ACCESS_TOKEN",
    "supabase_url": "SUPABASE_URL",
    "supabase_anon_key": "SUPABASE_ANON_KEY",
    "abstract_email_api_key": "ABSTRACT_EMAIL_API_KEY",
}


@dataclass(frozen=True)
class FeatureFlags:
    """Build-time toggles for the messaging experience."""

    message_read_receipts: bool = False
    message_threading: bool = False
    batch_read_marking: bool = False
    read_receipts_in_groups_only: bool = False

    @staticmethod
    def from_environ(environ: Mapping[str, str]) -> "FeatureFlags":
        # Only the literal string "true" enables a flag.
        values = {name: environ.get(variable) == "true" for name, variable in _FLAG_VARIABLES.items()}
        return FeatureFlags(**values)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings resolved once at startup."""

    admin_creation_key_hash: Optional[str] = None
    auth_url: Optional[str] = None
    session_secret: Optional[str] = None
    airtable_client_id: Optional[str] = None
    airtable_client_secret: Optional[str] = None
    airtable_base_id: Optional[str] = None
    access_token: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    abstract_email_api_key: Optional[str] = None
    environment: str = "development"
    session_secure: bool = False
    features: FeatureFlags = field(default_factory=FeatureFlags)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML settings file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)


def _load_yaml_defaults(config_path: Path) -> Dict[str, object]:
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file {config_path} must contain a mapping")
    return raw


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
) -> Settings:
    """Build :class:`Settings` from the YAML defaults overlaid with the environment."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("COACHDASH_CONFIG"))
    defaults = _load_yaml_defaults(path)

    values: Dict[str, object] = {}
    for name, variable in _SETTING_VARIABLES.items():
        values[name] = _clean(env.get(variable)) or _clean(defaults.get(name))

    environment = _clean(env.get("APP_ENV")) or _clean(defaults.get("environment")) or "development"
    secure_default = bool(defaults.get("session_secure", environment == "production"))

    flag_source: Dict[str, str] = {}
    raw_flags = defaults.get("features")
    if isinstance(raw_flags, dict):
        for name, variable in _FLAG_VARIABLES.items():
            if raw_flags.get(name) is True:
                flag_source[variable] = "true"
    flag_source.update({key: value for key, value in env.items() if key in _FLAG_VARIABLES.values()})

    return Settings(
        environment=environment,
        session_secure=_env_flag(env.get("SESSION_SECURE"), secure_default),
        features=FeatureFlags.from_environ(flag_source),
        **values,
    )


__all__ = ["FeatureFlags", "Settings", "load_settings", "resolve_config_path"]
