import pytest

from coachdash.config import FeatureFlags, load_settings, resolve_config_path
from coachdash.features import FEATURE_NAMES, enabled_features, use_feature


def test_flags_require_the_literal_string_true():
    flags = FeatureFlags.from_environ(
        {
            "NEXT_PUBLIC_ENABLE_READ_RECEIPTS": "true",
            "NEXT_PUBLIC_ENABLE_THREADING": "TRUE",
            "NEXT_PUBLIC_ENABLE_BATCH_READ": "1",
        }
    )

    assert flags.message_read_receipts is True
    assert flags.message_threading is False
    assert flags.batch_read_marking is False
    assert flags.read_receipts_in_groups_only is False


def test_use_feature_accepts_both_naming_styles():
    flags = FeatureFlags(message_threading=True)

    assert use_feature(flags, "message_threading") is True
    assert use_feature(flags, "messageThreading") is True
    assert use_feature(flags, "messageReadReceipts") is False


def test_unknown_feature_is_disabled():
    assert use_feature(FeatureFlags(message_threading=True), "darkMode") is False


def test_enabled_features_lists_every_flag():
    listing = enabled_features(FeatureFlags(batch_read_marking=True))

    assert set(listing) == set(FEATURE_NAMES)
    assert listing["batch_read_marking"] is True
    assert listing["message_threading"] is False


def test_load_settings_reads_environment(tmp_path):
    settings = load_settings(
        {
            "ADMIN_CREATION_KEY_HASH": " abc123 ",
            "NEXTAUTH_URL": "https://dashboard.example.com",
            "SUPABASE_URL": "https://project.supabase.co",
            "SUPABASE_ANON_KEY": "anon",
            "AIRTABLE_BASE_ID": "",
            "NEXT_PUBLIC_ENABLE_THREADING": "true",
        },
        config_path=tmp_path / "missing.yaml",
    )

    assert settings.admin_creation_key_hash == "abc123"
    assert settings.auth_url == "https://dashboard.example.com"
    assert settings.airtable_base_id is None
    assert settings.environment == "development"
    assert settings.session_secure is False
    assert settings.features.message_threading is True


def test_environment_overrides_yaml_defaults(tmp_path):
    config = tmp_path / "settings.yaml"
    config.write_text(
        "environment: production\n"
        "auth_url: https://from-yaml.example.com\n"
        "supabase_url: https://yaml.supabase.co\n"
        "features:\n"
        "  message_read_receipts: true\n"
        "  batch_read_marking: false\n",
        encoding="utf-8",
    )

    settings = load_settings({"NEXTAUTH_URL": "https://from-env.example.com"}, config_path=config)

    assert settings.auth_url == "https://from-env.example.com"
    assert settings.supabase_url == "https://yaml.supabase.co"
    assert settings.is_production
    assert settings.session_secure is True
    assert settings.features.message_read_receipts is True
    assert settings.features.batch_read_marking is False


def test_environment_flag_overrides_yaml_flag(tmp_path):
    config = tmp_path / "settings.yaml"
    config.write_text("features:\n  message_threading: true\n", encoding="utf-8")

    settings = load_settings({"NEXT_PUBLIC_ENABLE_THREADING": "false"}, config_path=config)

    assert settings.features.message_threading is False


def test_session_secure_can_be_disabled_explicitly(tmp_path):
    settings = load_settings(
        {"APP_ENV": "production", "SESSION_SECURE": "no"},
        config_path=tmp_path / "missing.yaml",
    )

    assert settings.session_secure is False


def test_yaml_must_be_a_mapping(tmp_path):
    config = tmp_path / "settings.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings({}, config_path=config)


def test_config_path_comes_from_environment(tmp_path):
    target = tmp_path / "custom.yaml"
    assert resolve_config_path(str(target)) == target.resolve()
    assert resolve_config_path(None).name == "settings.yaml"
