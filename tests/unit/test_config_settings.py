"""Unit tests for Settings loading and runtime overrides."""

import json
import logging

import pytest

from hybridapi.config import _ENV_FILES, _PROJECT_DIR, EntityTypeSettings, Settings
from hybridapi.domain.entities import HybridMode


@pytest.fixture
def overrides_file(tmp_path):
    def write(content):
        path = tmp_path / "settings.json"
        path.write_text(content if isinstance(content, str) else json.dumps(content), "utf-8")
        return str(path)

    return write


def test_env_file_includes_project_dotenv():
    assert _ENV_FILES[0] == _PROJECT_DIR / ".env"


def test_defaults():
    settings = Settings(settings_file="missing.json")
    assert settings.default_mode is HybridMode.REMOTE_ONLY
    assert settings.conflict_strategy == "timestamp_wins"
    assert settings.cache_enabled is True
    assert settings.entity_settings("anything") == EntityTypeSettings()


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("HYBRIDAPI_DEFAULT_MODE", "local_first")
    monkeypatch.setenv("HYBRIDAPI_MAX_RETRIES", "7")
    monkeypatch.setenv("HYBRIDAPI_ENTITIES", '{"product": {"mode": "remote_first", "sync_enabled": false}}')

    settings = Settings(settings_file="missing.json")

    assert settings.default_mode is HybridMode.LOCAL_FIRST
    assert settings.max_retries == 7
    assert settings.entity_settings("product").mode is HybridMode.REMOTE_FIRST
    assert settings.entity_settings("product").sync_enabled is False


def test_json_overrides_are_merged(overrides_file):
    path = overrides_file(
        {
            "default_mode": "bidirectional",
            "cache_default_ttl": "15",
            "conflict_strategy": "remote_wins",
            "api_token": "ignored",
            "entities": {"product": {"cache_ttl": 5}},
        }
    )
    settings = Settings(settings_file=path, entities={"product": {"mode": "local_only"}}, api_token="kept")

    assert settings.default_mode is HybridMode.BIDIRECTIONAL
    assert settings.cache_default_ttl == 15.0
    assert settings.conflict_strategy == "remote_wins"
    assert settings.api_token == "kept"
    product = settings.entity_settings("product")
    assert (product.mode, product.cache_ttl) == (HybridMode.LOCAL_ONLY, 5.0)


@pytest.mark.parametrize("raw, expected", [("false", False), ("off", False), (0, False), ("Yes", True), (True, True)])
def test_cache_enabled_override_reads_boolean_tokens(overrides_file, raw, expected):
    settings = Settings(settings_file=overrides_file({"cache_enabled": raw}))
    assert settings.cache_enabled is expected


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2, 3]",
        {"default_mode": "sideways"},
        {"entities": {"product": {"cache_ttl": "soon"}}},
        {"cache_enabled": "maybe"},
    ],
)
def test_bad_overrides_are_warned_about_and_ignored(overrides_file, caplog, content):
    path = overrides_file(content)
    with caplog.at_level(logging.WARNING, logger="hybridapi.config"):
        settings = Settings(settings_file=path)

    assert settings.default_mode is HybridMode.REMOTE_ONLY
    assert settings.entity_settings("product").cache_ttl is None
    assert settings.cache_enabled is True
    assert any(record.levelno == logging.WARNING for record in caplog.records)
