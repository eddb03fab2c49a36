"""
Unit Tests for configuration

Tests Config.validate() and RoutingSettings loading from the environment
and from YAML.
"""

from pathlib import Path

import pytest

from src.tool_vectors.config import Config, RoutingSettings, normalize_base_url


def test_default_config_is_valid():
    assert Config.validate() is True


def test_invalid_lock_backend(monkeypatch):
    monkeypatch.setattr(Config, "VECTOR_LOCK_BACKEND", "etcd")
    with pytest.raises(ValueError, match="VECTOR_LOCK_BACKEND"):
        Config.validate()


def test_validate_collects_all_errors(monkeypatch):
    monkeypatch.setattr(Config, "EMBEDDING_MAX_CHARS", 0)
    monkeypatch.setattr(Config, "EMBEDDING_TIMEOUT", -1)
    with pytest.raises(ValueError) as exc_info:
        Config.validate()
    assert "EMBEDDING_MAX_CHARS" in str(exc_info.value)
    assert "EMBEDDING_TIMEOUT" in str(exc_info.value)


def test_normalize_base_url():
    assert normalize_base_url("http://localhost:1234/v1/") == "http://localhost:1234/v1"
    assert normalize_base_url("http://localhost:1234/v1") == "http://localhost:1234/v1"


def test_settings_defaults(monkeypatch):
    for key in ("SMART_ROUTING_ENABLED", "OPENAI_API_KEY", "OPENAI_API_BASE_URL",
                "OPENAI_API_EMBEDDING_MODEL", "DB_URL"):
        monkeypatch.delenv(key, raising=False)

    settings = RoutingSettings.from_env()

    assert settings.enabled is False
    assert settings.api_base_url == "https://api.openai.com/v1"
    assert settings.embedding_model == "text-embedding-3-small"
    assert settings.embeddings_url == "https://api.openai.com/v1/embeddings"
    assert not settings.is_official_api  # no key


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SMART_ROUTING_ENABLED", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-live")
    monkeypatch.setenv("OPENAI_API_BASE_URL", "http://localhost:11434/v1/")
    monkeypatch.setenv("OPENAI_API_EMBEDDING_MODEL", "nomic-embed-text")
    monkeypatch.setenv("DB_URL", "postgresql://db/hub")

    settings = RoutingSettings.from_env()

    assert settings.enabled is True
    assert settings.api_base_url == "http://localhost:11434/v1"
    assert settings.embeddings_url == "http://localhost:11434/v1/embeddings"
    assert settings.embedding_model == "nomic-embed-text"
    assert settings.db_url == "postgresql://db/hub"
    assert not settings.is_official_api


def test_settings_from_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_URL", "postgresql://env/hub")
    monkeypatch.delenv("OPENAI_API_EMBEDDING_MODEL", raising=False)
    path = tmp_path / "settings.yaml"
    path.write_text(
        "smartRouting:\n"
        "  enabled: true\n"
        "  openaiApiKey: sk-yaml\n"
        "  openaiApiBaseUrl: https://api.openai.com/v1/\n"
    )

    settings = RoutingSettings.from_yaml(str(path))

    assert settings.enabled is True
    assert settings.api_key == "sk-yaml"
    assert settings.api_base_url == "https://api.openai.com/v1"
    assert settings.is_official_api
    assert settings.db_url == "postgresql://env/hub"
    assert settings.embedding_model == "text-embedding-3-small"


def test_settings_from_missing_yaml(tmp_path):
    with pytest.raises(FileNotFoundError):
        RoutingSettings.from_yaml(str(tmp_path / "missing.yaml"))


def test_settings_from_invalid_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("smartRouting: [1, 2]\n")
    with pytest.raises(ValueError):
        RoutingSettings.from_yaml(str(path))


def test_example_settings_file_loads():
    example = Path(__file__).resolve().parent.parent / "config" / "settings.example.yaml"
    settings = RoutingSettings.from_yaml(str(example))
    assert settings.enabled is True
    assert settings.embedding_model == "bge-m3"
    assert settings.embeddings_url == "http://localhost:1234/v1/embeddings"
