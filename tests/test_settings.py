import logging

from portfolio_api.config import settings as settings_module
from portfolio_api.config.settings import Settings, get_settings
from portfolio_api.main import log_level


def _isolate(monkeypatch) -> None:
    monkeypatch.setattr(settings_module, "load_dotenv", lambda: False)
    for name in (
        "ENVIRONMENT",
        "PORT",
        "CACHE_MAX_SIZE_MB",
        "CACHE_MAX_ENTRIES",
        "ENABLE_CACHE_STATS",
        "CACHE_CLEANUP_INTERVAL_SECONDS",
        "CACHE_STATUS",
        "CACHE_PROJECTS_LIST",
        "CONTENTFUL_SPACE_ID",
        "CONTENTFUL_DELIVERY_API_KEY",
        "CONTENTFUL_ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_environment_is_empty(monkeypatch) -> None:
    _isolate(monkeypatch)
    settings = get_settings()

    assert settings.environment == "production"
    assert settings.cache_max_entries == 1000
    assert settings.cache_max_size_bytes == 50 * 1024 * 1024
    assert settings.enable_cache_stats is False
    assert settings.cache_ttl.status == 30
    assert settings.cache_ttl.tags == 86400
    assert settings.contentful_environment == "master"
    assert settings.contentful_space_id is None


def test_environment_overrides(monkeypatch) -> None:
    _isolate(monkeypatch)
    monkeypatch.setenv("ENVIRONMENT", " Development ")
    monkeypatch.setenv("CACHE_MAX_SIZE_MB", "8")
    monkeypatch.setenv("CACHE_MAX_ENTRIES", "250")
    monkeypatch.setenv("ENABLE_CACHE_STATS", "true")
    monkeypatch.setenv("CACHE_CLEANUP_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("CACHE_STATUS", "10")
    monkeypatch.setenv("CONTENTFUL_SPACE_ID", "space")
    monkeypatch.setenv("CONTENTFUL_DELIVERY_API_KEY", "token")

    settings = get_settings()
    assert settings.is_development
    assert settings.cache_max_size_bytes == 8 * 1024 * 1024
    assert settings.cache_max_entries == 250
    assert settings.enable_cache_stats is True
    assert settings.cache_cleanup_interval_seconds == 30.0
    assert settings.cache_ttl.status == 10
    assert settings.cache_ttl.projects_list == 3600
    assert (settings.contentful_space_id, settings.contentful_access_token) == ("space", "token")


def test_malformed_numbers_fall_back_to_defaults(monkeypatch) -> None:
    _isolate(monkeypatch)
    monkeypatch.setenv("PORT", "eighty")
    monkeypatch.setenv("CACHE_PROJECTS_LIST", "")

    settings = get_settings()
    assert settings.port == Settings().port
    assert settings.cache_ttl.projects_list == 3600


def test_development_environment_turns_on_debug_logging() -> None:
    assert log_level(Settings(environment="development")) == logging.DEBUG
    assert log_level(Settings()) == logging.INFO
