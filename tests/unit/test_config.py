from __future__ import annotations

import logging

import pytest

from farmwatch.config import AppConfig, load_config, setup_logging, validate_config
from farmwatch.domain.exceptions import ConfigurationError
from farmwatch.services.container import ServiceContainer

_ENV_VARS = (
    "FARMWATCH_ENV",
    "FARMWATCH_API_BASE_URL",
    "FARMWATCH_API_TIMEOUT",
    "FARMWATCH_CACHE_ENABLED",
    "FARMWATCH_TELEMETRY_CACHE_TTL",
    "FARMWATCH_PROFILE_CACHE_TTL",
    "FARMWATCH_CACHE_MAXSIZE",
    "FARMWATCH_DEBOUNCE_MS",
    "FARMWATCH_TIMEZONE",
    "APP_TIMEZONE",
    "TZ",
    "FARMWATCH_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig()

    assert config.api_base_url == "http://localhost:5000/api"
    assert config.telemetry_cache_ttl_seconds == 30
    assert config.profile_cache_ttl_seconds == 300
    assert config.cache_maxsize == 128
    assert config.debounce_seconds == 0.3
    assert config.tz is None
    assert validate_config(config) == []


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FARMWATCH_TELEMETRY_CACHE_TTL", "10")
    monkeypatch.setenv("FARMWATCH_CACHE_ENABLED", "off")
    monkeypatch.setenv("APP_TIMEZONE", "Asia/Phnom_Penh")

    config = AppConfig()

    assert config.telemetry_cache_ttl_seconds == 10.0
    assert config.cache_enabled is False
    assert config.display_timezone == "Asia/Phnom_Penh"


def test_invalid_integer_raises_configuration_error(monkeypatch):
    monkeypatch.setenv("FARMWATCH_CACHE_MAXSIZE", "lots")

    with pytest.raises(ConfigurationError):
        AppConfig()


def test_production_requires_explicit_base_url(monkeypatch):
    monkeypatch.setenv("FARMWATCH_ENV", "production")

    with pytest.raises(ConfigurationError):
        AppConfig()

    monkeypatch.setenv("FARMWATCH_API_BASE_URL", "https://farmwatch.example/api")
    assert AppConfig().api_base_url == "https://farmwatch.example/api"


def test_validate_config_warnings(monkeypatch):
    monkeypatch.setenv("FARMWATCH_TELEMETRY_CACHE_TTL", "0")
    monkeypatch.setenv("FARMWATCH_TIMEZONE", "Mars/Olympus")

    warnings = validate_config(load_config())

    assert any("Telemetry cache TTL" in w for w in warnings)
    assert any("Mars/Olympus" in w for w in warnings)


def test_setup_logging_is_idempotent(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    log_file = tmp_path / "logs" / "farmwatch.log"
    try:
        setup_logging(debug=True, log_file=str(log_file))
        setup_logging(debug=False, log_file=str(log_file))

        names = [getattr(h, "name", "") for h in root.handlers]
        assert names.count("farmwatch_console") == 1
        assert names.count("farmwatch_file") == 1
        assert log_file.parent.is_dir()
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
                handler.close()


def test_container_lifecycle():
    container = ServiceContainer.build(AppConfig())

    assert container.profile_cache.ttl == 300
    assert container.telemetry_cache.ttl == 30
    container.telemetry_cache.set("k", 1)

    container.logout()
    assert len(container.telemetry_cache) == 0
    assert "Authorization" not in container.api_client.session.headers

    session = container.dashboard_session(7)
    assert session.farmer_service is container.farmer_service

    container.shutdown()
