"""
Configuration for the Farmwatch telemetry access layer
======================================================
Runtime settings loaded from environment variables, plus the logging setup.
"""

import logging
import os
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import tzinfo

from farmwatch.domain.exceptions import ConfigurationError
from farmwatch.utils.time import resolve_timezone

_TRUE_VALUES = {"1", "true", "t", "yes", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "off", ""}

CONSOLE_HANDLER_NAME = "farmwatch_console"
FILE_HANDLER_NAME = "farmwatch_file"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Environment variable {name} must be a boolean.", detail={name: value})


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.", detail={name: value}) from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.", detail={name: value}) from None


def _env_str_multi(names: tuple[str, ...], default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("FARMWATCH_ENV", "development"))

    # Backend API
    api_base_url: str = field(
        default_factory=lambda: os.getenv("FARMWATCH_API_BASE_URL", "http://localhost:5000/api")
    )
    api_timeout_seconds: float = field(default_factory=lambda: _env_float("FARMWATCH_API_TIMEOUT", 15.0))
    api_token: str = field(default_factory=lambda: os.getenv("FARMWATCH_API_TOKEN", ""))

    # Request caches
    cache_enabled: bool = field(default_factory=lambda: _env_bool("FARMWATCH_CACHE_ENABLED", True))
    telemetry_cache_ttl_seconds: float = field(
        default_factory=lambda: _env_float("FARMWATCH_TELEMETRY_CACHE_TTL", 30.0)
    )
    profile_cache_ttl_seconds: float = field(
        default_factory=lambda: _env_float("FARMWATCH_PROFILE_CACHE_TTL", 300.0)
    )
    cache_maxsize: int = field(default_factory=lambda: _env_int("FARMWATCH_CACHE_MAXSIZE", 128))

    # Dashboard behaviour
    debounce_ms: int = field(default_factory=lambda: _env_int("FARMWATCH_DEBOUNCE_MS", 300))
    display_timezone: str = field(
        default_factory=lambda: _env_str_multi(("FARMWATCH_TIMEZONE", "APP_TIMEZONE", "TZ"))
    )

    # Logging
    DEBUG: bool = field(default_factory=lambda: _env_bool("FARMWATCH_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("FARMWATCH_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("FARMWATCH_LOG_FILE", "logs/farmwatch.log"))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.environment == "production" and not os.getenv("FARMWATCH_API_BASE_URL"):
            raise ConfigurationError(
                "FARMWATCH_API_BASE_URL must be set explicitly in production.",
                detail={"environment": self.environment},
            )
        if self.cache_maxsize < 1:
            raise ConfigurationError("Cache maxsize must be at least 1.", detail={"cache_maxsize": self.cache_maxsize})
        if self.api_timeout_seconds <= 0:
            raise ConfigurationError(
                "API timeout must be positive.", detail={"api_timeout_seconds": self.api_timeout_seconds}
            )
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ConfigurationError(f"Unknown log level: {self.log_level}", detail={"log_level": self.log_level})

    @property
    def debounce_seconds(self) -> float:
        return max(0, self.debounce_ms) / 1000.0

    @property
    def tz(self) -> tzinfo | None:
        """Display timezone (None means system local time)."""
        return resolve_timezone(self.display_timezone or None)


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: AppConfig instance

    Returns:
        List of warning messages (empty if all valid)
    """
    warnings = []

    if not config.cache_enabled:
        warnings.append("Request caching is disabled. Every dashboard refresh will hit the backend.")

    if config.telemetry_cache_ttl_seconds <= 0:
        warnings.append("Telemetry cache TTL is 0; telemetry reads are never served from cache.")

    if config.profile_cache_ttl_seconds <= 0:
        warnings.append("Profile cache TTL is 0; farmer profiles are never served from cache.")

    if config.telemetry_cache_ttl_seconds > config.profile_cache_ttl_seconds:
        warnings.append(
            f"Telemetry TTL ({config.telemetry_cache_ttl_seconds}s) exceeds profile TTL "
            f"({config.profile_cache_ttl_seconds}s). Sensor data will look stale."
        )

    if config.debounce_ms > 2000:
        warnings.append(f"Debounce of {config.debounce_ms}ms will make device switching feel sluggish.")

    if config.display_timezone and config.tz is None:
        warnings.append(f"Unknown display timezone '{config.display_timezone}'; falling back to system local time.")

    return warnings


def setup_logging(debug: bool = False, log_file: str | None = "logs/farmwatch.log") -> None:
    """Setup logging configuration.

    Safe to call repeatedly: the named handlers are added once and only their
    level is updated on later calls. ``log_file=None`` disables the file handler.
    """
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    has_console = any(getattr(h, "name", "") == CONSOLE_HANDLER_NAME for h in root.handlers)
    has_file = any(getattr(h, "name", "") == FILE_HANDLER_NAME for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = CONSOLE_HANDLER_NAME
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if log_file and not has_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = FILE_HANDLER_NAME
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {CONSOLE_HANDLER_NAME, FILE_HANDLER_NAME}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    # Per-request connection chatter from requests' transport
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    config = AppConfig()

    logger = logging.getLogger("config_loader")
    for warning in validate_config(config):
        logger.warning("Config: %s", warning)

    return config
