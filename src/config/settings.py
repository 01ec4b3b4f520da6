# src/config/settings.py
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import json
import logging

from src.models.exceptions import ConfigurationError

# Get project root (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 5000
DEFAULT_LOG_DIR = "logs"

logger = logging.getLogger(__name__)

# Legacy nested config file shape -> flat setting names
_NESTED_KEYS = {
    "gladly": {
        "apiUrl": "gladly_api_url",
        "username": "gladly_username",
        "apiToken": "gladly_api_token",
    },
    "enterpret": {
        "apiUrl": "enterpret_api_url",
        "apiKey": "enterpret_api_key",
    },
}
_TOP_LEVEL_KEYS = {
    "stateFilePath": "state_file_path",
    "batchSize": "batch_size",
    "maxRetries": "max_retries",
    "retryDelay": "retry_delay",
    "logLevel": "log_level",
    "logDir": "log_dir",
    "startDate": "start_date",
    "endDate": "end_date",
    "limit": "limit",
}


def _coerce_int(value: Any, name: str, default: int, minimum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name} {value!r}, using default: {default}")
        return default
    if number < minimum:
        logger.warning(f"Invalid {name} {number}, using default: {default}")
        return default
    return number


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    # Gladly (source)
    gladly_api_url: str = "https://organization.gladly.com"
    gladly_username: Optional[str] = None
    gladly_api_token: Optional[str] = None

    # Enterpret (destination)
    enterpret_api_url: str = "https://api.enterpret.com"
    enterpret_api_key: Optional[str] = None

    # State
    state_file_path: str = "./import-state.json"

    # Pipeline config
    batch_size: int = DEFAULT_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: int = DEFAULT_RETRY_DELAY_MS  # milliseconds

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = DEFAULT_LOG_DIR

    # Run window (usually set from CLI flags)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = None

    @field_validator("gladly_api_url", "enterpret_api_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value[:-1] if value.endswith("/") else value

    @field_validator("batch_size", mode="before")
    @classmethod
    def validate_batch_size(cls, value: Any) -> int:
        return _coerce_int(value, "batchSize", DEFAULT_BATCH_SIZE, minimum=1)

    @field_validator("max_retries", mode="before")
    @classmethod
    def validate_max_retries(cls, value: Any) -> int:
        return _coerce_int(value, "maxRetries", DEFAULT_MAX_RETRIES, minimum=0)

    @field_validator("retry_delay", mode="before")
    @classmethod
    def validate_retry_delay(cls, value: Any) -> int:
        return _coerce_int(value, "retryDelay", DEFAULT_RETRY_DELAY_MS, minimum=0)

    @field_validator("start_date", "end_date", mode="after")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("limit", mode="before")
    @classmethod
    def validate_limit(cls, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid limit {value!r}, importing without a limit")
            return None
        if number < 1:
            logger.warning(f"Invalid limit {number}, importing without a limit")
            return None
        return number

    def validate_credentials(self) -> None:
        """
        Ensure every credential needed to reach both platforms is present.

        Raises:
            ConfigurationError: If a required credential is missing
        """
        if not self.gladly_username:
            raise ConfigurationError("Gladly username is required in config or GLADLY_USERNAME env var")
        if not self.gladly_api_token:
            raise ConfigurationError("Gladly API token is required in config or GLADLY_API_TOKEN env var")
        if not self.enterpret_api_key:
            raise ConfigurationError("Enterpret API key is required in config or ENTERPRET_API_KEY env var")


def _flatten_file_config(file_config: Dict[str, Any], log: logging.Logger) -> Dict[str, Any]:
    """Map a config file (flat snake_case or nested camelCase) onto Settings field names."""
    known_fields = set(Settings.model_fields)
    flat: Dict[str, Any] = {}

    for key, value in file_config.items():
        if key in _NESTED_KEYS and isinstance(value, dict):
            for nested_key, nested_value in value.items():
                field_name = _NESTED_KEYS[key].get(nested_key)
                if field_name and nested_value is not None:
                    flat[field_name] = nested_value
        elif key in _TOP_LEVEL_KEYS:
            flat[_TOP_LEVEL_KEYS[key]] = value
        elif key in known_fields:
            flat[key] = value
        else:
            log.debug(f"Ignoring unknown config key: {key}")

    return flat


def read_config_file(
    config_path: Optional[str],
    logger: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Read a JSON config file into Settings field names.

    A missing or unreadable file is not fatal: a warning or error is logged and
    an empty mapping is returned so defaults and environment values apply.
    """
    log = logger or logging.getLogger(__name__)
    if not config_path:
        return {}

    path = Path(config_path)
    if not path.exists():
        log.warning(f"Config file {config_path} not found, using default config and environment variables")
        return {}

    log.debug(f"Loading config from {config_path}")
    try:
        file_config = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"Error loading config: {e}")
        log.info("Falling back to default configuration")
        return {}

    if not isinstance(file_config, dict):
        log.error(f"Error loading config: {config_path} does not contain a JSON object")
        return {}

    return _flatten_file_config(file_config, log)


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None
) -> Settings:
    """
    Resolve settings from every layer and validate them once.

    Precedence, lowest to highest:
        1. field defaults
        2. environment variables (and the project .env file)
        3. the JSON config file
        4. explicit overrides (CLI flags)

    Args:
        config_path: Optional path to a JSON config file
        overrides: Values that win over every other layer; None values are ignored
        logger: Run logger for config file notices

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If a required credential is missing or a value is invalid
    """
    values = read_config_file(config_path, logger=logger)
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    # Init kwargs take priority over environment sources in pydantic-settings
    try:
        settings = Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    settings.validate_credentials()
    return settings
