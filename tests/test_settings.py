"""Unit tests for layered settings resolution."""
import json
import pytest
from unittest.mock import Mock
from datetime import datetime, timezone
from src.config.settings import Settings, load_settings, read_config_file
from src.models.exceptions import ConfigurationError

ENV_VARS = (
    "GLADLY_API_URL",
    "GLADLY_USERNAME",
    "GLADLY_API_TOKEN",
    "ENTERPRET_API_URL",
    "ENTERPRET_API_KEY",
    "STATE_FILE_PATH",
    "BATCH_SIZE",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "LOG_LEVEL",
    "LIMIT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an empty environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def credentials_env(monkeypatch):
    monkeypatch.setenv("GLADLY_USERNAME", "env-user")
    monkeypatch.setenv("GLADLY_API_TOKEN", "env-token")
    monkeypatch.setenv("ENTERPRET_API_KEY", "env-key")


def write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestSettingsDefaults:
    """Test Settings field defaults and validators."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.batch_size == 100
        assert settings.max_retries == 3
        assert settings.retry_delay == 5000
        assert settings.state_file_path == "./import-state.json"
        assert settings.limit is None

    def test_invalid_batch_size_resets_to_default(self):
        """Test a non-positive or non-numeric batch size falls back to 100."""
        assert Settings(_env_file=None, batch_size=0).batch_size == 100
        assert Settings(_env_file=None, batch_size="lots").batch_size == 100

    def test_negative_retry_values_reset(self):
        settings = Settings(_env_file=None, max_retries=-1, retry_delay=-5)
        assert settings.max_retries == 3
        assert settings.retry_delay == 5000

    def test_zero_retries_allowed(self):
        assert Settings(_env_file=None, max_retries=0).max_retries == 0

    def test_invalid_limit_means_no_limit(self):
        assert Settings(_env_file=None, limit="abc").limit is None
        assert Settings(_env_file=None, limit=0).limit is None
        assert Settings(_env_file=None, limit="25").limit == 25

    def test_url_trailing_slash_removed(self):
        settings = Settings(_env_file=None, gladly_api_url="https://acme.gladly.com/")
        assert settings.gladly_api_url == "https://acme.gladly.com"

    def test_naive_dates_are_utc(self):
        settings = Settings(_env_file=None, start_date=datetime(2024, 1, 1))
        assert settings.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestReadConfigFile:
    """Test config file parsing."""

    def test_missing_file_is_empty(self, tmp_path):
        assert read_config_file(str(tmp_path / "missing.json")) == {}

    def test_invalid_json_is_empty(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{oops", encoding="utf-8")
        assert read_config_file(str(path)) == {}

    def test_nested_file_is_flattened(self, tmp_path):
        """Test the nested camelCase shape maps onto setting names."""
        path = write_config(tmp_path, {
            "gladly": {"apiUrl": "https://acme.gladly.com", "username": "u", "apiToken": "t"},
            "enterpret": {"apiKey": "k"},
            "batchSize": 50,
            "stateFilePath": "/tmp/state.json",
            "somethingElse": True,
        })

        assert read_config_file(path) == {
            "gladly_api_url": "https://acme.gladly.com",
            "gladly_username": "u",
            "gladly_api_token": "t",
            "enterpret_api_key": "k",
            "batch_size": 50,
            "state_file_path": "/tmp/state.json",
        }

    def test_flat_file_uses_field_names(self, tmp_path):
        path = write_config(tmp_path, {"max_retries": 1, "log_level": "DEBUG"})
        assert read_config_file(path) == {"max_retries": 1, "log_level": "DEBUG"}


class TestLoadSettings:
    """Test load_settings precedence and validation."""

    def test_environment_only(self, tmp_path, credentials_env):
        settings = load_settings(str(tmp_path / "missing.json"))
        assert settings.gladly_username == "env-user"
        assert settings.enterpret_api_key == "env-key"

    def test_file_overrides_environment(self, tmp_path, credentials_env, monkeypatch):
        monkeypatch.setenv("BATCH_SIZE", "10")
        path = write_config(tmp_path, {"gladly": {"username": "file-user"}, "batchSize": 20})

        settings = load_settings(path)

        assert settings.gladly_username == "file-user"
        assert settings.gladly_api_token == "env-token"
        assert settings.batch_size == 20

    def test_overrides_win(self, tmp_path, credentials_env):
        path = write_config(tmp_path, {"limit": 5, "logLevel": "WARNING"})

        settings = load_settings(path, overrides={"limit": 2, "log_level": None})

        assert settings.limit == 2
        assert settings.log_level == "WARNING"

    def test_missing_username(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GLADLY_API_TOKEN", "t")
        monkeypatch.setenv("ENTERPRET_API_KEY", "k")

        with pytest.raises(ConfigurationError, match="Gladly username is required"):
            load_settings(str(tmp_path / "missing.json"))

    def test_missing_token(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GLADLY_USERNAME", "u")
        monkeypatch.setenv("ENTERPRET_API_KEY", "k")

        with pytest.raises(ConfigurationError, match="Gladly API token is required"):
            load_settings(str(tmp_path / "missing.json"))

    def test_missing_enterpret_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GLADLY_USERNAME", "u")
        monkeypatch.setenv("GLADLY_API_TOKEN", "t")

        with pytest.raises(ConfigurationError, match="Enterpret API key is required"):
            load_settings(str(tmp_path / "missing.json"))

    def test_invalid_value_is_configuration_error(self, tmp_path, credentials_env):
        path = write_config(tmp_path, {"startDate": "not a date"})
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_settings(path)

    def test_config_notices_use_given_logger(self, tmp_path, credentials_env):
        """Test the run logger receives config file warnings."""
        run_logger = Mock()

        load_settings(str(tmp_path / "missing.json"), logger=run_logger)

        assert "not found" in run_logger.warning.call_args.args[0]
