"""Unit tests for runtime settings."""

import pytest

from lambda_bootstrap.config import RuntimeSettings, load_runtime_settings
from lambda_bootstrap.runtime.errors import ConfigurationError


class TestRuntimeSettings:
    """Tests for RuntimeSettings."""

    def test_loads_from_environment(self, monkeypatch):
        """The runtime API address is read from AWS_LAMBDA_RUNTIME_API."""
        monkeypatch.setenv("AWS_LAMBDA_RUNTIME_API", "127.0.0.1:9001")
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        settings = load_runtime_settings()

        assert settings.runtime_api == "127.0.0.1:9001"
        assert settings.base_url == "http://127.0.0.1:9001"
        assert settings.log_level == "INFO"
        assert settings.connect_timeout == 5.0

    def test_log_level_is_normalised(self):
        """Log levels are accepted in any case."""
        settings = RuntimeSettings(runtime_api="localhost:9001", log_level="debug")

        assert settings.log_level == "DEBUG"

    def test_missing_runtime_api(self, monkeypatch):
        """Without the runtime API address there is nothing to connect to."""
        monkeypatch.delenv("AWS_LAMBDA_RUNTIME_API", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            load_runtime_settings()

        assert exc_info.value.message.startswith("Unable to load runtime settings")

    @pytest.mark.parametrize(
        "name, value",
        [
            ("LOG_LEVEL", "LOUD"),
            ("LAMBDA_BOOTSTRAP_CONNECT_TIMEOUT", "0"),
            ("LAMBDA_BOOTSTRAP_CONNECT_TIMEOUT", "soon"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        """Malformed optional settings are configuration errors too."""
        monkeypatch.setenv("AWS_LAMBDA_RUNTIME_API", "127.0.0.1:9001")
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError):
            load_runtime_settings()
