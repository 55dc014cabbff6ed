"""
Process configuration for the Lambda bootstrap.

RuntimeSettings describes how to reach the control plane and how the
bootstrap itself logs. It is read from the environment once per cold start.
The function's own configuration lives in StaticContext
(lambda_bootstrap.runtime.context).
"""

from __future__ import annotations

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lambda_bootstrap.runtime.errors import ConfigurationError, describe_validation_error


class RuntimeSettings(BaseSettings):
    """
    Settings needed to reach the control plane.

    AWS_LAMBDA_RUNTIME_API is the host:port of the runtime API, without a
    scheme. The process cannot do anything useful without it.
    """

    runtime_api: str = Field(alias="AWS_LAMBDA_RUNTIME_API", min_length=1)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    connect_timeout: float = Field(default=5.0, alias="LAMBDA_BOOTSTRAP_CONNECT_TIMEOUT", gt=0)

    model_config = SettingsConfigDict(
        env_file=None,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}, got '{value}'")
        return upper_value

    @property
    def base_url(self) -> str:
        """Base URL of the runtime API."""
        return f"http://{self.runtime_api}"


def load_runtime_settings() -> RuntimeSettings:
    """Load runtime settings from the environment.

    Raises:
        ConfigurationError: If AWS_LAMBDA_RUNTIME_API is missing or a value is invalid.
    """
    try:
        return RuntimeSettings()  # type: ignore[call-arg]
    except ValidationError as e:
        raise ConfigurationError(
            f"Unable to load runtime settings: {describe_validation_error(e)}", cause=e
        ) from e
