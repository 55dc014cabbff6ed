"""
Error model for the runtime client.

This module defines the hierarchy of errors raised while talking to the
control plane and while assembling invocation contexts. Each error is
classified so the runtime loop can decide whether to retry it locally,
report it against an invocation, or halt the process.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ErrorCode:
    """Standard error codes for runtime failures."""

    # Network/connectivity
    CONNECTION_ERROR = "CONNECTION_ERROR"

    # Control plane responses
    UNEXPECTED_STATUS = "UNEXPECTED_STATUS"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"

    # Invocation context
    CONTEXT_DECODE = "CONTEXT_DECODE"
    MISSING_REQUEST_ID = "MISSING_REQUEST_ID"

    # Process lifecycle
    CONFIGURATION = "CONFIGURATION"
    FATAL = "FATAL"


class RuntimeClientError(Exception):
    """Base error for every failure raised by the runtime.

    Attributes:
        code: Machine-readable error code.
        message: Human-readable description, safe to send upstream.
        cause: Optional underlying exception.
    """

    default_code = ErrorCode.FATAL

    def __init__(
        self,
        message: str,
        code: str | None = None,
        cause: Exception | None = None,
    ):
        """Initialize a RuntimeClientError.

        Args:
            message: Human-readable description.
            code: Machine-readable error code. Defaults to the class default.
            cause: Optional underlying exception.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation."""
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation."""
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {"code": self.code, "message": self.message}


class RetryableError(RuntimeClientError):
    """A transport-level failure that may succeed if attempted again.

    Raised for connection refusals, resets and timeouts. Never raised for
    a response the control plane actually sent, whatever its status.
    """

    default_code = ErrorCode.CONNECTION_ERROR


class TerminalError(RuntimeClientError):
    """The control plane answered, but not with a success status."""

    default_code = ErrorCode.UNEXPECTED_STATUS

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, code=code, cause=cause)
        self.status_code = status_code


class PayloadTooLargeError(TerminalError):
    """The control plane rejected a handler result as too large (413)."""

    default_code = ErrorCode.PAYLOAD_TOO_LARGE

    def __init__(self, message: str = "Payload Too Large"):
        super().__init__(message, status_code=413)


class ContextDecodeError(RuntimeClientError):
    """An invocation header could not be decoded.

    Attributes:
        header: Name of the offending header, when known.
    """

    default_code = ErrorCode.CONTEXT_DECODE

    def __init__(
        self,
        message: str,
        header: str | None = None,
        code: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, code=code, cause=cause)
        self.header = header


class ConfigurationError(RuntimeClientError):
    """Process configuration could not be loaded from the environment."""

    default_code = ErrorCode.CONFIGURATION


class FatalRuntimeError(RuntimeClientError):
    """The runtime cannot continue and the process must exit."""

    default_code = ErrorCode.FATAL


def describe_validation_error(error: ValidationError) -> str:
    """Summarise a pydantic ValidationError as 'location: problem' pairs."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


class LambdaError(BaseModel):
    """Error document submitted to the control plane."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    error_message: str = Field(alias="errorMessage")
    error_type: str = Field(default="User", alias="errorType")
    stack_trace: list[str] = Field(default_factory=list, alias="stackTrace")

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON body expected by the error endpoints."""
        return self.model_dump(by_alias=True)
