"""
Execution context handed to handlers.

LambdaContext combines the per-process StaticContext with the per-invocation
DynamicContext decoded from the event headers. A LambdaContext is only ever
built whole: assemble_context either returns a fully decoded context or
raises, so a handler never sees a partially populated one.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError, ContextDecodeError, ErrorCode, describe_validation_error
from .headers import (
    CLIENT_CONTEXT_HEADER,
    COGNITO_IDENTITY_HEADER,
    FUNCTION_ARN_HEADER,
    TRACE_ID_HEADER,
    MultiValueHeaders,
    decode_deadline,
    decode_optional_json,
    decode_optional_text,
    decode_request_id,
)

CONTEXT_DECODE_MESSAGE = "Runtime Error: Unable to decode Context from event response."


class StaticContext(BaseSettings):
    """Function configuration fixed for the lifetime of the process.

    Populated from the variables the platform sets before starting the
    bootstrap. Every field is required.
    """

    function_name: str = Field(alias="AWS_LAMBDA_FUNCTION_NAME", min_length=1)
    function_version: str = Field(alias="AWS_LAMBDA_FUNCTION_VERSION", min_length=1)
    function_memory_size: int = Field(alias="AWS_LAMBDA_FUNCTION_MEMORY_SIZE", gt=0)
    log_group_name: str = Field(alias="AWS_LAMBDA_LOG_GROUP_NAME", min_length=1)
    log_stream_name: str = Field(alias="AWS_LAMBDA_LOG_STREAM_NAME", min_length=1)

    model_config = SettingsConfigDict(
        env_file=None,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @classmethod
    def from_environment(cls) -> "StaticContext":
        """Load the static context from environment variables.

        Raises:
            ConfigurationError: If any variable is missing or malformed.
        """
        try:
            return cls()  # type: ignore[call-arg]
        except ValidationError as e:
            raise ConfigurationError(
                f"Unable to load static context: {describe_validation_error(e)}", cause=e
            ) from e


class ClientApplication(BaseModel):
    """Details of the mobile application that made the invocation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    installation_id: str | None = None
    app_title: str | None = None
    app_version_name: str | None = None
    app_version_code: str | None = None
    app_package_name: str | None = None


class ClientContext(BaseModel):
    """Client context sent by a mobile SDK caller."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    client: ClientApplication | None = None
    custom: dict[str, Any] = Field(default_factory=dict)
    env: dict[str, Any] = Field(default_factory=dict)


class CognitoIdentity(BaseModel):
    """Amazon Cognito identity that authorized the invocation."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    cognito_identity_id: str | None = Field(default=None, alias="cognitoIdentityId")
    cognito_identity_pool_id: str | None = Field(default=None, alias="cognitoIdentityPoolId")


class DynamicContext(BaseModel):
    """Per-invocation metadata decoded from the event response headers."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    trace_id: str | None = None
    invoked_function_arn: str | None = None
    deadline: datetime | None = None
    client_context: ClientContext | None = None
    identity: CognitoIdentity | None = None

    @classmethod
    def from_headers(cls, headers: MultiValueHeaders) -> "DynamicContext":
        """Decode every dynamic field from the response headers.

        Raises:
            ContextDecodeError: If any single header fails to decode.
        """
        return cls(
            request_id=decode_request_id(headers),
            trace_id=decode_optional_text(headers, TRACE_ID_HEADER),
            invoked_function_arn=decode_optional_text(headers, FUNCTION_ARN_HEADER),
            deadline=decode_deadline(headers),
            client_context=decode_optional_json(headers, CLIENT_CONTEXT_HEADER, ClientContext),
            identity=decode_optional_json(headers, COGNITO_IDENTITY_HEADER, CognitoIdentity),
        )


class LambdaContext(BaseModel):
    """Read-only execution context for exactly one invocation.

    Attributes:
        request_id: Identifier of the invocation.
        trace_id: Tracing header for the invocation, if one was sent.
        invoked_function_arn: ARN used to invoke the function, if sent.
        deadline: Absolute time at which the invocation times out, if sent.
            Advisory only; the runtime does not enforce it.
        client_context: Mobile client context, if sent.
        identity: Cognito identity, if sent.
        function_name: Name of the function.
        function_version: Version of the function being executed.
        function_memory_size: Memory configured for the function, in MB.
        log_group_name: Log group the function writes to.
        log_stream_name: Log stream the function instance writes to.
    """

    model_config = ConfigDict(frozen=True)

    request_id: str
    trace_id: str | None = None
    invoked_function_arn: str | None = None
    deadline: datetime | None = None
    client_context: ClientContext | None = None
    identity: CognitoIdentity | None = None

    function_name: str
    function_version: str
    function_memory_size: int
    log_group_name: str
    log_stream_name: str

    @classmethod
    def combine(cls, static: StaticContext, dynamic: DynamicContext) -> "LambdaContext":
        """Merge the process-wide and per-invocation halves into one context."""
        return cls(
            request_id=dynamic.request_id,
            trace_id=dynamic.trace_id,
            invoked_function_arn=dynamic.invoked_function_arn,
            deadline=dynamic.deadline,
            client_context=dynamic.client_context,
            identity=dynamic.identity,
            function_name=static.function_name,
            function_version=static.function_version,
            function_memory_size=static.function_memory_size,
            log_group_name=static.log_group_name,
            log_stream_name=static.log_stream_name,
        )

    @property
    def aws_request_id(self) -> str:
        """Alias for request_id under its conventional Python Lambda name."""
        return self.request_id

    @property
    def memory_limit_in_mb(self) -> int:
        """Alias for function_memory_size under its conventional Python Lambda name."""
        return self.function_memory_size

    def get_remaining_time_in_millis(self) -> int:
        """Milliseconds left before the deadline, never negative.

        Returns 0 when the control plane did not send a deadline.
        """
        if self.deadline is None:
            return 0
        remaining = int(self.deadline.timestamp() * 1000) - int(time.time() * 1000)
        return max(remaining, 0)


def assemble_context(static: StaticContext, headers: MultiValueHeaders) -> LambdaContext:
    """Build the execution context for one invocation.

    Args:
        static: The process-wide static context.
        headers: All headers of the next-event response.

    Returns:
        A fully decoded LambdaContext.

    Raises:
        ContextDecodeError: If any dynamic field is missing or malformed. A
            missing or repeated request id keeps its MISSING_REQUEST_ID code;
            every other failure is reported with CONTEXT_DECODE_MESSAGE.
    """
    try:
        dynamic = DynamicContext.from_headers(headers)
    except ContextDecodeError as e:
        if e.code == ErrorCode.MISSING_REQUEST_ID:
            raise
        raise ContextDecodeError(CONTEXT_DECODE_MESSAGE, header=e.header, cause=e) from e
    return LambdaContext.combine(static, dynamic)
