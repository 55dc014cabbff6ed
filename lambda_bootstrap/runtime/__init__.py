"""
Runtime layer for the Lambda bootstrap.

This package implements the control-plane protocol:
- RuntimeApiClient: Blocking client for the runtime API with retries
- RetryPolicy: Fixed exponential backoff for transport failures
- LambdaContext: Per-invocation execution context assembled from headers
- Success / Failure: The two outcomes an invocation can have
- RuntimeLoop / run: The fetch-invoke-report loop (lambda_bootstrap.runtime.loop)
"""

from .context import (
    ClientApplication,
    ClientContext,
    CognitoIdentity,
    DynamicContext,
    LambdaContext,
    StaticContext,
    assemble_context,
)
from .errors import (
    ConfigurationError,
    ContextDecodeError,
    FatalRuntimeError,
    PayloadTooLargeError,
    RetryableError,
    RuntimeClientError,
    TerminalError,
)
from .http_client import NextEvent, RuntimeApiClient
from .outcome import Failure, Handler, Outcome, Success, invoke_handler
from .retry import RetryPolicy, call_with_retry

__all__ = [
    "ClientApplication",
    "ClientContext",
    "CognitoIdentity",
    "ConfigurationError",
    "ContextDecodeError",
    "DynamicContext",
    "FatalRuntimeError",
    "Failure",
    "Handler",
    "LambdaContext",
    "NextEvent",
    "Outcome",
    "PayloadTooLargeError",
    "RetryPolicy",
    "RetryableError",
    "RuntimeApiClient",
    "RuntimeClientError",
    "StaticContext",
    "Success",
    "TerminalError",
    "assemble_context",
    "call_with_retry",
    "invoke_handler",
]
