"""
The runtime loop: fetch, assemble, invoke, report, forever.

Invocations are processed strictly one at a time. Each fetched invocation
gets exactly one report (a result or an error) before the next fetch is
issued. The loop only stops when the control plane cannot be used any
more, in which case an initialization error is reported and
FatalRuntimeError is raised.
"""

from __future__ import annotations

import os
from typing import Any, NoReturn

from loguru import logger

from lambda_bootstrap.config import RuntimeSettings, load_runtime_settings
from lambda_bootstrap.logging import setup_logging

from .context import LambdaContext, StaticContext, assemble_context
from .errors import (
    ConfigurationError,
    ContextDecodeError,
    FatalRuntimeError,
    RetryableError,
    RuntimeClientError,
    TerminalError,
)
from .headers import decode_request_id
from .http_client import NextEvent, RuntimeApiClient
from .outcome import Failure, Handler, Outcome, Success, invoke_handler

# Read by tracing instrumentation in the handler's process. This is the only
# process-wide state the loop mutates: it is written for each invocation
# before the handler is called and is only ever overwritten by the next one.
TRACE_ID_ENV = "_X_AMZN_TRACE_ID"


def propagate_trace_id(context: LambdaContext) -> None:
    """Expose the invocation's trace id to tracing instrumentation.

    Each invocation overwrites the value left by the previous one. An
    invocation without a trace id removes the variable instead of leaving
    it untouched, so the previous invocation's trace is never reused.
    """
    if context.trace_id is None:
        os.environ.pop(TRACE_ID_ENV, None)
    else:
        os.environ[TRACE_ID_ENV] = context.trace_id


class RuntimeLoop:
    """Drives a canonical handler against the runtime API."""

    def __init__(self, client: RuntimeApiClient, static: StaticContext, handler: Handler):
        self.client = client
        self.static = static
        self.handler = handler

    @classmethod
    def initialize(cls, client: RuntimeApiClient, handler: Handler) -> "RuntimeLoop":
        """Load the static context, reporting an init error if that fails.

        Raises:
            FatalRuntimeError: If the static context could not be loaded.
        """
        try:
            static = StaticContext.from_environment()
        except ConfigurationError as e:
            cls._halt(client, e.message, e)
        logger.info(
            f"Starting runtime for {static.function_name} "
            f"(version {static.function_version}, {static.function_memory_size}MB)"
        )
        return cls(client, static, handler)

    @staticmethod
    def _halt(client: RuntimeApiClient, message: str, cause: Exception | None = None) -> NoReturn:
        logger.critical(f"Runtime halting: {message}")
        client.send_init_error(message)
        raise FatalRuntimeError(message, cause=cause)

    def run_once(self) -> None:
        """Process a single invocation from fetch to report.

        Raises:
            FatalRuntimeError: If no invocation could be fetched, or the
                fetched one carries no usable request id.
            RetryableError, TerminalError: If an error report could not be
                delivered.
        """
        try:
            event = self.client.get_next_event()
        except (RetryableError, TerminalError) as e:
            self._halt(self.client, e.message, e)

        try:
            request_id = decode_request_id(event.headers)
        except ContextDecodeError as e:
            self._halt(self.client, e.message, e)

        with logger.contextualize(request_id=request_id):
            logger.debug("Received invocation")
            outcome = self._process(event)
            self._report(request_id, outcome)

    def _process(self, event: NextEvent) -> Outcome:
        try:
            context = assemble_context(self.static, event.headers)
        except ContextDecodeError as e:
            logger.error(f"{e.message} ({e.header}: {e.cause})")
            return Failure(e.message)

        propagate_trace_id(context)

        try:
            payload: Any = event.payload()
        except ValueError as e:
            return Failure(f"Runtime Error: Unable to decode event payload: {e}")

        return invoke_handler(self.handler, context, payload)

    def _report(self, request_id: str, outcome: Outcome) -> None:
        if isinstance(outcome, Success):
            self.client.send_event_success(request_id, outcome.value)
        else:
            self.client.send_event_error(request_id, outcome.message)

    def run_forever(self, max_invocations: int | None = None) -> None:
        """Process invocations until a fatal error.

        Args:
            max_invocations: Stop after this many invocations. None (the
                default) never stops.
        """
        processed = 0
        while max_invocations is None or processed < max_invocations:
            self.run_once()
            processed += 1


def run(
    handler: Handler,
    settings: RuntimeSettings | None = None,
    client: RuntimeApiClient | None = None,
) -> None:
    """Run handler for the lifetime of the process.

    Args:
        handler: Canonical handler, see lambda_bootstrap.adapters for
            wrapping simpler function shapes.
        settings: Runtime settings. Loaded from the environment if None.
        client: Runtime API client. Built from settings if None.

    Raises:
        SystemExit: With status 1 once the runtime cannot continue.
    """
    try:
        settings = settings or load_runtime_settings()
        setup_logging(settings.log_level)
        client = client or RuntimeApiClient(
            settings.base_url, connect_timeout=settings.connect_timeout
        )
        with client:
            RuntimeLoop.initialize(client, handler).run_forever()
    except RuntimeClientError as e:
        logger.bind(error=e.to_dict()).critical(f"Runtime terminated: {e}")
        raise SystemExit(1) from e


def fail_init(error: RuntimeClientError, settings: RuntimeSettings | None = None) -> NoReturn:
    """Report a failure that happened before the loop could start, then exit.

    Used when the handler itself cannot be loaded.

    Raises:
        SystemExit: Always, with status 1.
    """
    try:
        settings = settings or load_runtime_settings()
        setup_logging(settings.log_level)
        with RuntimeApiClient(settings.base_url, connect_timeout=settings.connect_timeout) as client:
            RuntimeLoop._halt(client, error.message, error)
    except RuntimeClientError as e:
        logger.bind(error=e.to_dict()).critical(f"Runtime terminated: {e}")
        raise SystemExit(1) from e
