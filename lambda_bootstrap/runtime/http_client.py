"""
Client for the Lambda runtime API (the control plane).

This module wraps the four wire operations the bootstrap needs: fetching
the next event, posting a handler result, posting an invocation error and
posting an initialization error. Every operation retries transport-level
failures with the shared RetryPolicy; responses are classified here so the
runtime loop only has to deal with outcomes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger
from pydantic import TypeAdapter

from .errors import (
    LambdaError,
    PayloadTooLargeError,
    RetryableError,
    TerminalError,
)
from .retry import RetryPolicy, call_with_retry

API_VERSION = "2018-06-01"
ERROR_CONTENT_TYPE = "application/vnd.aws.lambda.error+json"

NEXT_EVENT_FAILED = "Unexpected Runtime Error:  Could not retrieve next event."
POST_RESULT_FAILED = "Unexpected Runtime Error: Could not post handler result."

_RESULT_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@dataclass(frozen=True)
class NextEvent:
    """A next-event response: its headers and raw body.

    Headers are kept as httpx.Headers so repeated header instances survive.
    """

    headers: httpx.Headers
    body: bytes

    def payload(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON or is nested too deeply
                to decode.
        """
        try:
            return json.loads(self.body)
        except RecursionError as e:
            raise ValueError(f"event is nested too deeply: {e}") from e


def classify_result_rejection(response: httpx.Response) -> TerminalError:
    """Classify a non-2xx answer to a result submission.

    413 is the only status treated as recoverable (the result was simply too
    large); every other status is an unexpected control-plane failure.
    """
    if response.status_code == httpx.codes.REQUEST_ENTITY_TOO_LARGE:
        return PayloadTooLargeError()
    return TerminalError(POST_RESULT_FAILED, status_code=response.status_code)


class RuntimeApiClient:
    """Blocking client for the runtime API.

    Example:
        with RuntimeApiClient("http://127.0.0.1:9001") as client:
            event = client.get_next_event()
            client.send_event_success(request_id, {"ok": True})
    """

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 5.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the runtime API, e.g. http://127.0.0.1:9001.
            connect_timeout: Connect timeout in seconds. Reads are unbounded
                so that the next-event long poll can wait indefinitely.
            retry_policy: Retry configuration. Uses the default if None.
            transport: Optional httpx transport, mainly for tests.
        """
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=httpx.Timeout(None, connect=self.connect_timeout),
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "RuntimeApiClient":
        self._get_client()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _build_url(self, path: str) -> str:
        """Build full URL from a path relative to the API version root."""
        path = path.lstrip("/")
        return f"{self.base_url}/{API_VERSION}/{path}"

    def _send_once(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._get_client().request(method, self._build_url(path), **kwargs)
        except httpx.TransportError as e:
            raise RetryableError(
                f"{method} {path} failed: {e.__class__.__name__}: {e}", cause=e
            ) from e

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Make a request, retrying transport failures.

        Any response the control plane returns is handed back whatever its
        status; classifying it is up to the caller.

        Raises:
            RetryableError: If every attempt failed at the transport level.
        """

        def attempt() -> httpx.Response:
            return self._send_once(method, path, **kwargs)

        attempt.__name__ = f"{method} {path}"
        return call_with_retry(attempt, policy=self.retry_policy)

    def get_next_event(self) -> NextEvent:
        """Long-poll for the next invocation.

        Raises:
            RetryableError: If the control plane could not be reached.
            TerminalError: If it answered with a non-2xx status.
        """
        response = self.request("GET", "runtime/invocation/next")
        if not response.is_success:
            raise TerminalError(NEXT_EVENT_FAILED, status_code=response.status_code)
        return NextEvent(headers=response.headers, body=response.content)

    def send_event_success(self, request_id: str, result: Any) -> None:
        """Post a handler result for an invocation.

        The control plane's answer is classified three ways:

        - 2xx: accepted, nothing more to do.
        - 413: the result is too large; an error is reported instead.
        - anything else, or an unreachable control plane: an error is
          reported instead. If that report fails too, its error propagates.

        Results that cannot be serialized to JSON are reported as errors
        without being posted.
        """
        try:
            body = _RESULT_ADAPTER.dump_json(result)
        except ValueError as e:
            logger.error(f"Handler result for {request_id} is not JSON serializable: {e}")
            self.send_event_error(request_id, f"Runtime Error: Unable to serialize handler result: {e}")
            return

        path = f"runtime/invocation/{request_id}/response"
        try:
            response = self.request(
                "POST", path, content=body, headers={"Content-Type": "application/json"}
            )
        except RetryableError as e:
            self.send_event_error(request_id, e.message)
            return

        if response.is_success:
            return

        rejection = classify_result_rejection(response)
        logger.warning(
            f"Result for {request_id} rejected with status {response.status_code} "
            f"({len(body)} bytes): {rejection.message}"
        )
        self.send_event_error(request_id, rejection.message)

    def send_event_error(self, request_id: str, message: str) -> None:
        """Report a failed invocation.

        Raises:
            RetryableError: If the control plane could not be reached.
            TerminalError: If it answered with a non-2xx status.
        """
        self._post_error(f"runtime/invocation/{request_id}/error", message)

    def send_init_error(self, message: str) -> None:
        """Report a failure that happened outside any invocation.

        Raises:
            RetryableError: If the control plane could not be reached.
            TerminalError: If it answered with a non-2xx status.
        """
        self._post_error("runtime/init/error", message)

    def _post_error(self, path: str, message: str) -> None:
        document = LambdaError(error_message=message)
        response = self.request(
            "POST",
            path,
            json=document.to_wire(),
            headers={"Content-Type": ERROR_CONTENT_TYPE},
        )
        if not response.is_success:
            raise TerminalError(
                f"Control plane rejected error report with status {response.status_code}",
                status_code=response.status_code,
            )
