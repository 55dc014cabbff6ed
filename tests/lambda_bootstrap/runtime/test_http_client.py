"""Unit tests for RuntimeApiClient."""

import json
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest

from lambda_bootstrap.runtime.errors import ErrorCode, RetryableError, TerminalError
from lambda_bootstrap.runtime.http_client import (
    ERROR_CONTENT_TYPE,
    NEXT_EVENT_FAILED,
    POST_RESULT_FAILED,
    RuntimeApiClient,
    classify_result_rejection,
)
from lambda_bootstrap.runtime.retry import RetryPolicy

BASE = "http://127.0.0.1:9001"
NEXT = f"{BASE}/2018-06-01/runtime/invocation/next"


class FakeRuntimeApi:
    """Scripted control plane: answers from a queue and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]

    def body(self, index: int):
        return json.loads(self.requests[index].content)


@pytest.fixture(autouse=True)
def no_sleep():
    """Patch out retry backoff."""
    with patch("lambda_bootstrap.runtime.retry.time.sleep") as mock_sleep:
        yield mock_sleep


def make_client(api: FakeRuntimeApi) -> RuntimeApiClient:
    return RuntimeApiClient(BASE, transport=httpx.MockTransport(api))


def refused() -> httpx.ConnectError:
    return httpx.ConnectError("connection refused")


class TestRuntimeApiClientInit:
    """Tests for client initialization."""

    def test_strips_trailing_slash(self):
        """Should strip trailing slash from base_url."""
        client = RuntimeApiClient(base_url="http://127.0.0.1:9001/")
        assert client.base_url == BASE

    def test_builds_versioned_urls(self):
        """Paths should sit under the API version."""
        client = RuntimeApiClient(base_url=BASE)
        assert client._build_url("/runtime/init/error") == f"{BASE}/2018-06-01/runtime/init/error"

    def test_default_retry_policy(self):
        """Should use five attempts by default."""
        assert RuntimeApiClient(BASE).retry_policy.max_attempts == 5

    def test_context_manager_closes_client(self):
        """Should open on enter and release on exit."""
        with RuntimeApiClient(BASE) as client:
            assert client._client is not None
        assert client._client is None

    def test_long_poll_has_no_read_timeout(self):
        """The next-event request must be able to wait indefinitely."""
        client = RuntimeApiClient(BASE, connect_timeout=2.0)
        timeout = client._get_client().timeout
        assert timeout.read is None
        assert timeout.connect == 2.0
        client.close()


class TestGetNextEvent:
    """Tests for fetching the next invocation."""

    def test_returns_headers_and_body(self):
        """Should expose all headers and the raw body."""
        api = FakeRuntimeApi(
            httpx.Response(
                200,
                headers=[
                    ("Lambda-Runtime-Aws-Request-Id", "abc123"),
                    ("Lambda-Runtime-Trace-Id", "t1"),
                    ("Lambda-Runtime-Trace-Id", "t2"),
                ],
                json={"name": "World"},
            )
        )

        event = make_client(api).get_next_event()

        assert api.paths() == ["GET /2018-06-01/runtime/invocation/next"]
        assert event.headers.get_list("Lambda-Runtime-Trace-Id") == ["t1", "t2"]
        assert event.payload() == {"name": "World"}

    def test_retries_transient_failures(self):
        """Should survive four connection failures."""
        api = FakeRuntimeApi(refused(), refused(), refused(), refused(), httpx.Response(200, json={}))

        event = make_client(api).get_next_event()

        assert event.payload() == {}
        assert len(api.requests) == 5

    def test_gives_up_after_five_attempts(self):
        """Should raise once five attempts have failed."""
        api = FakeRuntimeApi(*[refused() for _ in range(5)])

        with pytest.raises(RetryableError) as exc_info:
            make_client(api).get_next_event()

        assert exc_info.value.code == ErrorCode.CONNECTION_ERROR
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    def test_timeouts_are_transient(self):
        """Read timeouts should be retried like connection failures."""
        api = FakeRuntimeApi(httpx.ReadTimeout("slow"), httpx.Response(200, json=[]))

        assert make_client(api).get_next_event().payload() == []

    def test_error_status_is_terminal(self):
        """A non-2xx answer is not retried."""
        api = FakeRuntimeApi(httpx.Response(500))

        with pytest.raises(TerminalError) as exc_info:
            make_client(api).get_next_event()

        assert exc_info.value.message == NEXT_EVENT_FAILED
        assert exc_info.value.status_code == 500
        assert len(api.requests) == 1

    def test_invalid_body_raises_value_error(self):
        """payload() should surface a body that is not JSON."""
        api = FakeRuntimeApi(httpx.Response(200, content=b"{oops"))

        event = make_client(api).get_next_event()

        with pytest.raises(ValueError):
            event.payload()


class TestSendEventSuccess:
    """Tests for posting handler results."""

    def test_posts_serialized_result(self):
        """Should post the JSON result to the response endpoint."""
        api = FakeRuntimeApi(httpx.Response(202))

        make_client(api).send_event_success("abc123", "Hello, World!")

        assert api.paths() == ["POST /2018-06-01/runtime/invocation/abc123/response"]
        assert api.body(0) == "Hello, World!"
        assert api.requests[0].headers["Content-Type"] == "application/json"

    def test_serializes_rich_values(self):
        """Datetimes and nested structures should serialize."""
        api = FakeRuntimeApi(httpx.Response(202))

        make_client(api).send_event_success("r", {"at": datetime(2020, 1, 2, 3, 4, 5), "n": [1]})

        assert api.body(0) == {"at": "2020-01-02T03:04:05", "n": [1]}

    def test_413_becomes_error_report(self):
        """A too-large result should be reported as an error, not retried."""
        api = FakeRuntimeApi(httpx.Response(413), httpx.Response(202))

        make_client(api).send_event_success("abc123", "x" * 100)

        assert api.paths() == [
            "POST /2018-06-01/runtime/invocation/abc123/response",
            "POST /2018-06-01/runtime/invocation/abc123/error",
        ]
        assert api.body(1)["errorMessage"] == "Payload Too Large"

    def test_other_status_becomes_error_report(self):
        """Any other rejection should be reported as an error."""
        api = FakeRuntimeApi(httpx.Response(500), httpx.Response(202))

        make_client(api).send_event_success("abc123", {"ok": True})

        assert api.paths()[1] == "POST /2018-06-01/runtime/invocation/abc123/error"
        assert api.body(1)["errorMessage"] == POST_RESULT_FAILED

    def test_failed_error_report_propagates(self):
        """If the fallback error report fails too, that failure propagates."""
        api = FakeRuntimeApi(httpx.Response(500), httpx.Response(500))

        with pytest.raises(TerminalError):
            make_client(api).send_event_success("abc123", {"ok": True})

    def test_unreachable_becomes_error_report(self):
        """Exhausted retries on the result post fall back to an error report."""
        api = FakeRuntimeApi(*[refused() for _ in range(5)], httpx.Response(202))

        make_client(api).send_event_success("abc123", 1)

        assert len(api.requests) == 6
        assert api.paths()[-1] == "POST /2018-06-01/runtime/invocation/abc123/error"
        assert "ConnectError" in api.body(5)["errorMessage"]

    def test_unserializable_result_becomes_error_report(self):
        """A result that is not JSON serializable is never posted."""
        api = FakeRuntimeApi(httpx.Response(202))

        make_client(api).send_event_success("abc123", object())

        assert api.paths() == ["POST /2018-06-01/runtime/invocation/abc123/error"]
        assert "serialize" in api.body(0)["errorMessage"]


class TestClassifyResultRejection:
    """Tests for classifying result rejections."""

    def test_413_is_payload_too_large(self):
        """413 is the one recoverable status."""
        rejection = classify_result_rejection(httpx.Response(413))
        assert rejection.code == ErrorCode.PAYLOAD_TOO_LARGE

    @pytest.mark.parametrize("status", [400, 403, 404, 429, 500, 502])
    def test_other_statuses_are_unexpected(self, status):
        """Other 4xx statuses are not generalised into the 413 case."""
        rejection = classify_result_rejection(httpx.Response(status))
        assert rejection.code == ErrorCode.UNEXPECTED_STATUS
        assert rejection.status_code == status


class TestErrorReports:
    """Tests for invocation and init error reports."""

    def test_event_error_shape(self):
        """Should post the error document with the error content type."""
        api = FakeRuntimeApi(httpx.Response(202))

        make_client(api).send_event_error("abc123", "ValueError: nope")

        request = api.requests[0]
        assert request.url.path == "/2018-06-01/runtime/invocation/abc123/error"
        assert request.headers["Content-Type"] == ERROR_CONTENT_TYPE
        assert api.body(0) == {"errorMessage": "ValueError: nope", "errorType": "User", "stackTrace": []}

    def test_init_error_path(self):
        """Init errors go to the init endpoint with no request id."""
        api = FakeRuntimeApi(httpx.Response(202))

        make_client(api).send_init_error("no config")

        assert api.paths() == ["POST /2018-06-01/runtime/init/error"]
        assert api.body(0)["errorMessage"] == "no config"

    def test_error_report_retries(self):
        """Error reports share the retry policy."""
        api = FakeRuntimeApi(refused(), httpx.Response(202))

        make_client(api).send_event_error("abc123", "boom")

        assert len(api.requests) == 2

    def test_exhausted_error_report_propagates(self):
        """An undeliverable error report is not swallowed."""
        api = FakeRuntimeApi(*[refused() for _ in range(5)])

        with pytest.raises(RetryableError):
            make_client(api).send_init_error("boom")

    def test_rejected_error_report_raises(self):
        """A non-2xx answer to an error report raises."""
        api = FakeRuntimeApi(httpx.Response(400))

        with pytest.raises(TerminalError) as exc_info:
            make_client(api).send_event_error("abc123", "boom")

        assert exc_info.value.status_code == 400

    def test_custom_retry_policy(self):
        """A custom policy should bound the attempts."""
        api = FakeRuntimeApi(refused(), refused())
        client = RuntimeApiClient(BASE, retry_policy=RetryPolicy(max_attempts=2), transport=httpx.MockTransport(api))

        with pytest.raises(RetryableError):
            client.send_event_error("abc123", "boom")

        assert len(api.requests) == 2
