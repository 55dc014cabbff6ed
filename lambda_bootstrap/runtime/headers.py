"""
Decoding of the invocation headers sent with each event.

Every header may legally appear more than once on the wire, so each decoder
looks at all instances of its header:

- no instance decodes to None (the value was not provided),
- exactly one well-formed instance decodes to its value,
- a malformed instance, or more than one instance, raises ContextDecodeError.

"Not provided" and "invalid" are kept on separate channels (a return value
versus an exception) and must never be merged.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ContextDecodeError, ErrorCode

REQUEST_ID_HEADER = "Lambda-Runtime-Aws-Request-Id"
TRACE_ID_HEADER = "Lambda-Runtime-Trace-Id"
FUNCTION_ARN_HEADER = "Lambda-Runtime-Invoked-Function-Arn"
DEADLINE_HEADER = "Lambda-Runtime-Deadline-Ms"
CLIENT_CONTEXT_HEADER = "Lambda-Runtime-Client-Context"
COGNITO_IDENTITY_HEADER = "Lambda-Runtime-Cognito-Identity"

# Digits with an optional fractional part; no sign, exponent or whitespace
_MILLISECONDS = re.compile(r"\d+(?:\.\d+)?")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

M = TypeVar("M", bound=BaseModel)


class MultiValueHeaders(Protocol):
    """Header collection that preserves repeated header instances (e.g. httpx.Headers)."""

    def get_list(self, key: str, split_commas: bool = False) -> list[str]: ...


def _single(headers: MultiValueHeaders, name: str) -> str | None:
    values = headers.get_list(name)
    if not values:
        return None
    if len(values) > 1:
        raise ContextDecodeError(
            f"Expected at most one {name} header, got {len(values)}", header=name
        )
    return values[0]


def decode_request_id(headers: MultiValueHeaders) -> str:
    """Decode the request id, which must be sent exactly once.

    Raises:
        ContextDecodeError: With code MISSING_REQUEST_ID if the header is
            absent, empty or repeated.
    """
    values = headers.get_list(REQUEST_ID_HEADER)
    if len(values) != 1 or not values[0]:
        raise ContextDecodeError(
            f"Expected exactly one {REQUEST_ID_HEADER} header, got {len(values)}",
            header=REQUEST_ID_HEADER,
            code=ErrorCode.MISSING_REQUEST_ID,
        )
    return values[0]


def decode_optional_text(headers: MultiValueHeaders, name: str) -> str | None:
    """Decode an optional opaque string header such as the trace id."""
    return _single(headers, name)


def decode_deadline(headers: MultiValueHeaders) -> datetime | None:
    """Decode the deadline header into an absolute UTC timestamp.

    The header carries milliseconds since the Unix epoch. Sub-millisecond
    digits are discarded.
    """
    raw = _single(headers, DEADLINE_HEADER)
    if raw is None:
        return None
    if not _MILLISECONDS.fullmatch(raw):
        raise ContextDecodeError(
            f"{DEADLINE_HEADER} is not a millisecond timestamp: {raw!r}",
            header=DEADLINE_HEADER,
        )
    try:
        whole_ms = int(raw.split(".", 1)[0])
        return _EPOCH + timedelta(milliseconds=whole_ms)
    except (OverflowError, ValueError) as e:
        # ValueError: more digits than int() will convert
        raise ContextDecodeError(
            f"{DEADLINE_HEADER} is out of range: {raw!r}",
            header=DEADLINE_HEADER,
            cause=e,
        ) from e


def decode_optional_json(headers: MultiValueHeaders, name: str, model: type[M]) -> M | None:
    """Decode an optional header holding a JSON document shaped like model.

    A header that is present must parse completely; it is never treated as
    absent because its content is unreadable.
    """
    raw = _single(headers, name)
    if raw is None:
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise ContextDecodeError(
            f"{name} is not a valid {model.__name__} document",
            header=name,
            cause=e,
        ) from e
