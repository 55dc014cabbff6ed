"""
Adapters from convenient handler shapes to the canonical runtime handler.

The runtime loop only knows one handler shape,
``handler(context, event) -> Success | Failure``. The functions here wrap
the shapes people actually write:

- pure: ``fn(event) -> result``
- pure_with_context: ``fn(context, event) -> result``
- fallible: ``fn(event) -> Success | Failure``
- fallible_with_context: ``fn(context, event) -> Success | Failure``
- with_state: ``fn(context, event, state) -> result``, where state is an
  object kept for the lifetime of the process (caches, clients, counters)

Each adapter optionally takes an ``event_type``. The raw JSON event is then
validated into that type with pydantic before the function sees it, and an
event that does not validate becomes a Failure for that invocation.

Example:
    from pydantic import BaseModel
    from lambda_bootstrap import adapters, run

    class Named(BaseModel):
        name: str

    def greet(event: Named) -> str:
        return f"Hello, {event.name}!"

    run(adapters.pure(greet, event_type=Named))
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from pydantic import TypeAdapter, ValidationError

from lambda_bootstrap.runtime.context import LambdaContext
from lambda_bootstrap.runtime.errors import describe_validation_error
from lambda_bootstrap.runtime.outcome import Failure, Handler, Outcome, Success

S = TypeVar("S")


def _event_decoder(event_type: Any | None) -> Callable[[Any], Any]:
    if event_type is None:
        return lambda event: event
    adapter: TypeAdapter[Any] = TypeAdapter(event_type)
    return adapter.validate_python


def _decoding(
    event_type: Any | None,
    call: Callable[[LambdaContext, Any], Outcome],
) -> Handler:
    decode = _event_decoder(event_type)

    def handler(context: LambdaContext, event: Any) -> Outcome:
        try:
            decoded = decode(event)
        except ValidationError as e:
            return Failure(f"Runtime Error: Unable to decode event: {describe_validation_error(e)}")
        return call(context, decoded)

    return handler


def pure(fn: Callable[[Any], Any], event_type: Any | None = None) -> Handler:
    """Adapt a function of the event alone that always succeeds (or raises)."""
    return _decoding(event_type, lambda context, event: Success(fn(event)))


def pure_with_context(
    fn: Callable[[LambdaContext, Any], Any], event_type: Any | None = None
) -> Handler:
    """Adapt a function of the context and event that always succeeds (or raises)."""
    return _decoding(event_type, lambda context, event: Success(fn(context, event)))


def fallible(fn: Callable[[Any], Outcome], event_type: Any | None = None) -> Handler:
    """Adapt a function of the event that returns Success or Failure itself."""
    return _decoding(event_type, lambda context, event: fn(event))


def fallible_with_context(
    fn: Callable[[LambdaContext, Any], Outcome], event_type: Any | None = None
) -> Handler:
    """Adapt a function of the context and event that returns Success or Failure."""
    return _decoding(event_type, fn)


def with_state(
    fn: Callable[[LambdaContext, Any, S], Any],
    state: S,
    event_type: Any | None = None,
) -> Handler:
    """Adapt a function that also receives a state object shared across invocations.

    The same state object is passed to every invocation handled by this
    process, so anything the function stores on it survives warm starts.
    A Success or Failure returned by fn is passed through unchanged; any
    other return value is treated as a successful result.
    """

    def call(context: LambdaContext, event: Any) -> Outcome:
        result = fn(context, event, state)
        if isinstance(result, (Success, Failure)):
            return result
        return Success(result)

    return _decoding(event_type, call)
