"""
Invocation outcomes and the boundary that produces them.

Every handler the runtime drives has the canonical shape

    handler(context: LambdaContext, event: Any) -> Success | Failure

and invoke_handler guarantees that calling it yields exactly one of those
two values, whatever the handler does.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Callable, Union

from loguru import logger

from .context import LambdaContext


@dataclass(frozen=True)
class Success:
    """The handler produced a result to send back to the caller."""

    value: Any


@dataclass(frozen=True)
class Failure:
    """The handler failed; message is reported as the invocation error."""

    message: str


Outcome = Union[Success, Failure]
Handler = Callable[[LambdaContext, Any], Outcome]

# Intercepting these would leave the process in an unknown state.
UNINTERCEPTED_FAULTS: tuple[type[BaseException], ...] = (MemoryError,)


def describe_exception(exc: BaseException) -> str:
    """Render an exception as 'ExceptionType: message'."""
    return "".join(traceback.format_exception_only(type(exc), exc)).strip()


def invoke_handler(handler: Handler, context: LambdaContext, event: Any) -> Outcome:
    """Call handler and convert any fault it raises into a Failure.

    Every Exception raised by the handler is intercepted, except those in
    UNINTERCEPTED_FAULTS. BaseExceptions that are not Exceptions
    (KeyboardInterrupt, SystemExit, GeneratorExit) are not intercepted
    either and end the process.

    A handler returning something other than Success or Failure is itself
    reported as a Failure.
    """
    try:
        outcome = handler(context, event)
    except UNINTERCEPTED_FAULTS:
        raise
    except Exception as e:
        logger.opt(exception=e).error(f"Handler raised {e.__class__.__name__}")
        return Failure(describe_exception(e))

    if not isinstance(outcome, (Success, Failure)):
        return Failure(
            f"Runtime Error: handler returned {type(outcome).__name__}, "
            "expected Success or Failure"
        )
    return outcome
