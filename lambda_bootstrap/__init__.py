"""
Bootstrap client for running Python handlers on a custom Lambda runtime.

Usage:
    from lambda_bootstrap import adapters, run

    run(adapters.pure(lambda event: {"echo": event}))
"""

from lambda_bootstrap.runtime.context import LambdaContext
from lambda_bootstrap.runtime.loop import RuntimeLoop, run
from lambda_bootstrap.runtime.outcome import Failure, Success

__all__ = [
    "Failure",
    "LambdaContext",
    "RuntimeLoop",
    "Success",
    "run",
]
