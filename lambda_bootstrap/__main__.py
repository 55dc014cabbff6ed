"""
Process entry point.

Usage:
    python -m lambda_bootstrap my_package.handlers:handle --shape pure_with_context

The handler may also be given through the _HANDLER environment variable,
which the platform sets from the function's handler setting. Both
"module:function" and "module.function" are accepted.
"""

import argparse
import importlib
import os

from lambda_bootstrap import adapters
from lambda_bootstrap.runtime.errors import ConfigurationError
from lambda_bootstrap.runtime.loop import fail_init, run

SHAPES = {
    "canonical": lambda fn: fn,
    "pure": adapters.pure,
    "pure_with_context": adapters.pure_with_context,
    "fallible": adapters.fallible,
    "fallible_with_context": adapters.fallible_with_context,
}


def load_handler(spec: str):
    """Import the function named by spec.

    Raises:
        ConfigurationError: If the module or attribute cannot be loaded.
    """
    if ":" in spec:
        module_name, _, attribute = spec.partition(":")
    else:
        module_name, _, attribute = spec.rpartition(".")
    if not module_name or not attribute:
        raise ConfigurationError(f"Bad handler '{spec}': expected module:function")

    try:
        module = importlib.import_module(module_name)
    except Exception as e:
        raise ConfigurationError(
            f"Unable to import module '{module_name}': {e.__class__.__name__}: {e}", cause=e
        ) from e

    fn = getattr(module, attribute, None)
    if not callable(fn):
        raise ConfigurationError(f"Handler '{attribute}' missing or not callable in '{module_name}'")
    return fn


def main():
    parser = argparse.ArgumentParser(description="Run a Python handler against the Lambda runtime API")
    parser.add_argument(
        "handler",
        nargs="?",
        default=os.environ.get("_HANDLER"),
        help="Handler as module:function (defaults to $_HANDLER)",
    )
    parser.add_argument(
        "--shape",
        choices=sorted(SHAPES),
        default="pure",
        help="Calling convention of the handler function",
    )
    args = parser.parse_args()

    try:
        if not args.handler:
            raise ConfigurationError("No handler given and _HANDLER is not set")
        fn = load_handler(args.handler)
    except ConfigurationError as e:
        fail_init(e)

    run(SHAPES[args.shape](fn))


if __name__ == "__main__":
    main()
