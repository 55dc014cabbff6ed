"""
Centralized logging configuration for the bootstrap.
Initializes loguru and intercepts standard library logging.
"""

import logging
import sys
from loguru import logger

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | "
    "{extra[request_id]} | {message}"
)


class InterceptHandler(logging.Handler):
    """
    Default handler from documents for intercepting standard library logging messages.
    See: https://loguru.readthedocs.io/en/stable/overview.html#entirely-compatible-with-standard-logging
    """

    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO"):
    """
    Configures loguru to write to stdout, which the platform ships to the
    function's log stream.
    """
    logger.remove()

    # request_id is bound per invocation by the runtime loop
    logger.configure(extra={"request_id": "-"})
    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level,
        colorize=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in ["httpx", "httpcore"]:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging initialized with Loguru.")
