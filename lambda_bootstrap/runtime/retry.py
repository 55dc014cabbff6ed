"""
Retry policy configuration and the retrying call helper.

This module provides the fixed exponential backoff used for every call to
the control plane. Only transport-level failures (RetryableError) are
retried; any response the control plane sends is returned to the caller
for classification.

There is no jitter: the runtime is the only consumer of its control-plane
endpoint, so there is no load to spread out.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from loguru import logger
from pydantic import BaseModel, Field

from .errors import RetryableError

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    The delay before retry N (0-indexed) is base_delay * exponential_base ** N,
    so the defaults wait 1ms, 2ms, 4ms and 8ms across five attempts.

    Attributes:
        max_attempts: Maximum number of attempts (including initial).
        base_delay: Delay in seconds before the first retry.
        exponential_base: Base for exponential backoff calculation.
    """

    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=0.001, ge=0)
    exponential_base: float = Field(default=2.0, ge=1)

    model_config = {"frozen": True}

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number.

        Args:
            attempt: The attempt number (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        return self.base_delay * (self.exponential_base**attempt)


# Policy shared by all control-plane operations
DEFAULT_RETRY_POLICY = RetryPolicy()


def call_with_retry(
    func: Callable[[], T],
    policy: RetryPolicy | None = None,
) -> T:
    """Call func, retrying on RetryableError according to policy.

    Args:
        func: Zero-argument callable to invoke.
        policy: Retry policy to use. Defaults to DEFAULT_RETRY_POLICY.

    Returns:
        Whatever func returns on its first successful attempt.

    Raises:
        RetryableError: The last transport failure once attempts are exhausted.
    """
    retry_policy = policy or DEFAULT_RETRY_POLICY
    name = getattr(func, "__name__", repr(func))

    for attempt in range(retry_policy.max_attempts):
        try:
            return func()
        except RetryableError as e:
            if attempt + 1 >= retry_policy.max_attempts:
                logger.warning(
                    f"Max retries ({retry_policy.max_attempts}) exceeded for {name}: {e.message}"
                )
                raise

            delay = retry_policy.calculate_delay(attempt)
            logger.info(
                f"Retry {attempt + 1}/{retry_policy.max_attempts} "
                f"for {name} in {delay * 1000:.0f}ms: {e.message}"
            )

            time.sleep(delay)

    raise RuntimeError(f"Retry loop exited unexpectedly in {name}")

