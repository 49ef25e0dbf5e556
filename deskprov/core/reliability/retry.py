"""
Bounded retry with exponential backoff and jitter.

Used for network fetches only (patch downloads).  Package installs and
builds are never retried automatically.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait in between."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based), with jitter."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay + random.uniform(0, delay * 0.3)


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    retry_on: tuple[type[BaseException], ...] = (OSError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds or the attempts run out.

    The last exception is re-raised when every attempt fails.
    """
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        try:
            return fn()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed (%s) — retrying in %.1fs",
                attempt, policy.max_attempts, e, delay,
            )
            sleep(delay)
            attempt += 1
