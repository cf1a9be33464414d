"""Reconnect backoff policy built on tenacity."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_fixed,
    wait_random
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class BackoffPolicy:
    """
    Fixed-delay reconnect policy.

    Attributes:
        delay: Seconds to wait between attempts
        max_attempts: Attempts before giving up (None retries forever)
        jitter: Upper bound of random seconds added to each delay
        sleep: Awaitable sleep function, replaceable in tests
    """
    delay: float = 5.0
    max_attempts: Optional[int] = None
    jitter: float = 0.0
    sleep: Sleep = asyncio.sleep

    def retrying(self, retry_on: Tuple[Type[BaseException], ...]) -> AsyncRetrying:
        """
        Build a tenacity controller for one reconnect cycle.

        The last exception is re-raised once attempts are exhausted.
        """
        wait = wait_fixed(self.delay)
        if self.jitter:
            wait = wait + wait_random(0, self.jitter)

        stop = stop_after_attempt(self.max_attempts) if self.max_attempts else stop_never

        return AsyncRetrying(
            sleep=self.sleep,
            wait=wait,
            stop=stop,
            retry=retry_if_exception_type(retry_on),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
