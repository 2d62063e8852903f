"""Request pacing and retry policy for GitHub API calls."""

import asyncio
import time
from typing import Optional

from loguru import logger


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.time()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.time()
        elapsed = now - self.last_update
        self.tokens = min(
            self.requests_per_second,
            self.tokens + elapsed * self.requests_per_second,
        )
        self.last_update = now

    async def acquire(self) -> None:
        """Acquire a token for making a request (async version).

        Blocks until a token is available.
        """
        async with self._lock:
            self._refill()

            if self.tokens >= 1:
                self.tokens -= 1
                return

            sleep_time = (1 - self.tokens) / self.requests_per_second
            await asyncio.sleep(sleep_time)
            self.tokens = 0
            self.last_update = time.time()

    def acquire_sync(self) -> None:
        """Acquire a token for making a request (synchronous version)."""
        self._refill()

        if self.tokens >= 1:
            self.tokens -= 1
            return

        sleep_time = (1 - self.tokens) / self.requests_per_second
        time.sleep(sleep_time)
        self.tokens = 0
        self.last_update = time.time()


class RetryPolicy:
    """Bounded retry decision for transient failures and primary rate limits."""

    def __init__(self, max_retries: int = 3, retry_after: float = 3.0):
        """Initialize retry policy.

        Args:
            max_retries: Number of retries allowed after the first attempt
            retry_after: Fixed delay used when the service gives no hint
        """
        self.max_retries = max_retries
        self.retry_after = retry_after

    def should_retry(self, retry_count: int, retry_after: Optional[float]) -> bool:
        """Decide whether another attempt may be made.

        Args:
            retry_count: Retries already performed for this request
            retry_after: Delay hint reported by the service, if any

        Returns:
            True if the request should be retried
        """
        if retry_count < self.max_retries:
            logger.info(f'Retrying after {self.delay(retry_after)} seconds!')
            return True
        return False

    def delay(self, retry_after: Optional[float]) -> float:
        """Seconds to wait before the next attempt."""
        if retry_after is None or retry_after < 0:
            return self.retry_after
        return retry_after
