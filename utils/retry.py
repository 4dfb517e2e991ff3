import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    delay: float = 1.0  # seconds, constant

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")


def _log_retry(attempt: int, max_attempts: int, error: BaseException) -> None:
    logger.warning("Error occurred: %s. Retrying... (%d/%d)", error, attempt, max_attempts)


class RetryExecutor:
    """
    Runs a zero-argument awaitable factory with bounded retries and a fixed
    delay between attempts.

    The factory is called once per attempt so every attempt gets a fresh
    coroutine. `on_retry(attempt, max_attempts, error)` fires before each retry,
    never before the first attempt and never after the last failure. The last
    failure is re-raised as is.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        on_retry: Optional[Callable[[int, int, BaseException], None]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy
        self.on_retry = on_retry or _log_retry
        self._sleep = sleep

    async def run(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        max_attempts = self.policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if attempt == max_attempts:
                    raise
                self.on_retry(attempt, max_attempts, e)
                await self._sleep(self.policy.delay)
