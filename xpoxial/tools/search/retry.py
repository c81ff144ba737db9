import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from xpoxial.services.shared.logger import SearchLogger

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: Optional[T]
    attempts: int
    succeeded: bool
    # Set when the loop stopped on a non-retryable result
    aborted: bool = False


class RetryPolicy:
    """Bounded retry with a fixed delay between attempts.

    The operation is re-run until ``is_done`` accepts its result, the result
    is judged fatal, or ``max_attempts`` is reached. Exceptions raised by the
    operation count as retryable failures; the last one is re-raised only
    when ``raise_last`` is set.
    """

    def __init__(self, max_attempts: int = 2, delay_seconds: float = 0.5, sleep: Optional[Sleep] = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self._sleep = sleep or asyncio.sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        is_done: Callable[[T], bool] = lambda _: True,
        is_fatal: Callable[[T], bool] = lambda _: False,
        logger: Optional[SearchLogger] = None,
        label: str = "operation",
        raise_last: bool = False,
    ) -> RetryOutcome[T]:
        value: Optional[T] = None
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1 and logger:
                logger.verbose("retry_attempt", {"label": label, "attempt": attempt, "max_attempts": self.max_attempts})

            try:
                value = await operation()
                last_error = None
            except Exception as e:
                last_error = e
                value = None
                if logger:
                    logger.warn("retry_attempt_failed", {
                        "label": label,
                        "attempt": attempt,
                        "error": str(e),
                        "type": type(e).__name__,
                    })
            else:
                if is_done(value):
                    return RetryOutcome(value=value, attempts=attempt, succeeded=True)
                if is_fatal(value):
                    return RetryOutcome(value=value, attempts=attempt, succeeded=False, aborted=True)

            if attempt < self.max_attempts:
                await self._sleep(self.delay_seconds)

        if last_error is not None and raise_last:
            raise last_error
        return RetryOutcome(value=value, attempts=self.max_attempts, succeeded=False)
