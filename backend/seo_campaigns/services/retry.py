"""
Retry Executor — run a fallible async step up to N times with a fixed delay.

Failures are classified before any retry: fatal ones (validation, auth, quota)
propagate immediately without consuming the remaining attempts; everything else
is retried until the attempt budget runs out and then surfaces as RetryExhaustedError.
"""

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Optional

from seo_campaigns.errors import FatalError, RetryExhaustedError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


ErrorClassifier = Callable[[BaseException], ErrorKind]


def classify_error(exc: BaseException) -> ErrorKind:
    """Default classifier: the FatalError branch of the taxonomy is never retried."""
    if isinstance(exc, FatalError):
        return ErrorKind.FATAL
    return ErrorKind.RETRYABLE


class RetryExecutor:
    """Runs `func` with a bounded number of attempts."""

    def __init__(
        self,
        max_attempts: int = 3,
        delay_seconds: float = 2.0,
        classifier: ErrorClassifier = classify_error,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Optional[Callable[[int, int, BaseException], None]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.classifier = classifier
        self._sleep = sleep
        self._on_retry = on_retry

    async def run(self, operation: str, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) until it succeeds.
        Fatal errors are re-raised as-is; exhausted retries raise RetryExhaustedError
        chained to the last failure.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if self.classifier(e) is ErrorKind.FATAL:
                    logger.warning(f"{operation}: fatal {type(e).__name__} on attempt {attempt}, not retrying: {e}")
                    raise
                last_error = e
                logger.warning(f"{operation}: attempt {attempt}/{self.max_attempts} failed: {e}")
                if attempt == self.max_attempts:
                    break
                if self._on_retry:
                    self._on_retry(attempt + 1, self.max_attempts, e)
                await self._sleep(self.delay_seconds)

        raise RetryExhaustedError(operation, self.max_attempts, last_error) from last_error
