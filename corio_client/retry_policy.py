"""Retry with exponential backoff, shared by every retryable network call."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from corio_client import config
from corio_client.errors import CorioClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_network_error(exc: BaseException) -> bool:
    """Only transport-level failures are worth retrying; server answers are final."""
    return isinstance(exc, CorioClientError) and exc.retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry: ``max_attempts`` tries, waiting base_delay * 2^(n-1) after try n."""
    max_attempts: int = config.UPLOAD_MAX_ATTEMPTS
    base_delay: float = config.UPLOAD_RETRY_BASE_DELAY
    is_retryable: Callable[[BaseException], bool] = is_transient_network_error

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (one-based) failed attempt."""
        return self.base_delay * (2 ** (attempt - 1))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` under ``policy``.

    Non-retryable errors propagate immediately; a retryable error on the last
    attempt propagates as well.
    """
    policy = policy or RetryPolicy()
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as exc:
            if not policy.is_retryable(exc):
                raise
            if attempt >= policy.max_attempts:
                logger.warning(
                    f"{description} failed after {attempt} attempts",
                    extra={"attempt": attempt, "max_attempts": policy.max_attempts},
                )
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description} failed, retrying",
                extra={"attempt": attempt, "retry_delay_s": delay, "error": str(exc)},
            )
            if delay:
                await sleep(delay)
            attempt += 1
