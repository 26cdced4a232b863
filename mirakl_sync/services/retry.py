import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from mirakl_sync.services.mirakl_errors import MiraklRateLimitError, MiraklServerError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Read a Retry-After header as whole seconds, None when absent or not a number"""
    if value is None:
        return None
    try:
        seconds = int(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
    """Exponential wait: attempt 1 -> 2s, attempt 2 -> 4s, attempt 3 -> 8s"""
    return (2 ** attempt) * base_delay


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``operation`` and retry it on rate limits (429) and server errors (5xx).

    Any other error is raised straight away. When the attempts run out the
    last error is raised unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            return await operation()
        except MiraklRateLimitError as e:
            if attempt >= max_attempts:
                raise
            retry_after = parse_retry_after(e.retry_after)
            wait_time = retry_after if retry_after is not None else backoff_delay(attempt, base_delay)
            logger.warning(
                f"Rate limit hit. Retrying after {wait_time}s... (Attempt {attempt}/{max_attempts})"
            )
        except MiraklServerError as e:
            if attempt >= max_attempts:
                raise
            wait_time = backoff_delay(attempt, base_delay)
            logger.warning(
                f"Server error ({e.status_code}). Retrying after {wait_time}s... "
                f"(Attempt {attempt}/{max_attempts})"
            )

        await sleep(wait_time)
        attempt += 1
