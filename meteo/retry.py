import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .errors import TerminalFetchError, TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_ATTEMPTS = int(os.getenv("METEO_MAX_ATTEMPTS", "3"))
_BACKOFF_INITIAL = float(os.getenv("METEO_BACKOFF_INITIAL", "1.0"))  # seconds
_BACKOFF_FACTOR = float(os.getenv("METEO_BACKOFF_FACTOR", "2.0"))


def backoff_delay(attempt: int, initial: float = _BACKOFF_INITIAL, factor: float = _BACKOFF_FACTOR) -> float:
    """Delay to wait before 0-indexed ``attempt``; zero for the first one."""
    if attempt <= 0:
        return 0.0
    return initial * factor ** (attempt - 1)


async def fetch_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = _MAX_ATTEMPTS,
    *,
    is_success: Optional[Callable[[T], bool]] = None,
    retry_on: Tuple[Type[BaseException], ...] = (TransientNetworkError,),
    backoff_initial: float = _BACKOFF_INITIAL,
    backoff_factor: float = _BACKOFF_FACTOR,
    description: str = "request",
    log: Optional[logging.Logger] = None,
) -> T:
    """Run ``operation`` up to ``max_attempts`` times with exponential backoff.

    An attempt succeeds when it raises nothing and ``is_success`` accepts the
    result. Exceptions outside ``retry_on`` propagate at once. When every
    attempt fails, raises TerminalFetchError chained from the last failure.
    """
    log = log or logger
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_exc: Optional[BaseException] = None
    for attempt in range(max_attempts):
        delay = backoff_delay(attempt, backoff_initial, backoff_factor)
        if delay:
            log.info("Retry %s/%s for %s after %.2fs (error=%r)", attempt + 1, max_attempts, description, delay, last_exc)
            await asyncio.sleep(delay)

        log.debug("Attempt %s/%s for %s", attempt + 1, max_attempts, description)
        try:
            result = await operation()
        except retry_on as exc:
            last_exc = exc
            log.warning("Attempt %s/%s for %s failed: %r", attempt + 1, max_attempts, description, exc)
            continue

        if is_success is not None and not is_success(result):
            last_exc = TransientNetworkError(f"unsuccessful response for {description}: {_describe(result)}")
            log.warning("Attempt %s/%s for %s returned %s", attempt + 1, max_attempts, description, _describe(result))
            continue
        return result

    log.error("Exhausted %s attempts for %s; last error=%r", max_attempts, description, last_exc)
    raise TerminalFetchError(f"all retries failed: {last_exc}") from last_exc


def _describe(result: Any) -> str:
    status = getattr(result, "status_code", None)
    if status is None:
        status = getattr(result, "status", None)
    return f"status {status}" if status is not None else repr(result)[:200]
