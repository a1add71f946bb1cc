import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .cache import TTLCache
from .errors import PartialResultWarning
from .refresher import BackgroundRefresher

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass
class DualFetchResult:
    first: Any = None
    second: Any = None
    errors: List[PartialResultWarning] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def complete(self) -> bool:
        return self.first is not None and self.second is not None

    @property
    def empty(self) -> bool:
        return self.first is None and self.second is None

    def error_for(self, key: str) -> Optional[PartialResultWarning]:
        for warning in self.errors:
            if warning.key == key:
                return warning
        return None


async def _fetch_and_store(cache: TTLCache, key: str, fetch: Callable[[], Awaitable[Any]], log: logging.Logger) -> Any:
    value = await fetch()
    cache.set(key, value)
    log.debug("Fetched and cached: key=%s", key)
    return value


async def fetch_both(
    cache: TTLCache,
    first_key: str,
    first_fetch: Callable[[], Awaitable[Any]],
    second_key: str,
    second_fetch: Callable[[], Awaitable[Any]],
    timeout: float = DEFAULT_TIMEOUT,
    *,
    refresher: Optional[BackgroundRefresher] = None,
    log: Optional[logging.Logger] = None,
) -> DualFetchResult:
    """Obtain two cache keys at once, fetching whichever of them missed.

    Cache hits are used as-is. Misses are fetched concurrently and stored as
    they complete. Waiting stops when both fetches are done or ``timeout``
    seconds have passed; a failed or late side is left as ``None`` and
    recorded in ``errors``. Fetches still running at the deadline are not
    cancelled and still populate the cache when they finish. Both keys are
    then registered with ``refresher``, if given.
    """
    log = log or logger
    started = time.monotonic()
    result = DualFetchResult()
    slots = (("first", first_key, first_fetch), ("second", second_key, second_fetch))

    tasks: Dict[asyncio.Task, tuple] = {}
    for slot, key, fetch in slots:
        value, found = cache.get(key)
        if found:
            log.debug("Cache hit: key=%s", key)
            setattr(result, slot, value)
            continue
        task = asyncio.ensure_future(_fetch_and_store(cache, key, fetch, log))
        tasks[task] = (slot, key)

    if tasks:
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in done:
            slot, key = tasks[task]
            exc = task.exception()
            if exc is not None:
                log.error("Fetch failed: key=%s error=%r", key, exc)
                result.errors.append(PartialResultWarning(key, cause=exc))
            else:
                setattr(result, slot, task.result())
        for task in pending:
            slot, key = tasks[task]
            log.warning("Timeout after %ss waiting for key=%s", timeout, key)
            task.add_done_callback(_make_late_logger(key, log))
            result.errors.append(PartialResultWarning(key, timed_out=True))

    result.elapsed = time.monotonic() - started

    if refresher is not None:
        for _, key, fetch in slots:
            refresher.start_refresh(key, fetch)

    return result


def _make_late_logger(key: str, log: logging.Logger) -> Callable[[asyncio.Task], None]:
    def _done(task: asyncio.Task) -> None:
        if task.cancelled():
            log.debug("Late fetch cancelled: key=%s", key)
        elif task.exception() is not None:
            log.warning("Late fetch failed: key=%s error=%r", key, task.exception())
        else:
            log.info("Late fetch completed and cached: key=%s", key)

    return _done
