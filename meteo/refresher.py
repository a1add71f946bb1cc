import logging
from typing import Any, Awaitable, Callable, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .cache import TTLCache

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


class BackgroundRefresher:
    """Keeps cache keys warm by re-fetching them every ``interval`` seconds.

    Each key owns a single interval job (job id == cache key), so registering
    a key again replaces its job instead of stacking a second loop. The
    first refresh fires one interval after registration. Fetch failures are
    logged and leave the cached entry untouched until it expires.
    """

    def __init__(
        self,
        cache: TTLCache,
        interval: Optional[float] = None,
        *,
        scheduler: Optional[AsyncIOScheduler] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._cache = cache
        self.interval = float(interval) if interval is not None else cache.ttl
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._log = logger or logging.getLogger(__name__)
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._scheduler.running and not self._stopped

    def start(self) -> None:
        """Start the scheduler; needs a running event loop."""
        if not self._scheduler.running:
            self._stopped = False
            self._scheduler.start()
            self._log.debug("Background refresher started: interval=%ss", self.interval)

    def start_refresh(self, key: str, fetch_fn: FetchFn) -> Job:
        self.start()
        job = self._scheduler.add_job(
            self._refresh,
            "interval",
            seconds=self.interval,
            args=[key, fetch_fn],
            id=key,
            name=f"refresh:{key}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._log.info("Background refresh scheduled: key=%s every %ss", key, self.interval)
        return job

    def stop_refresh(self, key: str) -> bool:
        try:
            self._scheduler.remove_job(key)
        except JobLookupError:
            return False
        self._log.info("Background refresh stopped: key=%s", key)
        return True

    def keys(self):
        return [job.id for job in self._scheduler.get_jobs()]

    def shutdown(self) -> None:
        # AsyncIOScheduler applies shutdown on the next loop turn.
        if self._scheduler.running and not self._stopped:
            self._stopped = True
            self._scheduler.shutdown(wait=False)
            self._log.debug("Background refresher shut down")

    async def _refresh(self, key: str, fetch_fn: FetchFn) -> None:
        if self._stopped:
            return
        try:
            value = await fetch_fn()
        except Exception as exc:
            self._log.warning("Background refresh failed: key=%s error=%r", key, exc)
            return
        self._cache.set(key, value)
        self._log.info("Cache refreshed in background: key=%s", key)
