import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

from . import codec
from .errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


class ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TTLCache:
    """Thread-safe key/value store whose entries expire ``ttl`` seconds after they were set.

    Expiry is lazy: an entry is dropped by the ``get`` that finds it stale.
    When ``path`` is given the whole table is loaded from it once on
    construction and rewritten after every ``set``; disk problems are logged
    and never reach the caller.
    """

    def __init__(
        self,
        ttl: float,
        path: Optional[Union[str, Path]] = None,
        *,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = float(ttl)
        self.path = Path(path) if path else None
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)
        self._lock = ReadWriteLock()
        self._entries: Dict[str, CacheEntry] = {}
        self._load()
        self._log.info("Cache initialized: path=%s ttl=%ss items=%s", self.path, self.ttl, len(self._entries))

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at >= self.ttl

    def get(self, key: str) -> Tuple[Any, bool]:
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None:
                self._log.debug("Cache miss: key=%s", key)
                return None, False
            if not self._expired(entry):
                self._log.debug("Cache hit: key=%s", key)
                return entry.value, True

        with self._lock.write():
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if not self._expired(entry):
                # refreshed between the two lock sections
                return entry.value, True
            del self._entries[key]
            self._log.info("Cache expired: key=%s age=%.0fs", key, self._clock() - entry.stored_at)
            return None, False

    def set(self, key: str, value: Any) -> None:
        with self._lock.write():
            stored_at = self._clock()
            previous = self._entries.get(key)
            if previous is not None and previous.stored_at > stored_at:
                stored_at = previous.stored_at
            self._entries[key] = CacheEntry(value=value, stored_at=stored_at)
            # Persist synchronously so the file matches memory before set returns.
            self._save()
            self._log.info("Cache updated: key=%s total_items=%s", key, len(self._entries))

    def snapshot(self) -> Dict[str, CacheEntry]:
        """Copy of the table, stale entries included."""
        with self._lock.read():
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            document = codec.dump_entries({k: (e.value, e.stored_at) for k, e in self._entries.items()})
            codec.write_document(self.path, document)
        except PersistenceError as exc:
            self._log.warning("Failed to save cache: %s", exc)
            return
        self._log.debug("Cache saved to disk: path=%s", self.path)

    def _load(self) -> None:
        if self.path is None:
            return
        try:
            entries = codec.load_entries(codec.read_document(self.path))
        except FileNotFoundError:
            self._log.debug("No existing cache file, starting empty: path=%s", self.path)
            return
        except PersistenceError as exc:
            self._log.warning("Failed to decode cache, starting empty: %s", exc)
            return
        self._entries = {key: CacheEntry(value=value, stored_at=stored_at) for key, (value, stored_at) in entries.items()}
        self._log.info("Cache loaded from disk: items=%s path=%s", len(self._entries), self.path)
