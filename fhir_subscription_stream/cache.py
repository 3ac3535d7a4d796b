"""
Single-flight, stale-while-revalidate cache for one asynchronously loaded
value.

State machine:

    EMPTY            -> LOADING           first get()
    LOADING          -> READY             load succeeded
    LOADING          -> EMPTY             load failed, waiters get an error
    READY            -> REFRESHING_STALE  get() after the refresh interval
    REFRESHING_STALE -> READY             refresh settled, either way

Only one load runs at a time. Callers arriving while the cache is EMPTY or
LOADING wait for the same load and share its result. Once a value exists,
callers never wait: a stale value is served while a background refresh
replaces it.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from fhir_subscription_stream.errors import CacheLoadError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REFRESH_INTERVAL_MS = 60_000


class CacheState(str, Enum):
    """Lifecycle states of a CachedAsyncValue."""

    EMPTY = "EMPTY"
    LOADING = "LOADING"
    READY = "READY"
    REFRESHING_STALE = "REFRESHING_STALE"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A loaded value and the monotonic time its load started."""

    value: T
    last_refresh_started_at: float


class CachedAsyncValue(Generic[T]):
    """
    Holds a value produced by `loader`, refreshed every `refresh_interval_ms`.

    Args:
        loader: Zero-argument callable producing the value. Runs on a worker
            thread.
        refresh_interval_ms: Age after which the value is refreshed
        name: Used in log records and worker thread names
        clock: Monotonic clock in seconds
    """

    def __init__(
        self,
        loader: Callable[[], T],
        refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS,
        name: str = "cached-value",
        clock: Callable[[], float] = time.monotonic,
    ):
        if refresh_interval_ms < 0:
            raise ValueError("refresh_interval_ms must be non-negative")
        self._loader = loader
        self._refresh_interval = refresh_interval_ms / 1000
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[CacheEntry[T]] = None
        self._pending: Optional[Future[T]] = None
        self._closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=name
        )

    @property
    def state(self) -> CacheState:
        """Current lifecycle state."""
        with self._lock:
            if self._entry is None:
                return (
                    CacheState.EMPTY
                    if self._pending is None
                    else CacheState.LOADING
                )
            return (
                CacheState.READY
                if self._pending is None
                else CacheState.REFRESHING_STALE
            )

    def get(self) -> T:
        """
        Return the cached value, loading or refreshing it as needed.

        Raises:
            CacheLoadError: If no value has ever been loaded and either the
                load this call waited for failed or the cache is closed
        """
        with self._lock:
            entry = self._entry
            if entry is not None:
                if (
                    not self._closed
                    and self._pending is None
                    and self._is_stale(entry)
                ):
                    logger.info(
                        "Cached value is stale, refreshing in background",
                        extra={"cache": self.name},
                    )
                    self._pending = self._start_load()
                return entry.value

            if self._closed and self._pending is None:
                raise CacheLoadError(f"{self.name} is closed")
            if self._pending is None:
                self._pending = self._start_load()
            pending = self._pending

        return pending.result()

    def wait_for_refresh(self, timeout: Optional[float] = None) -> None:
        """Block until the in-flight load, if any, has settled."""
        with self._lock:
            pending = self._pending
        if pending is None:
            return
        pending.exception(timeout=timeout)

    def invalidate(self) -> None:
        """Drop the cached value so the next get() loads again."""
        with self._lock:
            self._entry = None

    def close(self) -> None:
        """
        Stop the loader worker.

        A closed cache keeps serving its last value but never reloads it.
        """
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=False)

    def _is_stale(self, entry: CacheEntry[T]) -> bool:
        return (
            self._clock() - entry.last_refresh_started_at
            >= self._refresh_interval
        )

    def _start_load(self) -> "Future[T]":
        # Called with the lock held.
        started_at = self._clock()
        return self._executor.submit(self._load, started_at)

    def _load(self, started_at: float) -> T:
        try:
            value = self._loader()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            with self._lock:
                self._pending = None
                has_value = self._entry is not None
            if has_value:
                logger.exception(
                    "Background refresh failed, serving previous value",
                    extra={"cache": self.name},
                )
                raise
            logger.exception(
                "Initial load failed", extra={"cache": self.name}
            )
            raise CacheLoadError(
                f"Failed to load {self.name}: {exc}"
            ) from exc

        with self._lock:
            self._entry = CacheEntry(
                value=value, last_refresh_started_at=started_at
            )
            self._pending = None
        return value


__all__ = [
    "CacheEntry",
    "CacheState",
    "CachedAsyncValue",
    "DEFAULT_REFRESH_INTERVAL_MS",
]
