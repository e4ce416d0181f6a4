from __future__ import annotations

"""Runtime helpers shared by the explorer and RPC adapters.

- ``CacheService``: process-wide memoization with get-or-populate semantics.
  The first caller for a key runs the loader; concurrent callers for the same
  key wait on the same future instead of issuing duplicate requests.
- ``RetryPolicy``: fixed attempt count with linear backoff around any
  fallible call.
- ``fetch_many``: bounded-concurrency fan-out that drops failed keys instead
  of failing the batch.
"""

from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple
import concurrent.futures
import logging
import threading
import time

logger = logging.getLogger(__name__)


class CacheService:
    """Thread-safe memo cache with in-flight request coalescing.

    Entries never expire unless ``ttl`` is given; expired entries are then
    swept on insert so the cache only holds recently loaded keys. Loader
    exceptions are propagated to every waiter and are not memoized, so the
    next caller retries.
    """

    def __init__(self, name: str, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._values: Dict[Hashable, Tuple[float, Any]] = {}
        self._inflight: Dict[Hashable, Future] = {}
        self._last_sweep = clock()

    def _fresh(self, stored_at: float) -> bool:
        return self.ttl is None or (self._clock() - stored_at) < self.ttl

    def _sweep_expired(self) -> None:
        # Caller holds the lock. Runs at most once per ttl, so entries live under 2 * ttl.
        if self.ttl is None:
            return
        now = self._clock()
        if now - self._last_sweep < self.ttl:
            return
        self._last_sweep = now
        for k in [k for k, (stored_at, _) in self._values.items() if now - stored_at >= self.ttl]:
            del self._values[k]

    def peek(self, key: Hashable) -> Tuple[bool, Any]:
        with self._lock:
            hit = self._values.get(key)
            if hit is not None and self._fresh(hit[0]):
                return True, hit[1]
        return False, None

    def get_or_populate(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        with self._lock:
            hit = self._values.get(key)
            if hit is not None:
                if self._fresh(hit[0]):
                    return hit[1]
                self._values.pop(key, None)
            fut = self._inflight.get(key)
            owner = fut is None
            if owner:
                fut = Future()
                self._inflight[key] = fut

        if not owner:
            return fut.result()

        try:
            value = loader()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            fut.set_exception(e)
            raise

        with self._lock:
            self._sweep_expired()
            self._values[key] = (self._clock(), value)
            self._inflight.pop(key, None)
        fut.set_result(value)
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __contains__(self, key: Hashable) -> bool:
        return self.peek(key)[0]


class RetryPolicy:
    """Run a call up to ``retries + 1`` times, sleeping ``backoff * attempt`` between tries."""

    def __init__(self, retries: int = 2, backoff_seconds: float = 0.12, sleep: Callable[[float], None] = time.sleep) -> None:
        self.retries = max(0, int(retries))
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        return self.backoff_seconds * attempt

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        attempt = 1
        while True:
            try:
                return fn(*args, **kwargs)
            except Exception:
                if attempt > self.retries:
                    raise
            self._sleep(self.backoff(attempt))
            attempt += 1


def fetch_many(keys: Iterable[Hashable], fn: Callable[[Hashable], Any], max_workers: int = 8, label: str = 'fetch') -> Dict[Hashable, Any]:
    """Call ``fn`` for every distinct key with at most ``max_workers`` in flight.

    Returns ``{key: result}`` for keys whose call returned a non-None value.
    Failures are logged and skipped.
    """
    unique = list(dict.fromkeys(k for k in keys if k))
    results: Dict[Hashable, Any] = {}
    if not unique:
        return results

    workers = min(max(1, max_workers), len(unique))
    failed = 0
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        future_map = {ex.submit(fn, k): k for k in unique}
        for fut in concurrent.futures.as_completed(future_map):
            key = future_map[fut]
            try:
                value = fut.result()
            except Exception as e:
                failed += 1
                logger.debug('%s failed for %s: %s', label, key, e)
                continue
            if value is not None:
                results[key] = value

    if failed:
        logger.warning('%s: %d of %d lookups failed', label, failed, len(unique))
    return results
