"""
Prediction Cache and Engine Metrics
Injected ports for TTL caching of forecasts and in-process counters
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import Counter
from concurrent.futures import Future
from typing import Callable, Dict, Optional, Tuple

from .exceptions import CacheUnavailableError
from .models import Prediction

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Key/value store with per-entry TTL"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired"""

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value; later writes overwrite earlier ones"""


class InMemoryTTLCache(CacheBackend):
    """Process-local cache backend"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for k in expired:
                del self._entries[k]
            self._entries[key] = (now + ttl_seconds, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class EngineMetrics:
    """Thread-safe named counters owned by the host process"""

    def __init__(self):
        self._counts = Counter()
        self._lock = threading.Lock()

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


def prediction_cache_key(region_key: str, horizon_days: int, disease_filter: Optional[str]) -> str:
    return f"prediction:{region_key}:{horizon_days}:{disease_filter or 'all'}"


class PredictionCache:
    """
    Read-through cache of predictions with request coalescing

    The serialized JSON of a computed prediction is what gets stored, and a
    hit decodes that same JSON, so every caller within the TTL sees exactly
    what the computation produced. Concurrent misses on one key wait on a
    single in-flight computation; different keys never block each other.
    Backend failures are logged and the value is computed directly.
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        ttl_seconds: int = 3600,
        metrics: Optional[EngineMetrics] = None
    ):
        self.backend = backend or InMemoryTTLCache()
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics or EngineMetrics()
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def _read(self, key: str) -> Optional[Prediction]:
        try:
            payload = self.backend.get(key)
        except CacheUnavailableError as e:
            logger.warning(f"Prediction cache unavailable on read ({e}); computing directly")
            self.metrics.increment("cache_errors")
            return None
        if payload is None:
            return None
        try:
            return Prediction.from_dict(json.loads(payload))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key} ({e}); computing directly")
            self.metrics.increment("cache_errors")
            return None

    def _write(self, key: str, prediction: Prediction) -> Prediction:
        payload = json.dumps(prediction.to_dict(), sort_keys=True)
        try:
            self.backend.set(key, payload, self.ttl_seconds)
        except CacheUnavailableError as e:
            logger.warning(f"Prediction cache unavailable on write ({e})")
            self.metrics.increment("cache_errors")
        return Prediction.from_dict(json.loads(payload))

    def get_or_compute(self, key: str, compute: Callable[[], Prediction]) -> Prediction:
        """
        Return the cached prediction for `key` or compute and store it

        Args:
            key: Cache key (see prediction_cache_key)
            compute: Zero-argument callable producing a fresh Prediction

        Returns:
            The prediction as stored in the cache
        """
        cached = self._read(key)
        if cached is not None:
            self.metrics.increment("cache_hits")
            return cached

        with self._lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                # a computation may have finished since the first read
                cached = self._read(key)
                if cached is not None:
                    self.metrics.increment("cache_hits")
                    return cached
                future = Future()
                self._inflight[key] = future

        if not owner:
            self.metrics.increment("cache_coalesced")
            return future.result()

        self.metrics.increment("cache_misses")
        try:
            prediction = self._write(key, compute())
            future.set_result(prediction)
            return prediction
        except BaseException as e:
            future.set_exception(e)
            raise
        finally:
            with self._lock:
                self._inflight.pop(key, None)
