from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional, TypeVar

from .config import Config
from .errors import StoreError, translate_error
from .storage import ObjectStore, StoredObject, build_object_store

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half-open"


class CircuitOpenError(StoreError):
    def __init__(self, name: str):
        super().__init__(f"Circuit breaker open for {name} after repeated failures", retryable=True)


class CircuitBreaker:
    """Stops calling a failing dependency for ``reset_timeout`` seconds after ``max_failures`` failures.

    After the timeout one trial call is let through (half-open); success closes the circuit, failure
    opens it again. One instance is shared by every caller in the process.
    """

    def __init__(
        self,
        max_failures: int = 3,
        reset_timeout: float = 60.0,
        name: str = "object store",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_failures = max_failures
        self.reset_timeout = reset_timeout
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CLOSED
        self._failures = 0
        self._last_failure_time: Optional[float] = None

    def _before_call(self) -> None:
        with self._lock:
            if self._state != OPEN:
                return
            if self._last_failure_time is not None and self._clock() - self._last_failure_time > self.reset_timeout:
                self._state = HALF_OPEN
                self._failures = 0
                logger.info("Circuit breaker for %s is half-open", self.name)
                return
        raise CircuitOpenError(self.name)

    def record_success(self) -> None:
        with self._lock:
            if self._state != CLOSED:
                logger.info("Circuit breaker for %s closed", self.name)
            self._state = CLOSED
            self._failures = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure_time = self._clock()
            if self._state == HALF_OPEN or self._failures >= self.max_failures:
                if self._state != OPEN:
                    logger.warning("Circuit breaker for %s opened after %s failures", self.name, self._failures)
                self._state = OPEN

    def execute(self, operation: Callable[[], T]) -> T:
        self._before_call()
        try:
            result = operation()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def get_state(self) -> dict:
        with self._lock:
            return {
                "state": self._state,
                "failures": self._failures,
                "last_failure_time": self._last_failure_time,
            }


class GuardedObjectStore:
    """Object store wrapper that bounds each call by a timeout and routes it through a breaker.

    Every failure leaves as a retryable ``StoreError``.
    """

    def __init__(self, store: ObjectStore, breaker: CircuitBreaker, timeout_seconds: float = 10.0, max_workers: int = 8):
        self.store = store
        self.breaker = breaker
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="object-store")

    def _call(self, name: str, fn: Callable[[], T]) -> T:
        def bounded() -> T:
            future = self._executor.submit(fn)
            return future.result(timeout=self.timeout_seconds)

        try:
            return self.breaker.execute(bounded)
        except StoreError:
            raise
        except Exception as exc:
            error = translate_error(exc)
            raise StoreError(f"Object store {name} failed: {error.message}") from exc

    def put(self, key: str, body: str, content_type: str, cache_control: str, expires_at: Optional[datetime] = None) -> None:
        self._call("put", lambda: self.store.put(key, body, content_type, cache_control, expires_at))

    def get(self, key: str) -> Optional[StoredObject]:
        return self._call("get", lambda: self.store.get(key))

    def delete(self, key: str) -> None:
        self._call("delete", lambda: self.store.delete(key))

    def close(self) -> None:
        self._executor.shutdown(wait=False)


def build_breaker(config: Config) -> CircuitBreaker:
    return CircuitBreaker(
        max_failures=config.store_breaker_max_failures,
        reset_timeout=config.store_breaker_reset_seconds,
    )


def guard_store(store: ObjectStore, config: Config, breaker: Optional[CircuitBreaker] = None) -> GuardedObjectStore:
    return GuardedObjectStore(store, breaker or build_breaker(config), timeout_seconds=config.store_timeout_seconds)


def build_store(config: Config, breaker: Optional[CircuitBreaker] = None) -> GuardedObjectStore:
    """The configured backend wrapped in timeout and breaker guards."""
    return guard_store(build_object_store(config), config, breaker)


@contextmanager
def store_scope(store: Optional[ObjectStore], config: Config) -> Iterator[ObjectStore]:
    """Yield ``store`` untouched, or a store built from ``config`` that is closed on exit.

    Long-running callers build one guarded store at startup and pass it in so every call shares
    its breaker.
    """
    if store is not None:
        yield store
        return
    owned = build_store(config)
    try:
        yield owned
    finally:
        owned.close()
