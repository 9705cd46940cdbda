from __future__ import annotations

import threading

import pytest

from page_pipeline.errors import StoreError
from page_pipeline.config import load_config
from page_pipeline.resilience import CircuitBreaker, CircuitOpenError, GuardedObjectStore, store_scope
from page_pipeline.storage import InMemoryObjectStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _fail():
    raise RuntimeError("boom")


def test_breaker_opens_after_max_failures():
    breaker = CircuitBreaker(max_failures=3, reset_timeout=60, clock=FakeClock())

    for _ in range(3):
        with pytest.raises(RuntimeError):
            breaker.execute(_fail)

    assert breaker.get_state()["state"] == "open"
    with pytest.raises(CircuitOpenError):
        breaker.execute(lambda: "never called")


def test_breaker_half_opens_after_timeout_and_closes_on_success():
    clock = FakeClock()
    breaker = CircuitBreaker(max_failures=1, reset_timeout=60, clock=clock)
    with pytest.raises(RuntimeError):
        breaker.execute(_fail)

    clock.now += 61
    assert breaker.execute(lambda: "ok") == "ok"
    assert breaker.get_state() == {"state": "closed", "failures": 0, "last_failure_time": 1000.0}


def test_breaker_reopens_when_trial_call_fails():
    clock = FakeClock()
    breaker = CircuitBreaker(max_failures=2, reset_timeout=60, clock=clock)
    for _ in range(2):
        with pytest.raises(RuntimeError):
            breaker.execute(_fail)

    clock.now += 61
    with pytest.raises(RuntimeError):
        breaker.execute(_fail)

    assert breaker.get_state()["state"] == "open"


def test_success_resets_failure_count():
    breaker = CircuitBreaker(max_failures=2, clock=FakeClock())
    with pytest.raises(RuntimeError):
        breaker.execute(_fail)
    breaker.execute(lambda: None)
    with pytest.raises(RuntimeError):
        breaker.execute(_fail)

    assert breaker.get_state()["state"] == "closed"


def test_circuit_open_error_is_retryable_store_error():
    error = CircuitOpenError("object store")

    assert isinstance(error, StoreError)
    assert error.retryable is True


class SlowStore(InMemoryObjectStore):
    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def get(self, key):
        self.release.wait(5)
        return super().get(key)


class BrokenStore(InMemoryObjectStore):
    def put(self, key, body, content_type, cache_control, expires_at=None):
        raise OSError("disk full")


def test_guarded_store_passes_calls_through():
    store = GuardedObjectStore(InMemoryObjectStore(), CircuitBreaker(clock=FakeClock()), timeout_seconds=1)
    try:
        store.put("a/index.html", "<p>hi</p>", "text/html", "no-store")
        assert store.get("a/index.html").body == "<p>hi</p>"
        store.delete("a/index.html")
        assert store.get("a/index.html") is None
    finally:
        store.close()


def test_guarded_store_times_out_as_store_error():
    slow = SlowStore()
    store = GuardedObjectStore(slow, CircuitBreaker(clock=FakeClock()), timeout_seconds=0.05)
    try:
        with pytest.raises(StoreError) as excinfo:
            store.get("a/index.html")
        assert excinfo.value.retryable is True
        assert "timed out" in excinfo.value.message
    finally:
        slow.release.set()
        store.close()


def test_guarded_store_translates_failures_and_trips_breaker():
    breaker = CircuitBreaker(max_failures=2, clock=FakeClock())
    store = GuardedObjectStore(BrokenStore(), breaker, timeout_seconds=1)
    try:
        for _ in range(2):
            with pytest.raises(StoreError, match="disk full"):
                store.put("a/index.html", "x", "text/html", "no-store")
        with pytest.raises(CircuitOpenError):
            store.put("a/index.html", "x", "text/html", "no-store")
    finally:
        store.close()


def test_store_scope_passes_given_store_through():
    given = InMemoryObjectStore()

    with store_scope(given, load_config()) as target:
        assert target is given
    target.put("a/index.html", "x", "text/html", "no-store")
    assert given.get("a/index.html").body == "x"


def test_store_scope_closes_the_store_it_builds():
    with store_scope(None, load_config()) as target:
        assert isinstance(target, GuardedObjectStore)
        target.put("a/index.html", "x", "text/html", "no-store")

    with pytest.raises(StoreError):
        target.get("a/index.html")
