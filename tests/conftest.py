"""Shared fixtures: in-memory persistence, a scripted backend, a ticking clock."""
import os

os.environ.setdefault("TRACKER_NO_LOG_FILE", "1")

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List

import pytest

from jobtracker.config import Settings
from jobtracker.extraction.base import ExtractionBackend, ExtractionRequest, SearchResult
from jobtracker.extraction.service import ExtractionService
from jobtracker.persistence import MemoryPersistence
from jobtracker.store import RecordStore


class FakeBackend(ExtractionBackend):
    """Backend whose answers are scripted per task.

    Each script entry is a value to return, an exception to raise, or a
    callable taking the request. A list is consumed one entry per call; its
    last entry repeats.
    """

    def __init__(self, **scripts: Any) -> None:
        self.scripts = scripts
        self.calls: List[ExtractionRequest] = []
        self.search_calls: List[ExtractionRequest] = []

    def _answer(self, key: str, request: ExtractionRequest) -> Any:
        script = self.scripts.get(key)
        if isinstance(script, list):
            script = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(script, BaseException):
            raise script
        if callable(script):
            return script(request)
        return script

    def run(self, request: ExtractionRequest) -> Any:
        self.calls.append(request)
        return self._answer(request.task, request)

    def search(self, request: ExtractionRequest) -> SearchResult:
        self.search_calls.append(request)
        answer = self._answer("search", request)
        return answer if isinstance(answer, SearchResult) else SearchResult(payload=answer)


class Ticker:
    """Clock returning a strictly increasing ISO timestamp on each call."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)) -> None:
        self.current = start
        self.lock = threading.Lock()

    def __call__(self) -> str:
        with self.lock:
            self.current += timedelta(seconds=1)
            return self.current.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays: List[float] = []
    monkeypatch.setattr("jobtracker.retry.time.sleep", delays.append)
    return delays


@pytest.fixture
def settings():
    return Settings(max_retries=2, base_delay_ms=10)


@pytest.fixture
def memory():
    return MemoryPersistence()


@pytest.fixture
def clock():
    return Ticker()


@pytest.fixture
def backend():
    return FakeBackend(details={"company": "Acme", "salaryRange": "$150k-$180k"})


@pytest.fixture
def service(backend, settings):
    return ExtractionService(backend, settings, fetcher=lambda url: None)


@pytest.fixture
def make_store(memory, settings, clock) -> Callable[..., RecordStore]:
    stores: List[RecordStore] = []

    def factory(extractor=None, confirm=None, persistence=None) -> RecordStore:
        store = RecordStore(
            persistence or memory,
            extractor,
            settings=settings,
            clock=clock,
            confirm=confirm,
        )
        stores.append(store)
        return store

    yield factory
    for store in stores:
        store.close()


@pytest.fixture
def store(make_store, service):
    s = make_store(service, confirm=lambda prompt: True)
    return s
