"""Key-value persistence for the serialized store, with file locking."""
from __future__ import annotations

import fcntl
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path

from jobtracker.config import Settings
from jobtracker.log import get_logger
from jobtracker.models import JobApplication, ResumeData, StoreSnapshot

log = get_logger(__name__)


class PersistenceAdapter(ABC):
    @abstractmethod
    def load(self, key: str) -> str | None:
        pass

    @abstractmethod
    def save(self, key: str, blob: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class MemoryPersistence(PersistenceAdapter):
    """Dict-backed adapter; handy for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})
        self.writes = 0

    def load(self, key: str) -> str | None:
        return self.blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        self.blobs[key] = blob
        self.writes += 1

    def remove(self, key: str) -> None:
        self.blobs.pop(key, None)


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


class JsonFilePersistence(PersistenceAdapter):
    """One ``<key>.json`` file per key inside *directory*."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.directory / f"{safe}.json"

    def load(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            blob = f.read()
            _unlock(f)
        return blob

    def save(self, key: str, blob: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            _lock(f)
            f.write(blob)
            f.flush()
            os.fsync(f.fileno())
            _unlock(f)
        os.replace(tmp, path)
        log.debug("Saved %s (%d bytes)", path.name, len(blob))

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def load_snapshot(adapter: PersistenceAdapter, settings: Settings) -> StoreSnapshot:
    """Read the persisted store; missing or corrupt blobs yield an empty state."""
    jobs: list[JobApplication] = []
    raw_jobs = adapter.load(settings.jobs_key)
    if raw_jobs:
        try:
            data = json.loads(raw_jobs)
            if not isinstance(data, list):
                raise ValueError(f"expected a list, got {type(data).__name__}")
            jobs = [JobApplication.from_dict(d) for d in data]
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("Stored jobs are corrupt (%s); starting with an empty tracker", exc)
            jobs = []

    resume: ResumeData | None = None
    raw_resume = adapter.load(settings.resume_key)
    if raw_resume:
        try:
            data = json.loads(raw_resume)
            if data is not None:
                resume = ResumeData.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning("Stored resume is corrupt (%s); ignoring it", exc)

    log.debug("Loaded %d job(s), resume=%s", len(jobs), bool(resume))
    return StoreSnapshot(jobs=jobs, resume=resume)


def save_snapshot(adapter: PersistenceAdapter, snapshot: StoreSnapshot, settings: Settings) -> None:
    adapter.save(
        settings.jobs_key,
        json.dumps([j.to_dict() for j in snapshot.jobs], ensure_ascii=False),
    )
    if snapshot.resume is None:
        adapter.remove(settings.resume_key)
    else:
        adapter.save(settings.resume_key, json.dumps(snapshot.resume.to_dict(), ensure_ascii=False))
