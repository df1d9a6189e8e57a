"""The record store: single owner of every application and the resume.

All mutations go through the store's lock and end with a full-snapshot write
to the persistence adapter. Enrichment runs on a small thread pool and
patches results back through the same locked path.
"""
from __future__ import annotations

import copy
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Any, Callable, TypeVar

from jobtracker import interviews
from jobtracker.config import Settings
from jobtracker.errors import AnalysisError
from jobtracker.extraction.service import ExtractionService, OfferRanking
from jobtracker.log import get_logger
from jobtracker.models import (
    ANALYZING,
    SALARY_NOT_FOUND,
    UNKNOWN_COMPANY,
    CareerStats,
    Interview,
    JobApplication,
    JobStatus,
    MatchAnalysis,
    ResumeData,
    StoreSnapshot,
    TodoItem,
    new_id,
    now_iso,
    parse_iso,
)
from jobtracker.persistence import PersistenceAdapter, load_snapshot, save_snapshot

log = get_logger(__name__)

T = TypeVar("T")

Confirm = Callable[[str], bool]

EDITABLE_FIELDS: frozenset[str] = frozenset(
    {"title", "company", "description", "salary_range", "status", "link", "analysis"}
)


def compute_stats(records: list[JobApplication]) -> CareerStats:
    total = len(records)
    offers = sum(1 for r in records if r.status == JobStatus.OFFER)
    rejections = sum(1 for r in records if r.status == JobStatus.REJECTED)
    rate = int(offers / total * 100 + 0.5) if total else 0  # half up
    return CareerStats(
        total_applied=total,
        total_rejections=rejections,
        total_offers=offers,
        success_rate=rate,
    )


def matches_query(record: JobApplication, query: str) -> bool:
    q = query.strip().lower()
    return not q or q in record.title.lower() or q in record.company.lower()


class RecordStore:
    def __init__(
        self,
        persistence: PersistenceAdapter,
        extractor: ExtractionService | None = None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], str] = now_iso,
        confirm: Confirm | None = None,
        max_workers: int = 4,
    ) -> None:
        self.persistence = persistence
        self.extractor = extractor
        self.settings = settings or Settings()
        self.clock = clock
        self.confirm = confirm
        self.max_workers = max_workers

        snapshot = load_snapshot(persistence, self.settings)
        self._jobs: list[JobApplication] = snapshot.jobs
        self._resume: ResumeData | None = snapshot.resume
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._closed = False

    # ── internals ────────────────────────────────────────────────────────

    def _persist(self) -> None:
        save_snapshot(self.persistence, StoreSnapshot(jobs=self._jobs, resume=self._resume), self.settings)

    def _find(self, job_id: str) -> JobApplication | None:
        for job in self._jobs:
            if job.id == job_id:
                return job
        log.error("No job with id %s (caller bug?)", job_id)
        assert not self.settings.strict, f"unknown job id {job_id}"
        return None

    def _touch(self, job: JobApplication) -> None:
        stamp = self.clock()
        if parse_iso(stamp) < parse_iso(job.date_modified):
            stamp = job.date_modified
        job.date_modified = stamp
        job.version += 1

    def _mutate(self, job_id: str, change: Callable[[JobApplication], T]) -> T | None:
        with self._lock:
            job = self._find(job_id)
            if job is None:
                return None
            result = change(job)
            self._touch(job)
            self._persist()
            return copy.deepcopy(result)

    def _confirmed(self, prompt: str, confirm: Confirm | None) -> bool:
        ask = confirm or self.confirm
        if ask is None or not ask(prompt):
            log.info("Not confirmed: %s", prompt)
            return False
        return True

    # ── reads ────────────────────────────────────────────────────────────

    def get(self, job_id: str) -> JobApplication | None:
        with self._lock:
            for job in self._jobs:
                if job.id == job_id:
                    return copy.deepcopy(job)
        return None

    def all_records(self) -> list[JobApplication]:
        with self._lock:
            return copy.deepcopy(self._jobs)

    def filter_active(self, query: str = "") -> list[JobApplication]:
        with self._lock:
            return [copy.deepcopy(j) for j in self._jobs if j.is_active and matches_query(j, query)]

    def list_archived(self) -> list[JobApplication]:
        """Archived or rejected records, most recently touched first."""
        with self._lock:
            rows = [copy.deepcopy(j) for j in self._jobs if not j.is_active]
        return sorted(rows, key=lambda j: parse_iso(j.date_modified), reverse=True)

    def offers(self) -> list[JobApplication]:
        with self._lock:
            return [copy.deepcopy(j) for j in self._jobs if j.is_active and j.status == JobStatus.OFFER]

    def compute_stats(self) -> CareerStats:
        with self._lock:
            return compute_stats(self._jobs)

    def agenda(self, now: datetime | None = None) -> interviews.Agenda:
        with self._lock:
            return copy.deepcopy(interviews.build_agenda(self._jobs, now))

    @property
    def resume(self) -> ResumeData | None:
        return copy.deepcopy(self._resume)

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return copy.deepcopy(StoreSnapshot(jobs=self._jobs, resume=self._resume))

    # ── record lifecycle ─────────────────────────────────────────────────

    def add_record(self, title: str, description: str, url: str = "") -> str:
        """Create an Applied record now; company/salary are filled in later."""
        if not title.strip():
            raise ValueError("A job needs a title")
        stamp = self.clock()
        job = JobApplication(
            id=new_id(),
            title=title.strip(),
            company=ANALYZING,
            description=description,
            salary_range=ANALYZING,
            status=JobStatus.APPLIED,
            date_added=stamp,
            date_modified=stamp,
            link=url.strip() or None,
        )
        with self._lock:
            self._jobs.insert(0, job)
            self._persist()
        log.info("Added %s (%s)", job.title, job.id)
        self._schedule_enrichment(job.id, job.version, description)
        return job.id

    def update_record(self, job_id: str, **fields: Any) -> bool:
        """Merge *fields* into the record and bump ``date_modified``."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if "status" in fields:
            fields["status"] = JobStatus(fields["status"])
        if "link" in fields:
            fields["link"] = (fields["link"] or "").strip() or None

        def apply(job: JobApplication) -> bool:
            for key, value in fields.items():
                setattr(job, key, value)
            return True

        updated = self._mutate(job_id, apply)
        if updated:
            log.debug("Updated %s: %s", job_id, ", ".join(sorted(fields)))
        return bool(updated)

    def set_status(self, job_id: str, status: JobStatus | str) -> bool:
        status = JobStatus(status)
        updated = self.update_record(job_id, status=status)
        if updated and status == JobStatus.REJECTED:
            log.info("%s rejected; moved out of the active funnel", job_id)
        return updated

    def archive_record(self, job_id: str) -> bool:
        with self._lock:
            job = self._find(job_id)
            if job is None:
                return False
            job.is_archived = True
            self._persist()
        log.info("Archived %s", job_id)
        return True

    def restore_record(self, job_id: str) -> bool:
        """Back into the funnel, at the start: un-archived and Applied."""

        def apply(job: JobApplication) -> bool:
            job.is_archived = False
            job.status = JobStatus.APPLIED
            return True

        restored = bool(self._mutate(job_id, apply))
        if restored:
            log.info("Restored %s", job_id)
        return restored

    def delete_record(self, job_id: str, confirm: Confirm | None = None) -> bool:
        """Permanently remove an archived or rejected record."""
        with self._lock:
            job = self._find(job_id)
            if job is None:
                return False
            if job.is_active:
                raise ValueError("Only archived or rejected jobs can be deleted; archive it first")
            label = f"{job.title} @ {job.company}"
        if not self._confirmed(f"Permanently delete {label}? This cannot be undone.", confirm):
            return False
        with self._lock:
            self._jobs = [j for j in self._jobs if j.id != job_id]
            self._persist()
        log.info("Deleted %s", job_id)
        return True

    # ── enrichment ───────────────────────────────────────────────────────

    def _schedule_enrichment(self, job_id: str, version: int, description: str) -> None:
        if self.extractor is None or not description.strip():
            self._apply_enrichment(job_id, version, UNKNOWN_COMPANY, SALARY_NOT_FOUND)
            return
        with self._lock:
            if self._closed:
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="enrich")
            future = self._executor.submit(self._enrich, job_id, version, description)
            self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def _enrich(self, job_id: str, version: int, description: str) -> None:
        try:
            found = self.extractor.extract_from_description(description)
            company, salary = found.company, found.salary_range
        except Exception as exc:
            log.warning("Enrichment of %s failed: %s", job_id, exc)
            company, salary = UNKNOWN_COMPANY, SALARY_NOT_FOUND
        self._apply_enrichment(job_id, version, company, salary)

    def _apply_enrichment(self, job_id: str, version: int, company: str, salary: str) -> None:
        """Patch extracted fields back in; fields the user already edited win."""
        with self._lock:
            if self._closed:
                log.debug("Store closed; discarding enrichment for %s", job_id)
                return
            job = next((j for j in self._jobs if j.id == job_id), None)
            if job is None:
                log.debug("Job %s gone before enrichment finished", job_id)
                return
            stale = job.version != version
            changed = False
            if not stale or job.company == ANALYZING:
                job.company = company
                changed = True
            if not stale or job.salary_range == ANALYZING:
                job.salary_range = salary
                changed = True
            if not changed:
                log.debug("Dropping stale enrichment for %s (v%d < v%d)", job_id, version, job.version)
                return
            self._touch(job)
            self._persist()
        log.info("Enriched %s: %s / %s", job_id, company, salary)

    def wait_for_enrichment(self, timeout: float | None = None) -> bool:
        """Block until in-flight enrichments settle; False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    # ── interviews ───────────────────────────────────────────────────────

    def add_interview(self, job_id: str, stage: str, date: str | datetime, mode: str = "Remote", **kwargs: Any) -> Interview | None:
        return self._mutate(job_id, lambda job: interviews.add_interview(job, stage, date, mode, **kwargs))

    def update_interview(self, job_id: str, interview_id: str, **changes: Any) -> Interview | None:
        return self._mutate(job_id, lambda job: interviews.update_interview(job, interview_id, **changes))

    def remove_interview(self, job_id: str, interview_id: str) -> bool:
        return bool(self._mutate(job_id, lambda job: interviews.remove_interview(job, interview_id) or True))

    def set_reminders(self, job_id: str, interview_id: str, enabled: bool = True) -> Interview | None:
        return self._mutate(job_id, lambda job: interviews.set_reminders(job, interview_id, enabled))

    def add_todo(self, job_id: str, interview_id: str, text: str, phase: str = "pre") -> TodoItem | None:
        return self._mutate(job_id, lambda job: interviews.add_todo(job, interview_id, text, phase))

    def toggle_todo(self, job_id: str, interview_id: str, todo_id: str) -> TodoItem | None:
        return self._mutate(job_id, lambda job: interviews.toggle_todo(job, interview_id, todo_id))

    def remove_todo(self, job_id: str, interview_id: str, todo_id: str) -> bool:
        return bool(self._mutate(job_id, lambda job: interviews.remove_todo(job, interview_id, todo_id) or True))

    # ── resume & analysis ────────────────────────────────────────────────

    def set_resume(self, resume: ResumeData | None) -> None:
        with self._lock:
            self._resume = copy.deepcopy(resume)
            self._persist()
        if resume is not None:
            log.info("Resume saved (%s, %d chars of text)", resume.type, len(resume.extracted_text))

    def run_analysis(self, job_id: str) -> MatchAnalysis | None:
        """Score the stored resume against one job; replaces any earlier analysis."""
        if self.extractor is None:
            raise AnalysisError("No extraction backend configured")
        with self._lock:
            if self._resume is None or not self._resume.extracted_text.strip():
                raise ValueError("Add a resume before running an analysis")
            job = self._find(job_id)
            if job is None:
                return None
            resume_text, description = self._resume.extracted_text, job.description
        analysis = self.extractor.analyze_match(resume_text, description)
        if not self.update_record(job_id, analysis=analysis):
            return None
        return copy.deepcopy(analysis)

    def compare_offers(self) -> list[OfferRanking]:
        if self.extractor is None:
            raise AnalysisError("No extraction backend configured")
        return self.extractor.compare_offers(self.offers())

    # ── whole-store operations ───────────────────────────────────────────

    def replace_all(self, snapshot: StoreSnapshot, confirm: Confirm | None = None) -> bool:
        """Overwrite everything with *snapshot* (sync or backup import)."""
        ids = [j.id for j in snapshot.jobs]
        if len(ids) != len(set(ids)):
            raise ValueError("Snapshot contains duplicate job ids")
        prompt = f"Overwrite current data ({len(self._jobs)} job(s)) with {len(ids)} imported job(s)?"
        if not self._confirmed(prompt, confirm):
            return False
        with self._lock:
            self._jobs = copy.deepcopy(snapshot.jobs)
            self._resume = copy.deepcopy(snapshot.resume)
            self._persist()
        log.info("Store replaced: %d job(s), resume=%s", len(ids), snapshot.resume is not None)
        return True

    def reset_all(self, confirm: Confirm | None = None) -> bool:
        if not self._confirmed("Erase ALL jobs and the resume from this device?", confirm):
            return False
        with self._lock:
            self._jobs = []
            self._resume = None
            self._persist()
        log.info("Store reset")
        return True
