"""Interview schedule and checklists owned by a single application."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from jobtracker.models import (
    Interview,
    InterviewMode,
    JobApplication,
    JobStatus,
    TodoItem,
    new_id,
    parse_iso,
)

PHASES = ("pre", "post")


class ArchivedRecordError(ValueError):
    pass


def _require_open(app: JobApplication) -> None:
    if app.is_archived:
        raise ArchivedRecordError(f"{app.title} @ {app.company} is archived; restore it first")


def _find(app: JobApplication, interview_id: str) -> Interview:
    for interview in app.interviews:
        if interview.id == interview_id:
            return interview
    raise KeyError(f"No interview {interview_id} on job {app.id}")


def _todos(interview: Interview, phase: str) -> list[TodoItem]:
    if phase not in PHASES:
        raise ValueError(f"phase must be one of {PHASES}, got {phase!r}")
    return interview.pre_todos if phase == "pre" else interview.post_todos


def _sort(app: JobApplication) -> None:
    app.interviews.sort(key=lambda i: parse_iso(i.date))


def _normalize_date(value: str | datetime) -> str:
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat(timespec="minutes").replace("+00:00", "Z")
    parse_iso(value)
    return value


def add_interview(
    app: JobApplication,
    stage: str,
    date: str | datetime,
    mode: InterviewMode | str = InterviewMode.REMOTE,
    *,
    interviewer: str | None = None,
    link: str | None = None,
    pre_todos: Iterable[str] = (),
    post_todos: Iterable[str] = (),
) -> Interview:
    """Schedule an interview; the first one moves an Applied job to Interviewing."""
    _require_open(app)
    mode = InterviewMode(mode)
    interview = Interview(
        id=new_id(),
        stage=stage.strip() or "Interview",
        date=_normalize_date(date),
        mode=mode,
        interviewer=(interviewer or "").strip() or None,
        link=(link or None) if mode == InterviewMode.REMOTE else None,
        pre_todos=[TodoItem(id=new_id(), text=t) for t in pre_todos if t.strip()],
        post_todos=[TodoItem(id=new_id(), text=t) for t in post_todos if t.strip()],
    )
    app.interviews.append(interview)
    _sort(app)
    if app.status == JobStatus.APPLIED:
        app.status = JobStatus.INTERVIEWING
    return interview


def update_interview(app: JobApplication, interview_id: str, **changes: Any) -> Interview:
    _require_open(app)
    interview = _find(app, interview_id)
    allowed = {"stage", "date", "mode", "interviewer", "link", "reminders_set"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Cannot update interview field(s): {', '.join(sorted(unknown))}")
    if "date" in changes:
        changes["date"] = _normalize_date(changes["date"])
    if "mode" in changes:
        changes["mode"] = InterviewMode(changes["mode"])
    for key in ("interviewer", "link"):
        if key in changes:
            changes[key] = (changes[key] or "").strip() or None
    for key, value in changes.items():
        setattr(interview, key, value)
    if interview.mode != InterviewMode.REMOTE:
        interview.link = None
    _sort(app)
    return interview


def remove_interview(app: JobApplication, interview_id: str) -> None:
    _require_open(app)
    interview = _find(app, interview_id)
    app.interviews.remove(interview)


def set_reminders(app: JobApplication, interview_id: str, enabled: bool) -> Interview:
    return update_interview(app, interview_id, reminders_set=enabled)


def add_todo(app: JobApplication, interview_id: str, text: str, phase: str = "pre") -> TodoItem:
    _require_open(app)
    if not text.strip():
        raise ValueError("Todo text cannot be empty")
    todo = TodoItem(id=new_id(), text=text.strip())
    _todos(_find(app, interview_id), phase).append(todo)
    return todo


def toggle_todo(app: JobApplication, interview_id: str, todo_id: str) -> TodoItem:
    interview = _find(app, interview_id)
    for todo in interview.pre_todos + interview.post_todos:
        if todo.id == todo_id:
            todo.completed = not todo.completed
            return todo
    raise KeyError(f"No todo {todo_id} on interview {interview_id}")


def remove_todo(app: JobApplication, interview_id: str, todo_id: str) -> None:
    _require_open(app)
    interview = _find(app, interview_id)
    for todos in (interview.pre_todos, interview.post_todos):
        for todo in todos:
            if todo.id == todo_id:
                todos.remove(todo)
                return
    raise KeyError(f"No todo {todo_id} on interview {interview_id}")


@dataclass(frozen=True)
class AgendaItem:
    interview: Interview
    job_id: str
    job_title: str
    company: str

    @property
    def when(self) -> datetime:
        return parse_iso(self.interview.date)


@dataclass
class Agenda:
    upcoming: list[AgendaItem] = field(default_factory=list)
    past: list[AgendaItem] = field(default_factory=list)


def build_agenda(records: Iterable[JobApplication], now: datetime | None = None) -> Agenda:
    """Interviews across active jobs: upcoming soonest first, past most recent first."""
    now = now or datetime.now(timezone.utc)
    items = [
        AgendaItem(interview=i, job_id=app.id, job_title=app.title, company=app.company)
        for app in records
        if app.is_active
        for i in app.interviews
    ]
    items.sort(key=lambda item: item.when)
    agenda = Agenda()
    for item in items:
        if item.when >= now:
            agenda.upcoming.append(item)
        else:
            agenda.past.append(item)
    agenda.past.reverse()
    return agenda
