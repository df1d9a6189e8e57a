"""Data models for applications, interviews, resume and store snapshots."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

ANALYZING = "Analyzing..."
UNKNOWN_COMPANY = "Unknown"
SALARY_NOT_FOUND = "Not found"
SALARY_NOT_EXTRACTED = "Not extracted"


class JobStatus(str, Enum):
    APPLIED = "Applied"
    INTERVIEWING = "Interviewing"
    OFFER = "Offer"
    REJECTED = "Rejected"


class InterviewMode(str, Enum):
    REMOTE = "Remote"
    IN_PERSON = "In-Person"


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-05-01T09:30:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class TodoItem:
    id: str
    text: str
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "completed": self.completed}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TodoItem:
        return cls(id=str(d["id"]), text=str(d.get("text", "")), completed=bool(d.get("completed", False)))


@dataclass
class Interview:
    id: str
    stage: str
    date: str
    mode: InterviewMode = InterviewMode.REMOTE
    interviewer: str | None = None
    link: str | None = None
    pre_todos: list[TodoItem] = field(default_factory=list)
    post_todos: list[TodoItem] = field(default_factory=list)
    reminders_set: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "stage": self.stage,
            "interviewer": self.interviewer,
            "date": self.date,
            "mode": self.mode.value,
            "link": self.link,
            "preTodos": [t.to_dict() for t in self.pre_todos],
            "postTodos": [t.to_dict() for t in self.post_todos],
            "remindersSet": self.reminders_set,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Interview:
        return cls(
            id=str(d["id"]),
            stage=str(d.get("stage", "")),
            date=str(d["date"]),
            mode=InterviewMode(d.get("mode", InterviewMode.REMOTE.value)),
            interviewer=d.get("interviewer"),
            link=d.get("link"),
            pre_todos=[TodoItem.from_dict(t) for t in d.get("preTodos") or []],
            post_todos=[TodoItem.from_dict(t) for t in d.get("postTodos") or []],
            reminders_set=bool(d.get("remindersSet", False)),
        )


@dataclass
class MatchAnalysis:
    score: float
    strengths: list[str] = field(default_factory=list)
    gaps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "strengths": list(self.strengths), "gaps": list(self.gaps)}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchAnalysis:
        return cls(
            score=d.get("score", 0),
            strengths=[str(s) for s in d.get("strengths") or []],
            gaps=[str(g) for g in d.get("gaps") or []],
        )


@dataclass
class JobApplication:
    id: str
    title: str
    company: str
    description: str
    salary_range: str
    status: JobStatus
    date_added: str
    date_modified: str
    link: str | None = None
    interviews: list[Interview] = field(default_factory=list)
    analysis: MatchAnalysis | None = None
    is_archived: bool = False
    version: int = 0

    @property
    def is_active(self) -> bool:
        """In the active funnel: neither archived nor rejected."""
        return not self.is_archived and self.status != JobStatus.REJECTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "description": self.description,
            "salaryRange": self.salary_range,
            "status": self.status.value,
            "dateAdded": self.date_added,
            "dateModified": self.date_modified,
            "link": self.link,
            "interviews": [i.to_dict() for i in self.interviews],
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "isArchived": self.is_archived,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JobApplication:
        analysis = d.get("analysis")
        return cls(
            id=str(d["id"]),
            title=str(d.get("title", "")),
            company=str(d.get("company", "")),
            description=str(d.get("description", "")),
            salary_range=str(d.get("salaryRange", "")),
            status=JobStatus(d.get("status", JobStatus.APPLIED.value)),
            date_added=str(d["dateAdded"]),
            date_modified=str(d.get("dateModified") or d["dateAdded"]),
            link=d.get("link"),
            interviews=[Interview.from_dict(i) for i in d.get("interviews") or []],
            analysis=MatchAnalysis.from_dict(analysis) if isinstance(analysis, dict) else None,
            is_archived=bool(d.get("isArchived", False)),
            version=int(d.get("version", 0)),
        )


@dataclass
class ResumeData:
    type: str
    content: str
    extracted_text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "content": self.content, "extractedText": self.extracted_text}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ResumeData:
        kind = d.get("type", "text")
        if kind not in ("text", "pdf"):
            raise ValueError(f"Unknown resume type: {kind!r}")
        content = str(d.get("content", ""))
        return cls(type=kind, content=content, extracted_text=str(d.get("extractedText", content)))


@dataclass(frozen=True)
class CareerStats:
    total_applied: int
    total_rejections: int
    total_offers: int
    success_rate: int


@dataclass
class StoreSnapshot:
    jobs: list[JobApplication] = field(default_factory=list)
    resume: ResumeData | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs": [j.to_dict() for j in self.jobs],
            "resume": self.resume.to_dict() if self.resume else None,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> StoreSnapshot:
        resume = d.get("resume")
        return cls(
            jobs=[JobApplication.from_dict(j) for j in d["jobs"]],
            resume=ResumeData.from_dict(resume) if isinstance(resume, dict) else None,
        )
