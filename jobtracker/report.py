"""Markdown summary of the tracker: stats, funnel, agenda and match scores."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jobtracker.log import get_logger
from jobtracker.models import JobApplication, JobStatus, parse_iso
from jobtracker.store import RecordStore

log = get_logger(__name__)

_BADGES: dict[JobStatus, str] = {
    JobStatus.APPLIED: "\U0001f4e8",
    JobStatus.INTERVIEWING: "\U0001f5e3",
    JobStatus.OFFER: "✅",
    JobStatus.REJECTED: "❌",
}


def _clip(text: str, width: int) -> str:
    return text[:width] + ("…" if len(text) > width else "")


def _day(stamp: str) -> str:
    return parse_iso(stamp).strftime("%Y-%m-%d")


def _funnel_rows(jobs: list[JobApplication]) -> list[str]:
    lines = [
        "| # | Role | Company | Salary | Status | Modified |",
        "|--:|------|---------|--------|--------|----------|",
    ]
    for i, job in enumerate(jobs, 1):
        lines.append(
            f"| {i} | {_clip(job.title, 40)} | {_clip(job.company, 22)} | {_clip(job.salary_range, 20)} "
            f"| {_BADGES[job.status]} {job.status.value} | {_day(job.date_modified)} |"
        )
    return lines


def build_summary(store: RecordStore, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    stats = store.compute_stats()
    active = store.filter_active()
    agenda = store.agenda(now)

    lines: list[str] = [f"# Job Tracker Summary — {now.strftime('%Y-%m-%d')}", ""]
    lines.append(
        f"**{stats.total_applied}** applied | **{stats.total_offers}** offers | "
        f"**{stats.total_rejections}** rejections | **{stats.success_rate}%** success rate"
    )
    lines.append("")

    lines.append("## Active Funnel")
    lines.append("")
    if active:
        lines.extend(_funnel_rows(active))
    else:
        lines.append("_No active applications._")
    lines.append("")

    if agenda.upcoming:
        lines.append("## Upcoming Interviews")
        lines.append("")
        for item in agenda.upcoming:
            iv = item.interview
            when = item.when.strftime("%a %d %b %H:%M")
            who = f" with {iv.interviewer}" if iv.interviewer else ""
            bell = " \U0001f514" if iv.reminders_set else ""
            lines.append(f"- **{when}** — {iv.stage}{who} ({iv.mode.value}) — {item.job_title} @ {item.company}{bell}")
            open_todos = [t.text for t in iv.pre_todos if not t.completed]
            if open_todos:
                lines.append(f"  - Prep: {', '.join(open_todos)}")
        lines.append("")

    analysed = sorted(
        (j for j in store.all_records() if j.analysis is not None),
        key=lambda j: j.analysis.score,
        reverse=True,
    )
    if analysed:
        lines.append("## Resume Match")
        lines.append("")
        for job in analysed:
            lines.append(f"- **{job.analysis.score:.0f}%** {job.title} @ {job.company}")
            if job.analysis.gaps:
                lines.append(f"  - Gaps: {', '.join(job.analysis.gaps[:4])}")
        lines.append("")

    log.info("Built summary: %d active, %d upcoming interview(s)", len(active), len(agenda.upcoming))
    return "\n".join(lines)


def write_summary(content: str, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    path = directory / f"summary_{date}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Summary written → %s", path)
    return path
