"""Command-line front end over the record store."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable

from jobtracker import sync
from jobtracker.config import BACKUP_DIR, DATA_DIR, REPORTS_DIR, ensure_dirs, get_env, load_settings
from jobtracker.errors import AnalysisError, SyncError, describe_error
from jobtracker.extraction import build_service
from jobtracker.log import get_logger, set_verbose
from jobtracker.models import SALARY_NOT_FOUND, UNKNOWN_COMPANY, JobApplication, JobStatus
from jobtracker.persistence import JsonFilePersistence
from jobtracker.report import build_summary, write_summary
from jobtracker.resume import pdf_bytes, resume_from_pdf, resume_from_text
from jobtracker.store import RecordStore

log = get_logger(__name__)

# ── Helpers ──────────────────────────────────────────────────────────────


def ask_yes_no(prompt: str, default: bool = False) -> bool:
    hint = "Y/n" if default else "y/N"
    val = input(f"  {prompt} ({hint}): ").strip().lower()
    if not val:
        return default
    return val in ("y", "yes")


def _confirm_for(args: argparse.Namespace) -> Callable[[str], bool]:
    if getattr(args, "yes", False):
        return lambda _prompt: True
    return ask_yes_no


def resolve_id(store: RecordStore, prefix: str) -> str:
    """Accept a full id or any unambiguous prefix of one."""
    matches = [j.id for j in store.all_records() if j.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise SystemExit(f"No job matches id {prefix!r}")
    raise SystemExit(f"Id {prefix!r} is ambiguous ({len(matches)} matches)")


def _line(job: JobApplication) -> str:
    flag = " [archived]" if job.is_archived else ""
    return f"{job.id[:8]}  {job.status.value:<12} {job.title} @ {job.company}  ({job.salary_range}){flag}"


def _read_text_arg(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    if not value or "\n" in value:
        return value
    path = Path(value).expanduser()
    try:
        is_file = path.is_file()
    except OSError:
        # long sync codes exceed the filename limit
        is_file = False
    return path.read_text(encoding="utf-8") if is_file else value


# ── Commands ─────────────────────────────────────────────────────────────


def cmd_add(store: RecordStore, args: argparse.Namespace) -> int:
    job_id = store.add_record(args.title, _read_text_arg(args.description), args.url or "")
    print(f"Added {job_id[:8]} — extracting company and salary...")
    store.wait_for_enrichment(timeout=args.wait)
    job = store.get(job_id)
    if job:
        print(_line(job))
    return 0


def cmd_import_url(store: RecordStore, args: argparse.Namespace) -> int:
    if store.extractor is None:
        print("  ✗ No extraction backend configured")
        return 1
    result = store.extractor.import_from_url(args.url)
    data = result.data
    print(f"Method: {result.method} (confidence: {result.confidence})")
    if result.warning:
        print(f"  ⚠  {result.warning}")
    if result.method == "none" or not data.description:
        return 1
    title = args.title or (data.title if data.title and data.title != "Not found" else "Untitled role")
    job_id = store.add_record(title, data.description, args.url)
    store.wait_for_enrichment(timeout=args.wait)
    found = {}
    if data.company != UNKNOWN_COMPANY:
        found["company"] = data.company
    if data.salary_range != SALARY_NOT_FOUND:
        found["salary_range"] = data.salary_range
    if found:
        store.update_record(job_id, **found)
    for src in data.sources:
        print(f"  source: {src.get('title', '')} {src.get('uri', '')}")
    print(_line(store.get(job_id)))
    return 0


def cmd_list(store: RecordStore, args: argparse.Namespace) -> int:
    if args.all:
        jobs = store.all_records()
    elif args.archived:
        jobs = store.list_archived()
    else:
        jobs = store.filter_active(args.query or "")
    for job in jobs:
        print(_line(job))
    if not jobs:
        print("No jobs.")
    return 0


def cmd_status(store: RecordStore, args: argparse.Namespace) -> int:
    store.set_status(resolve_id(store, args.id), JobStatus(args.status))
    return 0


def cmd_archive(store: RecordStore, args: argparse.Namespace) -> int:
    store.archive_record(resolve_id(store, args.id))
    return 0


def cmd_restore(store: RecordStore, args: argparse.Namespace) -> int:
    store.restore_record(resolve_id(store, args.id))
    return 0


def cmd_delete(store: RecordStore, args: argparse.Namespace) -> int:
    try:
        done = store.delete_record(resolve_id(store, args.id), confirm=_confirm_for(args))
    except ValueError as exc:
        print(f"  ✗ {exc}")
        return 1
    return 0 if done else 1


def cmd_stats(store: RecordStore, args: argparse.Namespace) -> int:
    s = store.compute_stats()
    print(f"Total applied:  {s.total_applied}")
    print(f"Rejections:     {s.total_rejections}")
    print(f"Offers:         {s.total_offers}")
    print(f"Success rate:   {s.success_rate}%")
    return 0


def cmd_interview(store: RecordStore, args: argparse.Namespace) -> int:
    job_id = resolve_id(store, args.id)
    if args.remove:
        return 0 if store.remove_interview(job_id, args.remove) else 1
    interview = store.add_interview(
        job_id,
        args.stage,
        args.date,
        args.mode,
        interviewer=args.interviewer,
        link=args.link,
        pre_todos=args.prep or (),
    )
    if interview is None:
        return 1
    if args.remind:
        store.set_reminders(job_id, interview.id, True)
    print(f"Scheduled {interview.stage} on {interview.date} ({interview.id[:8]})")
    return 0


def cmd_todo(store: RecordStore, args: argparse.Namespace) -> int:
    job_id = resolve_id(store, args.id)
    job = store.get(job_id)
    interview = next((i for i in job.interviews if i.id.startswith(args.interview)), None)
    if interview is None:
        raise SystemExit(f"No interview matches {args.interview!r}")
    if args.toggle:
        todo = next((t for t in interview.pre_todos + interview.post_todos if t.id.startswith(args.toggle)), None)
        if todo is None:
            raise SystemExit(f"No todo matches {args.toggle!r}")
        store.toggle_todo(job_id, interview.id, todo.id)
    else:
        try:
            store.add_todo(job_id, interview.id, args.text, phase=args.phase)
        except ValueError as exc:
            print(f"  ✗ {exc}")
            return 1
    return 0


def cmd_agenda(store: RecordStore, args: argparse.Namespace) -> int:
    agenda = store.agenda()
    print("Upcoming:")
    for item in agenda.upcoming:
        print(f"  {item.interview.date}  {item.interview.stage} — {item.job_title} @ {item.company}")
    if not agenda.upcoming:
        print("  (none)")
    if agenda.past and args.past:
        print("Past:")
        for item in agenda.past:
            print(f"  {item.interview.date}  {item.interview.stage} — {item.job_title} @ {item.company}")
    return 0


def cmd_resume(store: RecordStore, args: argparse.Namespace) -> int:
    if args.pdf:
        store.set_resume(resume_from_pdf(Path(args.pdf).expanduser()))
    elif args.text:
        store.set_resume(resume_from_text(_read_text_arg(args.text)))
    elif args.export_pdf:
        resume = store.resume
        if resume is None:
            print("No resume stored.")
            return 1
        try:
            Path(args.export_pdf).write_bytes(pdf_bytes(resume))
        except ValueError as exc:
            print(f"  ✗ {exc}")
            return 1
    resume = store.resume
    if resume:
        print(f"Resume: {resume.type}, {len(resume.extracted_text)} characters of text")
    else:
        print("No resume stored.")
    return 0


def cmd_analyze(store: RecordStore, args: argparse.Namespace) -> int:
    try:
        analysis = store.run_analysis(resolve_id(store, args.id))
    except (AnalysisError, ValueError) as exc:
        print(f"  ✗ {describe_error(exc)}")
        return 1
    if analysis is None:
        return 1
    print(f"Match score: {analysis.score}%")
    for s in analysis.strengths:
        print(f"  + {s}")
    for g in analysis.gaps:
        print(f"  - {g}")
    return 0


def cmd_offers(store: RecordStore, args: argparse.Namespace) -> int:
    try:
        rankings = store.compare_offers()
    except (AnalysisError, ValueError) as exc:
        print(f"  ✗ {describe_error(exc)}")
        return 1
    for r in rankings:
        print(f"#{r.rank} {r.title} @ {r.company} — {r.why}")
        for p in r.pros:
            print(f"    + {p}")
        for c in r.cons:
            print(f"    - {c}")
    return 0


def cmd_sync_export(store: RecordStore, args: argparse.Namespace) -> int:
    print(sync.encode(store.snapshot()))
    return 0


def cmd_sync_import(store: RecordStore, args: argparse.Namespace) -> int:
    try:
        snapshot = sync.decode(_read_text_arg(args.code))
    except SyncError as exc:
        print(f"  ✗ {exc}")
        return 1
    return 0 if store.replace_all(snapshot, confirm=_confirm_for(args)) else 1


def cmd_backup(store: RecordStore, args: argparse.Namespace) -> int:
    path = sync.write_backup(store.snapshot(), Path(args.dir) if args.dir else BACKUP_DIR)
    print(f"Backup written to {path}")
    return 0


def cmd_restore_backup(store: RecordStore, args: argparse.Namespace) -> int:
    try:
        snapshot = sync.import_from_file(Path(args.file).read_bytes())
    except SyncError as exc:
        print(f"  ✗ {exc}")
        return 1
    return 0 if store.replace_all(snapshot, confirm=_confirm_for(args)) else 1


def cmd_reset(store: RecordStore, args: argparse.Namespace) -> int:
    return 0 if store.reset_all(confirm=_confirm_for(args)) else 1


def cmd_summary(store: RecordStore, args: argparse.Namespace) -> int:
    content = build_summary(store)
    if args.write:
        write_summary(content, REPORTS_DIR)
    print(content)
    return 0


# ── Parser ───────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="track", description="Personal job application tracker")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Track a new application")
    p.add_argument("title")
    p.add_argument("description", help="Description text, a file path, or - for stdin")
    p.add_argument("--url", default="")
    p.add_argument("--wait", type=float, default=60.0, help="Seconds to wait for extraction")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("import-url", help="Import a posting from its URL")
    p.add_argument("url")
    p.add_argument("--title")
    p.add_argument("--wait", type=float, default=60.0)
    p.set_defaults(func=cmd_import_url)

    p = sub.add_parser("list", help="List active (or archived) jobs")
    p.add_argument("query", nargs="?")
    p.add_argument("--archived", action="store_true")
    p.add_argument("--all", action="store_true")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("status", help="Change a job's status")
    p.add_argument("id")
    p.add_argument("status", choices=[s.value for s in JobStatus])
    p.set_defaults(func=cmd_status)

    for name, func, help_text in (
        ("archive", cmd_archive, "Move a job to the archive"),
        ("restore", cmd_restore, "Bring an archived job back as Applied"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("id")
        p.set_defaults(func=func)

    p = sub.add_parser("delete", help="Permanently delete an archived job")
    p.add_argument("id")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_delete)

    sub.add_parser("stats", help="Career statistics").set_defaults(func=cmd_stats)

    p = sub.add_parser("interview", help="Schedule or remove an interview")
    p.add_argument("id")
    p.add_argument("--stage", default="Interview")
    p.add_argument("--date", help="ISO date/time, e.g. 2025-03-14T15:00Z")
    p.add_argument("--mode", choices=["Remote", "In-Person"], default="Remote")
    p.add_argument("--interviewer")
    p.add_argument("--link")
    p.add_argument("--prep", action="append", help="Pre-interview todo (repeatable)")
    p.add_argument("--remind", action="store_true")
    p.add_argument("--remove", metavar="INTERVIEW_ID")
    p.set_defaults(func=cmd_interview)

    p = sub.add_parser("todo", help="Add or toggle an interview todo")
    p.add_argument("id")
    p.add_argument("interview")
    p.add_argument("text", nargs="?", default="")
    p.add_argument("--phase", choices=["pre", "post"], default="pre")
    p.add_argument("--toggle", metavar="TODO_ID")
    p.set_defaults(func=cmd_todo)

    p = sub.add_parser("agenda", help="Upcoming interviews")
    p.add_argument("--past", action="store_true")
    p.set_defaults(func=cmd_agenda)

    p = sub.add_parser("resume", help="Show or replace the stored resume")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--text", help="Resume text, a file path, or -")
    group.add_argument("--pdf", help="Path to a PDF resume")
    group.add_argument("--export-pdf", help="Write the stored PDF to this path")
    p.set_defaults(func=cmd_resume)

    p = sub.add_parser("analyze", help="Score the resume against a job")
    p.add_argument("id")
    p.set_defaults(func=cmd_analyze)

    sub.add_parser("offers", help="Rank current offers").set_defaults(func=cmd_offers)
    sub.add_parser("sync-export", help="Print a sync code for another device").set_defaults(func=cmd_sync_export)

    p = sub.add_parser("sync-import", help="Replace local data with a sync code")
    p.add_argument("code", help="Sync code, a file path, or -")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_sync_import)

    p = sub.add_parser("backup", help="Write a JSON backup file")
    p.add_argument("--dir")
    p.set_defaults(func=cmd_backup)

    p = sub.add_parser("restore-backup", help="Replace local data with a JSON backup")
    p.add_argument("file")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_restore_backup)

    p = sub.add_parser("reset", help="Erase all local data")
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_reset)

    p = sub.add_parser("summary", help="Markdown summary")
    p.add_argument("--write", action="store_true")
    p.set_defaults(func=cmd_summary)

    return parser


def open_store() -> RecordStore:
    ensure_dirs()
    settings = load_settings()
    return RecordStore(
        JsonFilePersistence(DATA_DIR),
        build_service(get_env, settings),
        settings=settings,
        confirm=ask_yes_no,
    )


def main(argv: list[str] | None = None, store: RecordStore | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_verbose()
    if args.command == "interview" and not args.remove and not args.date:
        raise SystemExit("interview: --date is required when scheduling")
    store = store or open_store()
    try:
        return args.func(store, args)
    finally:
        store.close()
