"""
Tests for the command-line front end and the Markdown summary

Each command runs against a fresh store over shared in-memory persistence,
the way separate invocations share the data directory.
"""

from datetime import datetime, timezone

import pytest

from jobtracker.cli import build_parser, main
from jobtracker.models import JobStatus, MatchAnalysis
from jobtracker.persistence import MemoryPersistence
from jobtracker.report import build_summary, write_summary
from jobtracker.store import RecordStore


@pytest.fixture
def run(memory, settings, clock, capsys):
    def invoke(*argv):
        store = RecordStore(memory, settings=settings, clock=clock)
        code = main(list(argv), store=store)
        return code, capsys.readouterr().out

    return invoke


@pytest.fixture
def reader(memory, settings, clock):
    """Fresh view over the shared persistence."""
    return lambda: RecordStore(memory, settings=settings, clock=clock)


class TestParser:
    def test_requires_a_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_verbose_flag(self):
        assert build_parser().parse_args(["-v", "stats"]).verbose
        assert not build_parser().parse_args(["stats"]).verbose

    def test_status_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["status", "abc", "Ghosted"])


class TestRecordCommands:
    def test_add_and_list(self, run):
        code, out = run("add", "Backend Engineer", "Python services at Acme", "--wait", "1")
        assert code == 0
        assert "Added" in out
        assert "Backend Engineer @ Unknown" in out

        code, out = run("list")
        assert "Backend Engineer" in out
        assert "Applied" in out

    def test_empty_list(self, run):
        assert run("list")[1].strip() == "No jobs."

    def test_description_from_file(self, run, reader, tmp_path):
        posting = tmp_path / "posting.txt"
        posting.write_text("Full posting text", encoding="utf-8")
        run("add", "SRE", str(posting))
        assert reader().all_records()[0].description == "Full posting text"

    def test_status_by_id_prefix(self, run, reader):
        run("add", "Backend Engineer", "")
        job_id = reader().all_records()[0].id
        assert run("status", job_id[:6], "Offer")[0] == 0
        assert reader().get(job_id).status == JobStatus.OFFER

    def test_unknown_id(self, run):
        with pytest.raises(SystemExit):
            run("archive", "zzzz")

    def test_archive_restore_delete(self, run, reader):
        run("add", "Backend Engineer", "")
        job_id = reader().all_records()[0].id

        code, out = run("delete", job_id, "--yes")
        assert code == 1
        assert "archive it first" in out

        run("archive", job_id)
        assert run("list", "--archived")[1].count(job_id[:8]) == 1
        run("restore", job_id)
        assert not reader().get(job_id).is_archived

        run("archive", job_id)
        assert run("delete", job_id, "--yes")[0] == 0
        assert reader().all_records() == []

    def test_delete_prompt_declined(self, run, reader, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "n")
        run("add", "Backend Engineer", "")
        job_id = reader().all_records()[0].id
        run("archive", job_id)
        assert run("delete", job_id)[0] == 1
        assert reader().get(job_id) is not None

    def test_stats(self, run, reader):
        run("add", "A", "")
        run("add", "B", "")
        job_id = reader().all_records()[0].id
        run("status", job_id, "Offer")
        out = run("stats")[1]
        assert "Total applied:  2" in out
        assert "Success rate:   50%" in out


class TestInterviewCommands:
    def test_date_required(self, run):
        with pytest.raises(SystemExit):
            run("interview", "abc", "--stage", "Phone Screen")

    def test_schedule_and_agenda(self, run, reader):
        run("add", "Backend Engineer", "")
        job_id = reader().all_records()[0].id
        code, out = run(
            "interview", job_id[:8], "--stage", "Phone Screen", "--date", "2999-01-01T10:00Z",
            "--prep", "Research team", "--remind",
        )
        assert code == 0
        assert "Scheduled Phone Screen" in out

        job = reader().get(job_id)
        assert job.status == JobStatus.INTERVIEWING
        interview = job.interviews[0]
        assert interview.reminders_set
        assert [t.text for t in interview.pre_todos] == ["Research team"]

        assert "Phone Screen" in run("agenda")[1]

        run("todo", job_id, interview.id[:6], "Prepare questions", "--phase", "post")
        todo = reader().get(job_id).interviews[0].post_todos[0]
        run("todo", job_id, interview.id[:6], "--toggle", todo.id[:6])
        assert reader().get(job_id).interviews[0].post_todos[0].completed

    def test_todo_without_text(self, run, reader):
        run("add", "Backend Engineer", "")
        job_id = reader().all_records()[0].id
        run("interview", job_id, "--stage", "Onsite", "--date", "2999-01-01T10:00Z")
        interview_id = reader().get(job_id).interviews[0].id
        code, out = run("todo", job_id, interview_id[:6])
        assert code == 1
        assert "✗ Todo text cannot be empty" in out


class TestResumeAndAnalysis:
    def test_text_resume(self, run, reader):
        code, out = run("resume", "--text", "Ten years of Python")
        assert code == 0
        assert "text, 19 characters" in out
        assert reader().resume.extracted_text == "Ten years of Python"

    def test_export_pdf_of_text_resume(self, run, tmp_path):
        run("resume", "--text", "Ten years of Python")
        target = tmp_path / "cv.pdf"
        code, out = run("resume", "--export-pdf", str(target))
        assert code == 1
        assert "✗ Resume is not a stored PDF" in out
        assert not target.exists()

    def test_analyze_without_backend(self, run, reader):
        run("add", "Backend Engineer", "desc")
        job_id = reader().all_records()[0].id
        code, out = run("analyze", job_id)
        assert code == 1
        assert "✗" in out

    def test_import_url_without_backend(self, run):
        assert run("import-url", "https://example.com/job")[0] == 1


class TestSyncCommands:
    def test_export_then_import_elsewhere(self, run, reader, settings, clock, capsys):
        run("add", "Backend Engineer", "")
        code = run("sync-export")[1].strip()

        other = MemoryPersistence()
        store = RecordStore(other, settings=settings, clock=clock)
        assert main(["sync-import", code, "--yes"], store=store) == 0
        capsys.readouterr()
        reopened = RecordStore(other, settings=settings, clock=clock)
        assert reopened.snapshot() == reader().snapshot()

    def test_bad_code(self, run):
        code, out = run("sync-import", "not-a-sync-code!", "--yes")
        assert code == 1
        assert "✗" in out

    def test_backup_and_restore(self, run, reader, tmp_path):
        run("add", "Backend Engineer", "")
        before = reader().snapshot()
        code, out = run("backup", "--dir", str(tmp_path))
        assert code == 0
        backup = next(tmp_path.glob("backup_*.json"))

        run("reset", "--yes")
        assert reader().all_records() == []

        assert run("restore-backup", str(backup), "--yes")[0] == 0
        assert reader().snapshot() == before

    def test_restore_invalid_file(self, run, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope", encoding="utf-8")
        assert run("restore-backup", str(bad), "--yes")[0] == 1


class TestSummary:
    NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_sections(self, make_store):
        store = make_store(confirm=lambda p: True)
        a = store.add_record("Backend Engineer", "")
        b = store.add_record("Data Engineer", "")
        store.update_record(a, company="Acme", analysis=MatchAnalysis(score=81, strengths=["Python"], gaps=["Go"]))
        store.add_interview(a, "Technical", "2024-06-03T15:00:00Z", interviewer="Dana", pre_todos=["Review SQL"])
        store.set_status(b, JobStatus.REJECTED)

        summary = build_summary(store, now=self.NOW)
        assert summary.startswith("# Job Tracker Summary")
        assert "**2** applied | **0** offers | **1** rejections | **0%** success rate" in summary
        assert "| 1 | Backend Engineer | Acme |" in summary
        assert "Data Engineer" not in summary.split("## Upcoming Interviews")[0].split("## Active Funnel")[1]
        assert "Technical with Dana" in summary
        assert "Prep: Review SQL" in summary
        assert "**81%** Backend Engineer @ Acme" in summary
        assert "  - Gaps: Go" in summary

    def test_empty_store(self, make_store):
        summary = build_summary(make_store(), now=self.NOW)
        assert "_No active applications._" in summary
        assert "## Upcoming Interviews" not in summary

    def test_write_summary(self, tmp_path):
        path = write_summary("# hi", tmp_path / "reports")
        assert path.name.startswith("summary_") and path.suffix == ".md"
        assert path.read_text(encoding="utf-8") == "# hi"
