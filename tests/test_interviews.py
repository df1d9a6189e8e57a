"""
Tests for the interview sub-ledger

Tests cover:
- Scheduling, ordering and the Applied -> Interviewing transition
- Remote-only meeting links
- Pre/post todos
- Archived parents are read-only
- Agenda split into upcoming and past
"""

from datetime import datetime, timezone

import pytest

from jobtracker import interviews
from jobtracker.interviews import ArchivedRecordError, build_agenda
from jobtracker.models import InterviewMode, JobApplication, JobStatus


def make_app(**overrides) -> JobApplication:
    fields = dict(
        id="job-1",
        title="Backend Engineer",
        company="Acme",
        description="",
        salary_range="Not found",
        status=JobStatus.APPLIED,
        date_added="2024-05-01T09:00:00.000Z",
        date_modified="2024-05-01T09:00:00.000Z",
    )
    fields.update(overrides)
    return JobApplication(**fields)


class TestAddInterview:
    def test_first_interview_advances_applied(self):
        app = make_app()
        interviews.add_interview(app, "Phone Screen", "2024-06-01T15:00:00Z")
        assert app.status == JobStatus.INTERVIEWING

    def test_offer_status_is_left_alone(self):
        app = make_app(status=JobStatus.OFFER)
        interviews.add_interview(app, "Final chat", "2024-06-01T15:00:00Z")
        assert app.status == JobStatus.OFFER

    def test_sorted_by_date(self):
        app = make_app()
        late = interviews.add_interview(app, "Onsite", "2024-06-10T15:00:00Z")
        early = interviews.add_interview(app, "Phone Screen", "2024-06-01T15:00:00Z")
        assert [i.id for i in app.interviews] == [early.id, late.id]

    def test_link_only_for_remote(self):
        app = make_app()
        remote = interviews.add_interview(app, "Tech", "2024-06-01T15:00:00Z", "Remote", link="https://meet.example.com/a")
        onsite = interviews.add_interview(app, "Onsite", "2024-06-02T15:00:00Z", "In-Person", link="https://meet.example.com/b")
        assert remote.link == "https://meet.example.com/a"
        assert onsite.mode == InterviewMode.IN_PERSON
        assert onsite.link is None

    def test_datetime_is_normalized_to_utc(self):
        app = make_app()
        interview = interviews.add_interview(app, "Tech", datetime(2024, 6, 1, 15, 30, tzinfo=timezone.utc))
        assert interview.date == "2024-06-01T15:30Z"

    def test_invalid_date_rejected(self):
        with pytest.raises(ValueError):
            interviews.add_interview(make_app(), "Tech", "next tuesday")

    def test_initial_todos(self):
        interview = interviews.add_interview(
            make_app(), "Tech", "2024-06-01T15:00:00Z", pre_todos=["Research", "  "], post_todos=["Thank-you note"]
        )
        assert [t.text for t in interview.pre_todos] == ["Research"]
        assert [t.text for t in interview.post_todos] == ["Thank-you note"]


class TestUpdateAndRemove:
    def test_switch_to_in_person_drops_link(self):
        app = make_app()
        interview = interviews.add_interview(app, "Tech", "2024-06-01T15:00:00Z", link="https://meet.example.com/a")
        interviews.update_interview(app, interview.id, mode="In-Person")
        assert interview.link is None

    def test_reschedule_resorts(self):
        app = make_app()
        first = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        second = interviews.add_interview(app, "B", "2024-06-02T15:00:00Z")
        interviews.update_interview(app, first.id, date="2024-06-03T15:00:00Z")
        assert [i.id for i in app.interviews] == [second.id, first.id]

    def test_unknown_field(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        with pytest.raises(ValueError):
            interviews.update_interview(app, interview.id, id="other")

    def test_reminders(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        assert interviews.set_reminders(app, interview.id, True).reminders_set

    def test_remove(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        interviews.remove_interview(app, interview.id)
        assert app.interviews == []

    def test_blank_interviewer_and_link_are_cleared(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z", interviewer="Dana", link="https://meet.example.com/a")
        interviews.update_interview(app, interview.id, interviewer="  ", link="")
        assert interview.interviewer is None
        assert interview.link is None

    def test_missing_interview(self):
        with pytest.raises(KeyError):
            interviews.remove_interview(make_app(), "nope")


class TestTodos:
    def test_add_toggle_remove(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        todo = interviews.add_todo(app, interview.id, "Send thanks", "post")
        assert interview.post_todos == [todo]

        assert interviews.toggle_todo(app, interview.id, todo.id).completed is True
        assert interviews.toggle_todo(app, interview.id, todo.id).completed is False

        interviews.remove_todo(app, interview.id, todo.id)
        assert interview.post_todos == []

    def test_bad_phase(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        with pytest.raises(ValueError):
            interviews.add_todo(app, interview.id, "x", "during")

    def test_empty_text(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        with pytest.raises(ValueError):
            interviews.add_todo(app, interview.id, "  ")


class TestArchivedParent:
    def test_mutations_refused(self):
        app = make_app()
        interview = interviews.add_interview(app, "A", "2024-06-01T15:00:00Z")
        app.is_archived = True
        with pytest.raises(ArchivedRecordError):
            interviews.add_interview(app, "B", "2024-06-02T15:00:00Z")
        with pytest.raises(ArchivedRecordError):
            interviews.add_todo(app, interview.id, "x")
        with pytest.raises(ArchivedRecordError):
            interviews.remove_interview(app, interview.id)


class TestAgenda:
    NOW = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)

    def test_split_and_order(self):
        a = make_app(id="a", title="A")
        b = make_app(id="b", title="B")
        interviews.add_interview(a, "Past early", "2024-06-01T10:00:00Z")
        interviews.add_interview(b, "Past late", "2024-06-04T10:00:00Z")
        interviews.add_interview(a, "Soon", "2024-06-06T10:00:00Z")
        interviews.add_interview(b, "Later", "2024-06-20T10:00:00Z")

        agenda = build_agenda([a, b], now=self.NOW)
        assert [i.interview.stage for i in agenda.upcoming] == ["Soon", "Later"]
        assert [i.interview.stage for i in agenda.past] == ["Past late", "Past early"]
        assert agenda.upcoming[1].job_title == "B"

    def test_inactive_jobs_excluded(self):
        archived = make_app(id="x")
        interviews.add_interview(archived, "Hidden", "2024-06-06T10:00:00Z")
        archived.is_archived = True
        rejected = make_app(id="y")
        interviews.add_interview(rejected, "Also hidden", "2024-06-06T10:00:00Z")
        rejected.status = JobStatus.REJECTED

        agenda = build_agenda([archived, rejected], now=self.NOW)
        assert agenda.upcoming == []
        assert agenda.past == []
