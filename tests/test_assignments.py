"""Tests for the Assignments module."""
from datetime import datetime, timedelta

from app.lms.db import session_scope
from app.lms.modules.assignments.models import Assignment, Submission
from app.lms.modules.assignments.service import (
    STATUS_DUE_SOON,
    STATUS_OVERDUE,
    STATUS_SUBMITTED,
    STATUS_UPCOMING,
    assignment_status,
    parse_due_date,
    validate_assignment_payload,
)
from app.lms.modules.notifications.models import Notification
from tests.helpers import in_days, login, make_assignment, make_course, make_user, post

NOW = datetime(2026, 3, 1, 12, 0)


def test_status_overdue():
    assert assignment_status(NOW - timedelta(minutes=1), now=NOW) == STATUS_OVERDUE


def test_status_due_soon_within_48_hours():
    assert assignment_status(NOW + timedelta(hours=47), now=NOW) == STATUS_DUE_SOON
    assert assignment_status(NOW + timedelta(hours=48), now=NOW) == STATUS_DUE_SOON


def test_status_upcoming():
    assert assignment_status(NOW + timedelta(days=3), now=NOW) == STATUS_UPCOMING


def test_status_submitted_wins_for_students_only():
    due = NOW - timedelta(days=1)
    assert assignment_status(due, has_submission=True, now=NOW) == STATUS_SUBMITTED
    assert assignment_status(due, has_submission=True, is_lecturer=True, now=NOW) == STATUS_OVERDUE


def test_parse_due_date_formats():
    assert parse_due_date("2026-03-05T09:30") == datetime(2026, 3, 5, 9, 30)
    assert parse_due_date("2026-03-05") == datetime(2026, 3, 5, 23, 59)
    assert parse_due_date("2026-03-05T17:00+02:00") == datetime(2026, 3, 5, 15, 0)
    assert parse_due_date("") is None


def test_validate_assignment_payload():
    errors = validate_assignment_payload({"title": "", "due_date": "nope", "max_score": "0"})
    assert "Title is required." in errors
    assert "Due date is not a valid date." in errors
    assert "Max score must be a positive number." in errors


def test_lecturer_creates_assignment_and_students_are_notified(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Compilers", student_ids=[student])
    login(client, "lecturer@test.com")
    r = post(
        client,
        f"/dashboard/courses/{cid}/assignments",
        {"title": "Lexer", "due_date": "2030-01-10T17:00", "max_score": "50"},
    )
    assert r.status_code == 302

    with session_scope(app) as s:
        a = s.query(Assignment).one()
        assert a.max_score == 50
        assert a.due_date == datetime(2030, 1, 10, 17, 0)
        assert s.query(Notification).filter(Notification.user_id == student).count() == 1


def test_student_list_shows_status(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Compilers", student_ids=[student])
    make_assignment(app, cid, "Parser", due_date=in_days(1))
    make_assignment(app, cid, "Old Lab", due_date=in_days(-1))

    login(client, "student@test.com")
    r = client.get("/dashboard/assignments")
    assert r.status_code == 200
    assert b"Parser" in r.data
    assert b"Due Soon" in r.data
    assert b"Overdue" in r.data


def test_submit_then_grade(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Compilers", student_ids=[student])
    aid = make_assignment(app, cid, "Parser", max_score=20)

    login(client, "student@test.com")
    r = post(client, f"/dashboard/assignments/{aid}/submit", {"content": "my parser"})
    assert r.status_code == 302

    r = client.get(f"/dashboard/assignments/{aid}")
    assert b"Submitted" in r.data

    # Resubmitting before grading replaces the answer.
    post(client, f"/dashboard/assignments/{aid}/submit", {"content": "my better parser"})
    with session_scope(app) as s:
        sub = s.query(Submission).one()
        assert sub.content == "my better parser"
        sub_id = sub.id

    client.post("/auth/logout")
    login(client, "lecturer@test.com")
    r = post(client, f"/dashboard/assignments/{aid}/submissions/{sub_id}/grade", {"score": "25"}, follow_redirects=True)
    assert b"Score must be between 0 and 20." in r.data

    r = post(client, f"/dashboard/assignments/{aid}/submissions/{sub_id}/grade", {"score": "18", "feedback": "Nice"})
    assert r.status_code == 302

    with session_scope(app) as s:
        sub = s.get(Submission, sub_id)
        assert sub.score == 18
        assert sub.feedback == "Nice"
        n = s.query(Notification).filter(Notification.user_id == student).one()
        assert n.title == "Graded: Parser"

    client.post("/auth/logout")
    login(client, "student@test.com")
    r = post(client, f"/dashboard/assignments/{aid}/submit", {"content": "too late"}, follow_redirects=True)
    assert b"This submission has already been graded." in r.data


def test_submission_requires_content(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Compilers", student_ids=[student])
    aid = make_assignment(app, cid)
    login(client, "student@test.com")
    r = post(client, f"/dashboard/assignments/{aid}/submit", {"content": " "}, follow_redirects=True)
    assert b"Provide an answer or a file URL." in r.data
    with session_scope(app) as s:
        assert s.query(Submission).count() == 0


def test_lecturer_cannot_submit(app, client, lecturer):
    cid = make_course(app, lecturer)
    aid = make_assignment(app, cid)
    login(client, "lecturer@test.com")
    r = post(client, f"/dashboard/assignments/{aid}/submit", {"content": "x"})
    assert r.status_code == 403


def test_assignment_hidden_from_unenrolled_student(app, client, lecturer):
    make_user(app, "outsider@test.com", "student", "Out", "Sider")
    cid = make_course(app, lecturer)
    aid = make_assignment(app, cid)
    login(client, "outsider@test.com")
    assert client.get(f"/dashboard/assignments/{aid}").status_code == 404
