"""Tests for dashboard statistics."""
from datetime import date, datetime

from app.lms.dashboard import compute_stats, upcoming_deadlines
from app.lms.db import session_scope
from app.lms.models import User
from app.lms.modules.assignments.models import Submission
from app.lms.modules.attendance.models import AttendanceRecord, AttendanceSession
from tests.helpers import in_days, login, make_assignment, make_course, make_user


def _attendance(app, course_id, statuses):
    with session_scope(app) as s:
        for i, (student_id, status) in enumerate(statuses):
            sess = AttendanceSession(course_id=course_id, session_date=date(2026, 3, i + 1))
            s.add(sess)
            s.flush()
            s.add(AttendanceRecord(session_id=sess.id, student_id=student_id, status=status))


def test_lecturer_stats(app, lecturer, student):
    second = make_user(app, "second@test.com", "student", "Bo", "Second")
    c1 = make_course(app, lecturer, "Math", student_ids=[student, second])
    make_course(app, lecturer, "Art", student_ids=[student])
    make_assignment(app, c1, "HW1")
    make_assignment(app, c1, "HW2")
    _attendance(app, c1, [(student, "present"), (second, "absent"), (student, "present")])

    with session_scope(app) as s:
        stats = compute_stats(s, s.get(User, lecturer))
    assert stats.courses == 2
    assert stats.students == 3
    assert stats.assignments == 2
    assert stats.attendance_rate == 67


def test_student_stats(app, lecturer, student):
    c1 = make_course(app, lecturer, "Math", student_ids=[student])
    a1 = make_assignment(app, c1, "HW1")
    make_assignment(app, c1, "HW2")
    with session_scope(app) as s:
        s.add(Submission(assignment_id=a1, student_id=student, content="done"))
    _attendance(app, c1, [(student, "present"), (student, "late")])

    with session_scope(app) as s:
        stats = compute_stats(s, s.get(User, student))
    assert stats.courses == 1
    assert stats.assignments == 1
    assert stats.completed == 1
    assert stats.attendance_rate == 50


def test_no_courses_means_zero_stats(app, student):
    with session_scope(app) as s:
        stats = compute_stats(s, s.get(User, student))
    assert (stats.courses, stats.assignments, stats.completed, stats.attendance_rate) == (0, 0, 0, 0)


def test_upcoming_deadlines_sorted_and_limited(app, lecturer, student):
    c1 = make_course(app, lecturer, "Math", student_ids=[student])
    make_assignment(app, c1, "Past", due_date=in_days(-2))
    for i in range(6):
        make_assignment(app, c1, f"Future {i}", due_date=in_days(6 - i))

    with session_scope(app) as s:
        rows = upcoming_deadlines(s, s.get(User, student), now=datetime.utcnow())
        titles = [a.title for a in rows]
    assert len(titles) == 5
    assert titles[0] == "Future 5"
    assert "Past" not in titles


def test_dashboard_page_renders_for_student(app, client, lecturer, student):
    c1 = make_course(app, lecturer, "Math", student_ids=[student])
    make_assignment(app, c1, "Essay", due_date=in_days(2))
    login(client, "student@test.com")
    r = client.get("/dashboard/")
    assert r.status_code == 200
    assert b"Enrolled Courses" in r.data
    assert b"Essay" in r.data
