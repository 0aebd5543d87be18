"""Tests for the Attendance module."""
from datetime import date

import pytest

from app.lms.db import session_scope
from app.lms.modules.attendance.models import AttendanceRecord, AttendanceSession
from app.lms.modules.attendance.service import attendance_rate, mark_records, validate_session_payload
from tests.helpers import login, make_course, make_user, post


def test_attendance_rate():
    assert attendance_rate(0, 0) == 0
    assert attendance_rate(2, 3) == 67
    assert attendance_rate(4, 4) == 100


def test_validate_session_payload():
    assert validate_session_payload({"course_id": "c1", "session_date": "2026-02-30"}) == [
        "Session date is not a valid date."
    ]
    assert validate_session_payload({"course_id": "", "session_date": ""}) == [
        "Course is required.",
        "Session date is required.",
    ]


def _create_session(client, course_id, day="2026-03-02"):
    return post(client, "/dashboard/attendance/sessions/new", {"course_id": course_id, "session_date": day})


def test_new_session_starts_everyone_absent(app, client, lecturer, student):
    second = make_user(app, "second@test.com", "student", "Bo", "Second")
    cid = make_course(app, lecturer, "Physics", student_ids=[student, second])

    login(client, "lecturer@test.com")
    r = _create_session(client, cid)
    assert r.status_code == 302

    with session_scope(app) as s:
        sess = s.query(AttendanceSession).one()
        assert sess.session_date == date(2026, 3, 2)
        records = s.query(AttendanceRecord).filter(AttendanceRecord.session_id == sess.id).all()
        assert sorted(r.student_id for r in records) == sorted([student, second])
        assert {r.status for r in records} == {"absent"}


def test_mark_attendance(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Physics", student_ids=[student])
    login(client, "lecturer@test.com")
    _create_session(client, cid)
    with session_scope(app) as s:
        session_id = s.query(AttendanceSession.id).scalar()

    r = client.get(f"/dashboard/attendance/sessions/{session_id}")
    assert r.status_code == 200
    assert b"Sam Student" in r.data

    r = post(client, f"/dashboard/attendance/sessions/{session_id}/mark", {f"status-{student}": "present"}, follow_redirects=True)
    assert b"Attendance saved (1 updated)." in r.data

    with session_scope(app) as s:
        rec = s.query(AttendanceRecord).one()
        assert rec.status == "present"

    r = client.get("/dashboard/attendance")
    assert b"1/1" in r.data


def test_mark_rejects_unknown_status(app, lecturer, student):
    cid = make_course(app, lecturer, "Physics", student_ids=[student])
    with session_scope(app) as s:
        sess = AttendanceSession(course_id=cid, session_date=date(2026, 3, 2))
        s.add(sess)
        s.flush()
        s.add(AttendanceRecord(session_id=sess.id, student_id=student, status="absent"))
        s.flush()
        with pytest.raises(ValueError, match="Invalid attendance status: sleeping"):
            mark_records(s, sess, {student: "sleeping"})


def test_student_sees_own_status_only(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Physics", student_ids=[student])
    with session_scope(app) as s:
        sess = AttendanceSession(course_id=cid, session_date=date(2026, 3, 2))
        s.add(sess)
        s.flush()
        s.add(AttendanceRecord(session_id=sess.id, student_id=student, status="late"))
        session_id = sess.id

    login(client, "student@test.com")
    r = client.get("/dashboard/attendance")
    assert r.status_code == 200
    assert b"late" in r.data

    assert client.get(f"/dashboard/attendance/sessions/{session_id}").status_code == 403


def test_session_for_foreign_course_rejected(app, client, lecturer):
    other = make_user(app, "other@test.com", "lecturer", "Oli", "Other")
    cid = make_course(app, other, "Not Mine")
    login(client, "lecturer@test.com")
    r = _create_session(client, cid)
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.query(AttendanceSession).count() == 0


def test_late_enrollee_can_be_marked(app, client, lecturer, student):
    from app.lms.modules.courses.models import Enrollment

    cid = make_course(app, lecturer, "Physics", student_ids=[student])
    login(client, "lecturer@test.com")
    _create_session(client, cid)
    late = make_user(app, "late@test.com", "student", "Lee", "Late")
    with session_scope(app) as s:
        s.add(Enrollment(student_id=late, course_id=cid))
        session_id = s.query(AttendanceSession.id).scalar()

    r = client.get(f"/dashboard/attendance/sessions/{session_id}")
    assert b"Lee Late" in r.data
    assert f'name="status-{late}"'.encode() in r.data

    r = post(client, f"/dashboard/attendance/sessions/{session_id}/mark", {f"status-{late}": "present"}, follow_redirects=True)
    assert b"Attendance saved (1 updated)." in r.data
    with session_scope(app) as s:
        rec = s.query(AttendanceRecord).filter(AttendanceRecord.student_id == late).one()
        assert rec.status == "present"

    r = client.get("/dashboard/attendance")
    assert b"1/2" in r.data


def test_mark_rejects_student_not_enrolled(app, lecturer, student):
    outsider = make_user(app, "outsider@test.com", "student", "Out", "Sider")
    cid = make_course(app, lecturer, "Physics", student_ids=[student])
    with session_scope(app) as s:
        sess = AttendanceSession(course_id=cid, session_date=date(2026, 3, 2))
        s.add(sess)
        s.flush()
        with pytest.raises(ValueError, match="Student is not on this register"):
            mark_records(s, sess, {outsider: "present"})
        assert s.query(AttendanceRecord).count() == 0
