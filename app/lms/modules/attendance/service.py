from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.lms.modules.attendance.models import ATTENDANCE_STATUSES, AttendanceRecord, AttendanceSession
from app.lms.modules.courses.service import course_ids_for_user, course_students, enrolled_student_ids, student_counts

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.lms.models import User
    from app.lms.modules.courses.models import Course


@dataclass
class SessionRow:
    session: AttendanceSession
    present_count: int = 0
    total_students: int = 0
    student_status: str | None = None


def attendance_rate(present: int, total: int) -> int:
    """Whole-number percentage; 0 when nothing has been recorded."""
    if total <= 0:
        return 0
    return round(100 * present / total)


def parse_session_date(raw: str | None) -> date | None:
    if not raw or not raw.strip():
        return None
    return date.fromisoformat(raw.strip())


def validate_session_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("course_id") or "").strip():
        errors.append("Course is required.")
    try:
        if parse_session_date(payload.get("session_date")) is None:
            errors.append("Session date is required.")
    except ValueError:
        errors.append("Session date is not a valid date.")
    return errors


def list_sessions(s: "Session", user: "User") -> list[SessionRow]:
    course_ids = course_ids_for_user(s, user)
    if not course_ids:
        return []
    sessions = (
        s.query(AttendanceSession)
        .filter(AttendanceSession.course_id.in_(course_ids))
        .order_by(AttendanceSession.session_date.desc(), AttendanceSession.created_at.desc())
        .all()
    )
    if not sessions:
        return []
    session_ids = [x.id for x in sessions]

    if user.is_lecturer:
        present = dict(
            s.query(AttendanceRecord.session_id, func.count(AttendanceRecord.id))
            .filter(AttendanceRecord.session_id.in_(session_ids), AttendanceRecord.status == "present")
            .group_by(AttendanceRecord.session_id)
            .all()
        )
        totals = student_counts(s, course_ids)
        return [
            SessionRow(session=x, present_count=present.get(x.id, 0), total_students=totals.get(x.course_id, 0))
            for x in sessions
        ]

    own = dict(
        s.query(AttendanceRecord.session_id, AttendanceRecord.status)
        .filter(AttendanceRecord.session_id.in_(session_ids), AttendanceRecord.student_id == user.id)
        .all()
    )
    return [SessionRow(session=x, student_status=own.get(x.id)) for x in sessions]


def create_session(s: "Session", course: "Course", session_date: date) -> AttendanceSession:
    """Open a session and start every enrolled student as absent."""
    sess = AttendanceSession(course_id=course.id, session_date=session_date)
    s.add(sess)
    s.flush()
    for student_id in enrolled_student_ids(s, course.id):
        s.add(AttendanceRecord(session_id=sess.id, student_id=student_id, status="absent"))
    s.flush()
    return sess


def get_owned_session(s: "Session", user: "User", session_id: str) -> AttendanceSession | None:
    sess = s.get(AttendanceSession, session_id)
    if sess is None or not user.is_lecturer or sess.course.lecturer_id != user.id:
        return None
    return sess


@dataclass
class MarkRow:
    student: "User"
    status: str
    recorded: bool = True


def session_records(s: "Session", sess: AttendanceSession) -> list[MarkRow]:
    """
    One row per student on the register: everyone with a record plus anyone
    enrolled after the session was opened, who shows as absent until marked.
    """
    records = {r.student_id: r for r in s.query(AttendanceRecord).filter(AttendanceRecord.session_id == sess.id).all()}
    rows = [MarkRow(student=r.student, status=r.status) for r in records.values()]
    for student in course_students(s, sess.course_id):
        if student.id not in records:
            rows.append(MarkRow(student=student, status="absent", recorded=False))
    return sorted(rows, key=lambda row: (row.student.last_name.lower(), row.student.first_name.lower()))


def mark_records(s: "Session", sess: AttendanceSession, statuses: dict[str, str]) -> int:
    """
    Apply {student_id: status} to the session's register. Students enrolled
    after the session was opened get a record on first marking. An unknown
    status or a student who is neither recorded nor enrolled rejects the
    whole update. Returns rows changed.
    """
    bad = sorted({v for v in statuses.values() if v not in ATTENDANCE_STATUSES})
    if bad:
        raise ValueError(f"Invalid attendance status: {', '.join(bad)}")

    records = {r.student_id: r for r in s.query(AttendanceRecord).filter(AttendanceRecord.session_id == sess.id).all()}
    enrolled = set(enrolled_student_ids(s, sess.course_id))
    unknown = sorted(sid for sid in statuses if sid not in records and sid not in enrolled)
    if unknown:
        raise ValueError(f"Student is not on this register: {', '.join(unknown)}")

    changed = 0
    for student_id, new_status in statuses.items():
        rec = records.get(student_id)
        if rec is None:
            s.add(AttendanceRecord(session_id=sess.id, student_id=student_id, status=new_status))
            changed += 1
        elif new_status != rec.status:
            rec.status = new_status
            changed += 1
    s.flush()
    return changed


def attendance_totals(s: "Session", user: "User") -> tuple[int, int]:
    """(present, total) records across the user's sessions, or the student's own records."""
    q = s.query(AttendanceRecord)
    if user.is_lecturer:
        course_ids = course_ids_for_user(s, user)
        if not course_ids:
            return 0, 0
        q = q.join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id).filter(
            AttendanceSession.course_id.in_(course_ids)
        )
    else:
        q = q.filter(AttendanceRecord.student_id == user.id)
    total = q.count()
    present = q.filter(AttendanceRecord.status == "present").count()
    return present, total
