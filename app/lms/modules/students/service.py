from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from app.lms.models import ROLE_STUDENT, User
from app.lms.modules.courses.models import Course, Enrollment
from app.lms.modules.courses.service import is_enrolled
from app.lms.modules.notifications.service import notify_users

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


ALL_COURSES = "all"


class EnrollmentError(ValueError):
    pass


@dataclass
class RosterEntry:
    student: User
    course_ids: list[str] = field(default_factory=list)
    course_titles: list[str] = field(default_factory=list)


def build_roster(s: "Session", lecturer: User) -> list[RosterEntry]:
    """Students enrolled in any of the lecturer's courses, one entry per student."""
    rows = (
        s.query(Enrollment, Course)
        .join(Course, Course.id == Enrollment.course_id)
        .filter(Course.lecturer_id == lecturer.id)
        .order_by(Course.title.asc())
        .all()
    )
    grouped: dict[str, RosterEntry] = {}
    for enrollment, course in rows:
        student = enrollment.student
        if student is None or student.role != ROLE_STUDENT:
            continue
        entry = grouped.setdefault(student.id, RosterEntry(student=student))
        entry.course_ids.append(course.id)
        entry.course_titles.append(course.title)
    return sorted(grouped.values(), key=lambda e: (e.student.last_name.lower(), e.student.first_name.lower()))


def filter_roster(entries: list[RosterEntry], search: str = "", course_id: str = ALL_COURSES) -> list[RosterEntry]:
    out = list(entries)
    query = (search or "").strip().lower()
    if query:
        out = [
            e
            for e in out
            if query in e.student.first_name.lower()
            or query in e.student.last_name.lower()
            or query in e.student.email.lower()
        ]
    if course_id and course_id != ALL_COURSES:
        out = [e for e in out if course_id in e.course_ids]
    return out


def enroll_by_email(s: "Session", lecturer: User, email: str, course_id: str) -> Enrollment:
    course = s.get(Course, course_id) if course_id else None
    if course is None or course.lecturer_id != lecturer.id:
        raise EnrollmentError("Choose one of your courses.")

    email = (email or "").strip().lower()
    student = s.query(User).filter(User.email == email, User.role == ROLE_STUDENT).one_or_none()
    if student is None:
        raise EnrollmentError("Student not found. Please check the email address.")
    if is_enrolled(s, student.id, course.id):
        raise EnrollmentError("Student is already enrolled in this course.")

    enrollment = Enrollment(student_id=student.id, course_id=course.id)
    s.add(enrollment)
    try:
        s.flush()
    except IntegrityError as e:
        # Lost a race with a concurrent enrollment of the same student.
        s.rollback()
        raise EnrollmentError("Student is already enrolled in this course.") from e
    notify_users(
        s,
        [student.id],
        title=f"Enrolled in {course.title}",
        content=f"{lecturer.full_name} added you to this course.",
        entity_type="course",
        entity_id=course.id,
    )
    return enrollment
