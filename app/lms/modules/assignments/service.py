from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import TYPE_CHECKING

from app.lms.modules.assignments.models import Assignment, Submission
from app.lms.modules.courses.service import can_access_course, course_ids_for_user, enrolled_student_ids, is_enrolled
from app.lms.modules.notifications.service import notify_users

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.lms.models import User
    from app.lms.modules.courses.models import Course


STATUS_SUBMITTED = "Submitted"
STATUS_OVERDUE = "Overdue"
STATUS_DUE_SOON = "Due Soon"
STATUS_UPCOMING = "Upcoming"

DUE_SOON_WINDOW = timedelta(hours=48)
DEFAULT_MAX_SCORE = 100


class SubmissionError(ValueError):
    pass


@dataclass
class AssignmentRow:
    assignment: Assignment
    status: str
    submission: Submission | None = None


def assignment_status(
    due_date: datetime,
    *,
    has_submission: bool = False,
    is_lecturer: bool = False,
    now: datetime | None = None,
) -> str:
    """
    Badge for an assignment as seen by one user.

    Submitted (students only) wins over Overdue; Due Soon covers the next 48 hours.
    """
    now = now or datetime.utcnow()
    if not is_lecturer and has_submission:
        return STATUS_SUBMITTED
    if due_date < now:
        return STATUS_OVERDUE
    if due_date - now <= DUE_SOON_WINDOW:
        return STATUS_DUE_SOON
    return STATUS_UPCOMING


def parse_due_date(raw: str | None) -> datetime | None:
    """
    Accepts <input type="datetime-local"> (YYYY-MM-DDTHH:MM) or a bare date,
    which is taken as due at the end of that day. An explicit offset is
    converted to naive UTC, the form due dates are stored and compared in.
    """
    if not raw or not raw.strip():
        return None
    raw = raw.strip()
    if "T" in raw or " " in raw:
        dt = datetime.fromisoformat(raw)
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt
    d = datetime.fromisoformat(raw).date()
    return datetime.combine(d, time(23, 59))


def _parse_int(raw: object) -> int | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return int(str(raw).strip())


def validate_assignment_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("title") or "").strip():
        errors.append("Title is required.")
    try:
        if parse_due_date(payload.get("due_date")) is None:
            errors.append("Due date is required.")
    except ValueError:
        errors.append("Due date is not a valid date.")
    try:
        max_score = _parse_int(payload.get("max_score"))
        if max_score is not None and max_score <= 0:
            errors.append("Max score must be a positive number.")
    except ValueError:
        errors.append("Max score must be a whole number.")
    return errors


def create_assignment(s: "Session", course: "Course", payload: dict) -> Assignment:
    a = Assignment(
        course_id=course.id,
        title=(payload.get("title") or "").strip(),
        description=(payload.get("description") or "").strip() or None,
        due_date=parse_due_date(payload.get("due_date")),
        max_score=_parse_int(payload.get("max_score")) or DEFAULT_MAX_SCORE,
        file_url=(payload.get("file_url") or "").strip() or None,
    )
    s.add(a)
    s.flush()
    notify_users(
        s,
        enrolled_student_ids(s, course.id),
        title=f"New assignment: {a.title}",
        content=f"{course.title}, due {a.due_date:%Y-%m-%d %H:%M}",
        entity_type="assignment",
        entity_id=a.id,
    )
    return a


def list_assignments(s: "Session", user: "User", now: datetime | None = None) -> list[AssignmentRow]:
    course_ids = course_ids_for_user(s, user)
    if not course_ids:
        return []
    assignments = (
        s.query(Assignment)
        .filter(Assignment.course_id.in_(course_ids))
        .order_by(Assignment.due_date.asc())
        .all()
    )

    own: dict[str, Submission] = {}
    if not user.is_lecturer and assignments:
        subs = (
            s.query(Submission)
            .filter(Submission.student_id == user.id)
            .filter(Submission.assignment_id.in_([a.id for a in assignments]))
            .order_by(Submission.submitted_at.asc())
            .all()
        )
        for sub in subs:
            own.setdefault(sub.assignment_id, sub)

    rows = []
    for a in assignments:
        sub = own.get(a.id)
        rows.append(
            AssignmentRow(
                assignment=a,
                submission=sub,
                status=assignment_status(a.due_date, has_submission=sub is not None, is_lecturer=user.is_lecturer, now=now),
            )
        )
    return rows


def get_visible_assignment(s: "Session", user: "User", assignment_id: str) -> Assignment | None:
    a = s.get(Assignment, assignment_id)
    if a is None or not can_access_course(s, user, a.course):
        return None
    return a


def get_submission(s: "Session", assignment_id: str, student_id: str) -> Submission | None:
    return (
        s.query(Submission)
        .filter(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
        .one_or_none()
    )


def submit_assignment(s: "Session", student: "User", assignment: Assignment, payload: dict) -> Submission:
    """
    Create or replace the student's submission. Replacing is allowed until graded.
    """
    if not student.is_student:
        raise SubmissionError("Only students can submit assignments.")
    if not is_enrolled(s, student.id, assignment.course_id):
        raise SubmissionError("You are not enrolled in this course.")

    content = (payload.get("content") or "").strip() or None
    file_url = (payload.get("file_url") or "").strip() or None
    if not content and not file_url:
        raise SubmissionError("Provide an answer or a file URL.")

    sub = get_submission(s, assignment.id, student.id)
    if sub is not None and sub.is_graded:
        raise SubmissionError("This submission has already been graded.")
    if sub is None:
        sub = Submission(assignment_id=assignment.id, student_id=student.id)
        s.add(sub)
    sub.content = content
    sub.file_url = file_url
    sub.submitted_at = datetime.utcnow()
    s.flush()
    return sub


def grade_submission(
    s: "Session",
    lecturer: "User",
    submission: Submission,
    score_raw: str | None,
    feedback: str | None = None,
) -> Submission:
    assignment = submission.assignment
    if assignment.course.lecturer_id != lecturer.id:
        raise SubmissionError("Only the course lecturer can grade this submission.")
    try:
        score = _parse_int(score_raw)
    except ValueError as e:
        raise SubmissionError("Score must be a whole number.") from e
    if score is None:
        raise SubmissionError("Score is required.")
    if score < 0 or score > assignment.max_score:
        raise SubmissionError(f"Score must be between 0 and {assignment.max_score}.")

    submission.score = score
    submission.feedback = (feedback or "").strip() or None
    notify_users(
        s,
        [submission.student_id],
        title=f"Graded: {assignment.title}",
        content=f"Score {score}/{assignment.max_score}",
        entity_type="assignment",
        entity_id=assignment.id,
    )
    return submission


def list_submissions(s: "Session", assignment: Assignment) -> list[Submission]:
    return (
        s.query(Submission)
        .filter(Submission.assignment_id == assignment.id)
        .order_by(Submission.submitted_at.asc())
        .all()
    )
