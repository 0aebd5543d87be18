from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import Blueprint, g, render_template
from sqlalchemy.orm import Session

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.assignments.models import Assignment, Submission
from app.lms.modules.attendance.service import attendance_rate, attendance_totals
from app.lms.modules.courses.models import Enrollment
from app.lms.modules.courses.service import course_ids_for_user
from app.lms.modules.notifications.service import unread_count
from app.lms.rbac import require_permission

bp = Blueprint("dashboard", __name__)


@dataclass
class DashboardStats:
    courses: int = 0
    assignments: int = 0  # lecturer: created; student: pending
    students: int = 0  # lecturer only
    completed: int = 0  # student only
    attendance_rate: int = 0


def compute_stats(s: Session, user: User) -> DashboardStats:
    course_ids = course_ids_for_user(s, user)
    stats = DashboardStats(courses=len(course_ids))
    present, total = attendance_totals(s, user)
    stats.attendance_rate = attendance_rate(present, total)
    if not course_ids:
        return stats

    assignment_ids = [r[0] for r in s.query(Assignment.id).filter(Assignment.course_id.in_(course_ids)).all()]
    if user.is_lecturer:
        stats.assignments = len(assignment_ids)
        stats.students = s.query(Enrollment).filter(Enrollment.course_id.in_(course_ids)).count()
        return stats

    submitted = {
        r[0]
        for r in s.query(Submission.assignment_id).filter(Submission.student_id == user.id).all()
    }
    stats.completed = len(submitted)
    stats.assignments = len([a for a in assignment_ids if a not in submitted])
    return stats


def upcoming_deadlines(s: Session, user: User, *, limit: int = 5, now: datetime | None = None) -> list[Assignment]:
    course_ids = course_ids_for_user(s, user)
    if not course_ids:
        return []
    now = now or datetime.utcnow()
    return (
        s.query(Assignment)
        .filter(Assignment.course_id.in_(course_ids), Assignment.due_date >= now)
        .order_by(Assignment.due_date.asc())
        .limit(limit)
        .all()
    )


@bp.get("/")
@require_permission("dashboard.view")
def index():
    s = db_session()
    user: User = g.current_user
    return render_template(
        "dashboard/index.html",
        stats=compute_stats(s, user),
        deadlines=upcoming_deadlines(s, user),
        unread=unread_count(s, user),
    )
