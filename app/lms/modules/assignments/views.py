from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.assignments.models import Submission
from app.lms.modules.assignments.service import (
    SubmissionError,
    assignment_status,
    get_submission,
    get_visible_assignment,
    grade_submission,
    list_assignments,
    list_submissions,
    submit_assignment,
)
from app.lms.rbac import require_permission

bp = Blueprint("assignments", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/assignments")
@require_permission("assignments.view")
def assignments_list():
    s = db_session()
    u = _current_user()
    return render_template("assignments/list.html", rows=list_assignments(s, u))


@bp.get("/assignments/<assignment_id>")
@require_permission("assignments.view")
def assignment_detail(assignment_id: str):
    s = db_session()
    u = _current_user()
    a = get_visible_assignment(s, u, assignment_id)
    if a is None:
        abort(404)

    own = None if u.is_lecturer else get_submission(s, a.id, u.id)
    is_owner = u.is_lecturer and a.course.lecturer_id == u.id
    return render_template(
        "assignments/detail.html",
        assignment=a,
        status=assignment_status(a.due_date, has_submission=own is not None, is_lecturer=u.is_lecturer),
        submission=own,
        submissions=list_submissions(s, a) if is_owner else [],
        is_owner=is_owner,
    )


@bp.post("/assignments/<assignment_id>/submit")
@require_permission("assignments.submit")
def assignment_submit_post(assignment_id: str):
    s = db_session()
    u = _current_user()
    a = get_visible_assignment(s, u, assignment_id)
    if a is None:
        abort(404)

    payload = {
        "content": request.form.get("content"),
        "file_url": request.form.get("file_url"),
    }
    try:
        submit_assignment(s, u, a, payload)
    except SubmissionError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("assignments.assignment_detail", assignment_id=a.id))
    s.commit()
    flash("Assignment submitted.", "success")
    return redirect(url_for("assignments.assignment_detail", assignment_id=a.id))


@bp.post("/assignments/<assignment_id>/submissions/<submission_id>/grade")
@require_permission("assignments.grade")
def submission_grade_post(assignment_id: str, submission_id: str):
    s = db_session()
    u = _current_user()
    a = get_visible_assignment(s, u, assignment_id)
    sub = s.get(Submission, submission_id)
    if a is None or sub is None or sub.assignment_id != a.id:
        abort(404)

    try:
        grade_submission(s, u, sub, request.form.get("score"), request.form.get("feedback"))
    except SubmissionError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("assignments.assignment_detail", assignment_id=a.id))
    s.commit()
    flash("Submission graded.", "success")
    return redirect(url_for("assignments.assignment_detail", assignment_id=a.id))
