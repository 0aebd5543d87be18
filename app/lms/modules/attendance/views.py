from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.attendance.models import ATTENDANCE_STATUSES
from app.lms.modules.attendance.service import (
    create_session,
    get_owned_session,
    list_sessions,
    mark_records,
    parse_session_date,
    session_records,
    validate_session_payload,
)
from app.lms.modules.courses.service import courses_for_user, get_owned_course
from app.lms.rbac import require_permission

bp = Blueprint("attendance", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/attendance")
@require_permission("attendance.view")
def attendance_list():
    s = db_session()
    u = _current_user()
    return render_template(
        "attendance/list.html",
        courses=courses_for_user(s, u),
        rows=list_sessions(s, u),
    )


@bp.post("/attendance/sessions/new")
@require_permission("attendance.manage")
def session_new_post():
    s = db_session()
    u = _current_user()

    payload = {
        "course_id": request.form.get("course_id"),
        "session_date": request.form.get("session_date"),
    }
    errors = validate_session_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("attendance.attendance_list"))

    course = get_owned_course(s, u, payload["course_id"].strip())
    if course is None:
        flash("Choose one of your courses.", "danger")
        return redirect(url_for("attendance.attendance_list"))

    sess = create_session(s, course, parse_session_date(payload["session_date"]))
    s.commit()
    flash("Attendance session created.", "success")
    return redirect(url_for("attendance.session_detail", session_id=sess.id))


@bp.get("/attendance/sessions/<session_id>")
@require_permission("attendance.manage")
def session_detail(session_id: str):
    s = db_session()
    u = _current_user()
    sess = get_owned_session(s, u, session_id)
    if sess is None:
        abort(404)
    return render_template(
        "attendance/detail.html",
        session=sess,
        records=session_records(s, sess),
        statuses=ATTENDANCE_STATUSES,
    )


@bp.post("/attendance/sessions/<session_id>/mark")
@require_permission("attendance.manage")
def session_mark_post(session_id: str):
    s = db_session()
    u = _current_user()
    sess = get_owned_session(s, u, session_id)
    if sess is None:
        abort(404)

    # Form fields are named status-<student_id>.
    statuses = {
        key[len("status-"):]: (value or "").strip().lower()
        for key, value in request.form.items()
        if key.startswith("status-")
    }
    try:
        changed = mark_records(s, sess, statuses)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("attendance.session_detail", session_id=sess.id))
    s.commit()
    flash(f"Attendance saved ({changed} updated).", "success")
    return redirect(url_for("attendance.session_detail", session_id=sess.id))
