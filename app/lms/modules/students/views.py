from __future__ import annotations

from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.courses.service import courses_for_user
from app.lms.modules.students.service import ALL_COURSES, EnrollmentError, build_roster, enroll_by_email, filter_roster
from app.lms.rbac import require_permission

bp = Blueprint("students", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/students")
@require_permission("students.view")
def students_list():
    s = db_session()
    u = _current_user()

    search = (request.args.get("q") or "").strip()
    course_filter = (request.args.get("course") or ALL_COURSES).strip() or ALL_COURSES

    roster = build_roster(s, u)
    return render_template(
        "students/list.html",
        courses=courses_for_user(s, u),
        students=filter_roster(roster, search, course_filter),
        total=len(roster),
        search=search,
        course_filter=course_filter,
    )


@bp.post("/students/enroll")
@require_permission("students.enroll")
def students_enroll_post():
    s = db_session()
    u = _current_user()
    try:
        enroll_by_email(s, u, request.form.get("student_email") or "", (request.form.get("course_id") or "").strip())
    except EnrollmentError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("students.students_list"))
    s.commit()
    flash("Student enrolled successfully!", "success")
    return redirect(url_for("students.students_list"))
