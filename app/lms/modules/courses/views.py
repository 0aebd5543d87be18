from __future__ import annotations

from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.assignments.service import create_assignment, validate_assignment_payload
from app.lms.modules.courses.service import (
    add_material,
    course_students,
    create_course,
    get_accessible_course,
    get_owned_course,
    list_courses,
    list_materials,
    validate_course_payload,
    validate_material_payload,
)
from app.lms.rbac import require_permission

bp = Blueprint("courses", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _not_found():
    return render_template("courses/not_found.html"), 404


# ---------- List ----------
@bp.get("/courses")
@require_permission("courses.view")
def courses_list():
    s = db_session()
    u = _current_user()
    return render_template("courses/list.html", courses=list_courses(s, u))


# ---------- New ----------
@bp.post("/courses/new")
@require_permission("courses.create")
def courses_new_post():
    s = db_session()
    u = _current_user()

    payload = {
        "title": request.form.get("title"),
        "description": request.form.get("description"),
    }
    errors = validate_course_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("courses.courses_list"))

    course = create_course(s, payload, u)
    s.commit()
    flash("Course created.", "success")
    return redirect(url_for("courses.course_detail", course_id=course.id))


# ---------- Detail ----------
@bp.get("/courses/<course_id>")
@require_permission("courses.view")
def course_detail(course_id: str):
    s = db_session()
    u = _current_user()
    course = get_accessible_course(s, u, course_id)
    if course is None:
        return _not_found()

    students = course_students(s, course.id) if u.is_lecturer else []
    return render_template(
        "courses/detail.html",
        course=course,
        materials=list_materials(s, course.id),
        assignments=sorted(course.assignments, key=lambda a: a.due_date),
        students=students,
        is_owner=u.is_lecturer and course.lecturer_id == u.id,
    )


# ---------- Materials ----------
@bp.post("/courses/<course_id>/materials")
@require_permission("materials.create")
def material_new_post(course_id: str):
    s = db_session()
    u = _current_user()
    course = get_owned_course(s, u, course_id)
    if course is None:
        return _not_found()

    payload = {
        "title": request.form.get("title"),
        "description": request.form.get("description"),
        "file_url": request.form.get("file_url"),
        "file_type": request.form.get("file_type"),
    }
    errors = validate_material_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("courses.course_detail", course_id=course.id))

    add_material(s, course, payload)
    s.commit()
    flash("Material added.", "success")
    return redirect(url_for("courses.course_detail", course_id=course.id))


# ---------- Assignments ----------
@bp.post("/courses/<course_id>/assignments")
@require_permission("assignments.create")
def assignment_new_post(course_id: str):
    s = db_session()
    u = _current_user()
    course = get_owned_course(s, u, course_id)
    if course is None:
        return _not_found()

    payload = {
        "title": request.form.get("title"),
        "description": request.form.get("description"),
        "due_date": request.form.get("due_date"),
        "max_score": request.form.get("max_score"),
        "file_url": request.form.get("file_url"),
    }
    errors = validate_assignment_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("courses.course_detail", course_id=course.id))

    create_assignment(s, course, payload)
    s.commit()
    flash("Assignment created.", "success")
    return redirect(url_for("courses.course_detail", course_id=course.id))
