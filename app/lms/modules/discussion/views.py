from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.courses.service import courses_for_user, get_accessible_course
from app.lms.modules.discussion.service import (
    add_reply,
    create_topic,
    get_visible_topic,
    list_topics,
    validate_topic_payload,
)
from app.lms.rbac import require_permission

bp = Blueprint("discussion", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/discussion")
@require_permission("discussion.view")
def discussion_list():
    s = db_session()
    u = _current_user()
    return render_template(
        "discussion/list.html",
        courses=courses_for_user(s, u),
        rows=list_topics(s, u),
    )


@bp.post("/discussion/new")
@require_permission("discussion.post")
def topic_new_post():
    s = db_session()
    u = _current_user()

    payload = {
        "course_id": request.form.get("course_id"),
        "title": request.form.get("title"),
        "content": request.form.get("content"),
    }
    errors = validate_topic_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("discussion.discussion_list"))

    course = get_accessible_course(s, u, payload["course_id"].strip())
    if course is None:
        flash("Choose one of your courses.", "danger")
        return redirect(url_for("discussion.discussion_list"))

    topic = create_topic(s, u, course, payload)
    s.commit()
    flash("Topic posted.", "success")
    return redirect(url_for("discussion.topic_detail", topic_id=topic.id))


@bp.get("/discussion/<topic_id>")
@require_permission("discussion.view")
def topic_detail(topic_id: str):
    s = db_session()
    u = _current_user()
    topic = get_visible_topic(s, u, topic_id)
    if topic is None:
        abort(404)
    return render_template("discussion/detail.html", topic=topic, replies=topic.replies)


@bp.post("/discussion/<topic_id>/replies")
@require_permission("discussion.post")
def reply_new_post(topic_id: str):
    s = db_session()
    u = _current_user()
    topic = get_visible_topic(s, u, topic_id)
    if topic is None:
        abort(404)

    try:
        add_reply(s, u, topic, request.form.get("content"))
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("discussion.topic_detail", topic_id=topic.id))
    s.commit()
    flash("Reply posted.", "success")
    return redirect(url_for("discussion.topic_detail", topic_id=topic.id))
