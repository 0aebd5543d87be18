from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, url_for

from app.lms.db import db_session
from app.lms.models import User
from app.lms.modules.notifications.service import list_notifications, mark_all_read, mark_read, unread_count
from app.lms.rbac import require_permission

bp = Blueprint("notifications", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/notifications")
@require_permission("notifications.view")
def notifications_list():
    s = db_session()
    u = _current_user()
    return render_template(
        "notifications/list.html",
        notifications=list_notifications(s, u),
        unread=unread_count(s, u),
    )


@bp.post("/notifications/<notification_id>/read")
@require_permission("notifications.view")
def notification_read_post(notification_id: str):
    s = db_session()
    u = _current_user()
    if not mark_read(s, u, notification_id):
        abort(404)
    s.commit()
    return redirect(url_for("notifications.notifications_list"))


@bp.post("/notifications/read-all")
@require_permission("notifications.view")
def notifications_read_all_post():
    s = db_session()
    u = _current_user()
    n = mark_all_read(s, u)
    s.commit()
    flash(f"Marked {n} notification(s) as read.", "success")
    return redirect(url_for("notifications.notifications_list"))
