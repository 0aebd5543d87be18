from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import func, update

from app.lms.modules.notifications.models import ENTITY_TYPES, Notification

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.lms.models import User


def notify_users(
    s: "Session",
    user_ids: Iterable[str],
    *,
    title: str,
    content: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
) -> list[Notification]:
    """Queue one notification per distinct user id. Caller commits."""
    if entity_type is not None and entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unknown notification entity type: {entity_type!r}")
    out = []
    for uid in dict.fromkeys(user_ids):
        n = Notification(
            user_id=uid,
            title=title,
            content=content,
            related_entity_type=entity_type,
            related_entity_id=entity_id,
            is_read=False,
        )
        s.add(n)
        out.append(n)
    return out


def list_notifications(s: "Session", user: "User") -> list[Notification]:
    return (
        s.query(Notification)
        .filter(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc())
        .all()
    )


def unread_count(s: "Session", user: "User") -> int:
    return (
        s.query(func.count(Notification.id))
        .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
        .scalar()
        or 0
    )


def mark_read(s: "Session", user: "User", notification_id: str) -> bool:
    """Mark one of the user's notifications read. False when it is not theirs."""
    n = s.get(Notification, notification_id)
    if n is None or n.user_id != user.id:
        return False
    n.is_read = True
    return True


def mark_all_read(s: "Session", user: "User") -> int:
    res = s.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    return res.rowcount or 0
