from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.lms.modules.courses.service import course_ids_for_user, enrolled_student_ids
from app.lms.modules.discussion.models import DiscussionReply, DiscussionTopic
from app.lms.modules.notifications.service import notify_users

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.lms.models import User
    from app.lms.modules.courses.models import Course


@dataclass
class TopicRow:
    topic: DiscussionTopic
    reply_count: int = 0


def validate_topic_payload(payload: dict) -> list[str]:
    errors = []
    for key, label in (("course_id", "Course"), ("title", "Title"), ("content", "Content")):
        if not (payload.get(key) or "").strip():
            errors.append(f"{label} is required.")
    return errors


def list_topics(s: "Session", user: "User") -> list[TopicRow]:
    course_ids = course_ids_for_user(s, user)
    if not course_ids:
        return []
    topics = (
        s.query(DiscussionTopic)
        .filter(DiscussionTopic.course_id.in_(course_ids))
        .order_by(DiscussionTopic.created_at.desc())
        .all()
    )
    if not topics:
        return []
    counts = dict(
        s.query(DiscussionReply.topic_id, func.count(DiscussionReply.id))
        .filter(DiscussionReply.topic_id.in_([t.id for t in topics]))
        .group_by(DiscussionReply.topic_id)
        .all()
    )
    return [TopicRow(topic=t, reply_count=counts.get(t.id, 0)) for t in topics]


def _course_members(s: "Session", course: "Course") -> list[str]:
    return [course.lecturer_id, *enrolled_student_ids(s, course.id)]


def create_topic(s: "Session", user: "User", course: "Course", payload: dict) -> DiscussionTopic:
    topic = DiscussionTopic(
        course_id=course.id,
        title=(payload.get("title") or "").strip(),
        content=(payload.get("content") or "").strip(),
        created_by=user.id,
    )
    s.add(topic)
    s.flush()
    notify_users(
        s,
        [uid for uid in _course_members(s, course) if uid != user.id],
        title=f"New discussion in {course.title}",
        content=topic.title,
        entity_type="discussion",
        entity_id=topic.id,
    )
    return topic


def get_visible_topic(s: "Session", user: "User", topic_id: str) -> DiscussionTopic | None:
    topic = s.get(DiscussionTopic, topic_id)
    if topic is None or topic.course_id not in course_ids_for_user(s, user):
        return None
    return topic


def add_reply(s: "Session", user: "User", topic: DiscussionTopic, content: str | None) -> DiscussionReply:
    content = (content or "").strip()
    if not content:
        raise ValueError("Reply cannot be empty.")
    reply = DiscussionReply(topic_id=topic.id, content=content, created_by=user.id)
    s.add(reply)
    s.flush()
    if topic.created_by != user.id:
        notify_users(
            s,
            [topic.created_by],
            title=f"New reply to {topic.title}",
            content=f"{user.full_name} replied",
            entity_type="discussion",
            entity_id=topic.id,
        )
    return reply
