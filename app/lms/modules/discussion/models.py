from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.lms.models import Base, User, new_id
from app.lms.modules.courses.models import Course


class DiscussionTopic(Base):
    __tablename__ = "discussion_topics"
    __table_args__ = (Index("idx_discussion_topics_course_id", "course_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    course_id: Mapped[str] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    course: Mapped[Course] = relationship("Course", lazy="selectin")
    creator: Mapped[User] = relationship("User", lazy="selectin")
    replies: Mapped[list["DiscussionReply"]] = relationship(
        "DiscussionReply",
        back_populates="topic",
        cascade="all, delete-orphan",
        order_by="DiscussionReply.created_at.asc()",
    )


class DiscussionReply(Base):
    __tablename__ = "discussion_replies"
    __table_args__ = (Index("idx_discussion_replies_topic_id", "topic_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    topic_id: Mapped[str] = mapped_column(ForeignKey("discussion_topics.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    topic: Mapped[DiscussionTopic] = relationship("DiscussionTopic", back_populates="replies")
    creator: Mapped[User] = relationship("User", lazy="selectin")
