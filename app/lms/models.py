from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ROLE_LECTURER = "lecturer"
ROLE_STUDENT = "student"
VALID_ROLES = (ROLE_LECTURER, ROLE_STUDENT)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class User(Base):
    """
    Profile row mirrored from the backend auth identity.
    `id` is the auth identity id, so a session user maps to exactly one row.
    """

    __tablename__ = "users"
    __table_args__ = (Index("idx_users_role", "role"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)  # lecturer | student
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_lecturer(self) -> bool:
        return self.role == ROLE_LECTURER

    @property
    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT


class AuthIdentity(Base):
    """
    Credential store for the local auth backend (development and tests).
    With AUTH_BACKEND=supabase this table stays empty; GoTrue owns identities.
    """

    __tablename__ = "auth_identities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    user_metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    email_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class AuthToken(Base):
    __tablename__ = "auth_tokens"
    __table_args__ = (Index("idx_auth_tokens_identity", "identity_id"),)

    access_token: Mapped[str] = mapped_column(String(128), primary_key=True)
    refresh_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    identity_id: Mapped[str] = mapped_column(ForeignKey("auth_identities.id", ondelete="CASCADE"), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    refresh_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.lms.modules.courses.models import Course, CourseMaterial, Enrollment  # noqa: E402,F401
from app.lms.modules.assignments.models import Assignment, Submission  # noqa: E402,F401
from app.lms.modules.attendance.models import AttendanceRecord, AttendanceSession  # noqa: E402,F401
from app.lms.modules.discussion.models import DiscussionReply, DiscussionTopic  # noqa: E402,F401
from app.lms.modules.notifications.models import Notification  # noqa: E402,F401
