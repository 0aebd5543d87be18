"""initial lms schema

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001a2b3c4d5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create profile, local auth, course, assignment, attendance, discussion and notification tables."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("role", sa.String(16), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_users_role", "users", ["role"])

    if "auth_identities" not in existing_tables:
        op.create_table(
            "auth_identities",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("user_metadata_json", sa.Text(), nullable=True),
            sa.Column("email_confirmed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "auth_tokens" not in existing_tables:
        op.create_table(
            "auth_tokens",
            sa.Column("access_token", sa.String(128), primary_key=True),
            sa.Column("refresh_token", sa.String(128), nullable=False, unique=True),
            sa.Column("identity_id", sa.String(36), sa.ForeignKey("auth_identities.id", ondelete="CASCADE"), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("refresh_expires_at", sa.DateTime(), nullable=False),
            sa.Column("revoked_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_auth_tokens_identity", "auth_tokens", ["identity_id"])

    if "courses" not in existing_tables:
        op.create_table(
            "courses",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("lecturer_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_courses_lecturer_id", "courses", ["lecturer_id"])

    if "course_materials" not in existing_tables:
        op.create_table(
            "course_materials",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("file_url", sa.String(1024), nullable=True),
            sa.Column("file_type", sa.String(32), nullable=False, server_default="pdf"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_course_materials_course_id", "course_materials", ["course_id"])

    if "enrollments" not in existing_tables:
        op.create_table(
            "enrollments",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("student_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
            sa.Column("enrolled_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        )
        op.create_index("idx_enrollments_course_id", "enrollments", ["course_id"])

    if "assignments" not in existing_tables:
        op.create_table(
            "assignments",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("due_date", sa.DateTime(), nullable=False),
            sa.Column("max_score", sa.Integer(), nullable=False, server_default="100"),
            sa.Column("file_url", sa.String(1024), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_assignments_course_id", "assignments", ["course_id"])
        op.create_index("idx_assignments_due_date", "assignments", ["due_date"])

    if "submissions" not in existing_tables:
        op.create_table(
            "submissions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("assignment_id", sa.String(36), sa.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False),
            sa.Column("student_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("file_url", sa.String(1024), nullable=True),
            sa.Column("submitted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("score", sa.Integer(), nullable=True),
            sa.Column("feedback", sa.Text(), nullable=True),
            sa.UniqueConstraint("assignment_id", "student_id", name="uq_submissions_assignment_student"),
        )
        op.create_index("idx_submissions_student_id", "submissions", ["student_id"])

    if "attendance_sessions" not in existing_tables:
        op.create_table(
            "attendance_sessions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
            sa.Column("session_date", sa.Date(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_attendance_sessions_course_id", "attendance_sessions", ["course_id"])

    if "attendance_records" not in existing_tables:
        op.create_table(
            "attendance_records",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("session_id", sa.String(36), sa.ForeignKey("attendance_sessions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("student_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="absent"),
            sa.UniqueConstraint("session_id", "student_id", name="uq_attendance_records_session_student"),
        )
        op.create_index("idx_attendance_records_student_id", "attendance_records", ["student_id"])

    if "discussion_topics" not in existing_tables:
        op.create_table(
            "discussion_topics",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_discussion_topics_course_id", "discussion_topics", ["course_id"])

    if "discussion_replies" not in existing_tables:
        op.create_table(
            "discussion_replies",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("topic_id", sa.String(36), sa.ForeignKey("discussion_topics.id", ondelete="CASCADE"), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_by", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_discussion_replies_topic_id", "discussion_replies", ["topic_id"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("related_entity_type", sa.String(32), nullable=True),
            sa.Column("related_entity_id", sa.String(36), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_notifications_user_id_is_read", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    for table in (
        "notifications",
        "discussion_replies",
        "discussion_topics",
        "attendance_records",
        "attendance_sessions",
        "submissions",
        "assignments",
        "enrollments",
        "course_materials",
        "courses",
        "auth_tokens",
        "auth_identities",
        "users",
    ):
        op.drop_table(table)
