from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.lms.models import User
from app.lms.modules.courses.models import Course, CourseMaterial, Enrollment
from app.lms.modules.notifications.service import notify_users

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


@dataclass
class CourseSummary:
    course: Course
    student_count: int = 0

    @property
    def lecturer_name(self) -> str:
        return self.course.lecturer.full_name if self.course.lecturer else ""


def course_ids_for_user(s: "Session", user: User) -> list[str]:
    """Courses a lecturer teaches, or courses a student is enrolled in."""
    if user.is_lecturer:
        rows = s.query(Course.id).filter(Course.lecturer_id == user.id).all()
    else:
        rows = s.query(Enrollment.course_id).filter(Enrollment.student_id == user.id).all()
    return [r[0] for r in rows]


def courses_for_user(s: "Session", user: User) -> list[Course]:
    ids = course_ids_for_user(s, user)
    if not ids:
        return []
    return s.query(Course).filter(Course.id.in_(ids)).order_by(Course.title.asc()).all()


def is_enrolled(s: "Session", student_id: str, course_id: str) -> bool:
    return (
        s.query(Enrollment.id)
        .filter(Enrollment.student_id == student_id, Enrollment.course_id == course_id)
        .first()
        is not None
    )


def can_access_course(s: "Session", user: User, course: Course) -> bool:
    if user.is_lecturer:
        return course.lecturer_id == user.id
    return is_enrolled(s, user.id, course.id)


def get_accessible_course(s: "Session", user: User, course_id: str) -> Course | None:
    course = s.get(Course, course_id)
    if course is None or not can_access_course(s, user, course):
        return None
    return course


def get_owned_course(s: "Session", user: User, course_id: str) -> Course | None:
    course = s.get(Course, course_id)
    if course is None or not user.is_lecturer or course.lecturer_id != user.id:
        return None
    return course


def enrolled_student_ids(s: "Session", course_id: str) -> list[str]:
    rows = s.query(Enrollment.student_id).filter(Enrollment.course_id == course_id).all()
    return [r[0] for r in rows]


def course_students(s: "Session", course_id: str) -> list[User]:
    return (
        s.query(User)
        .join(Enrollment, Enrollment.student_id == User.id)
        .filter(Enrollment.course_id == course_id)
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )


def student_counts(s: "Session", course_ids: list[str]) -> dict[str, int]:
    if not course_ids:
        return {}
    rows = (
        s.query(Enrollment.course_id, func.count(Enrollment.id))
        .filter(Enrollment.course_id.in_(course_ids))
        .group_by(Enrollment.course_id)
        .all()
    )
    return {cid: n for cid, n in rows}


def list_courses(s: "Session", user: User) -> list[CourseSummary]:
    courses = courses_for_user(s, user)
    if not user.is_lecturer:
        return [CourseSummary(course=c) for c in courses]
    counts = student_counts(s, [c.id for c in courses])
    return [CourseSummary(course=c, student_count=counts.get(c.id, 0)) for c in courses]


def validate_course_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("title") or "").strip():
        errors.append("Title is required.")
    return errors


def create_course(s: "Session", payload: dict, lecturer: User) -> Course:
    course = Course(
        title=(payload.get("title") or "").strip(),
        description=(payload.get("description") or "").strip() or None,
        lecturer_id=lecturer.id,
    )
    s.add(course)
    s.flush()
    return course


def validate_material_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("title") or "").strip():
        errors.append("Title is required.")
    file_url = (payload.get("file_url") or "").strip()
    if file_url and not file_url.startswith(("http://", "https://")):
        errors.append("File URL must start with http:// or https://")
    return errors


def add_material(s: "Session", course: Course, payload: dict) -> CourseMaterial:
    material = CourseMaterial(
        course_id=course.id,
        title=(payload.get("title") or "").strip(),
        description=(payload.get("description") or "").strip() or None,
        file_url=(payload.get("file_url") or "").strip() or None,
        file_type=(payload.get("file_type") or "").strip().lower() or "pdf",
    )
    s.add(material)
    s.flush()
    notify_users(
        s,
        enrolled_student_ids(s, course.id),
        title=f"New material in {course.title}",
        content=material.title,
        entity_type="course",
        entity_id=course.id,
    )
    return material


def list_materials(s: "Session", course_id: str) -> list[CourseMaterial]:
    return (
        s.query(CourseMaterial)
        .filter(CourseMaterial.course_id == course_id)
        .order_by(CourseMaterial.created_at.desc())
        .all()
    )
