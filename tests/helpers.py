from datetime import datetime, timedelta

from app.lms.auth_backend import LocalAuthBackend
from app.lms.db import session_scope
from app.lms.models import User

PASSWORD = "password123"
CSRF = "test-csrf-token"


def make_user(app, email, role, first_name="Test", last_name=None, *, with_profile=True) -> str:
    """Create a local auth identity (and, by default, its profile row). Returns the user id."""
    last_name = last_name or role.capitalize()
    backend = LocalAuthBackend(app.extensions["sqlalchemy_sessionmaker"])
    auth_user = backend.sign_up(email, PASSWORD, {"first_name": first_name, "last_name": last_name, "role": role})
    if with_profile:
        with session_scope(app) as s:
            s.add(User(id=auth_user.id, email=email, first_name=first_name, last_name=last_name, role=role))
    return auth_user.id


def login(client, email, password=PASSWORD):
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF
    return client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=False)


def post(client, url, data=None, **kwargs):
    payload = dict(data or {})
    payload.setdefault("csrf_token", CSRF)
    return client.post(url, data=payload, **kwargs)


def in_days(days: float) -> datetime:
    return datetime.utcnow() + timedelta(days=days)


def make_course(app, lecturer_id, title="Intro to Python", student_ids=()) -> str:
    from app.lms.modules.courses.models import Course, Enrollment

    with session_scope(app) as s:
        c = Course(title=title, description="Basics", lecturer_id=lecturer_id)
        s.add(c)
        s.flush()
        for sid in student_ids:
            s.add(Enrollment(student_id=sid, course_id=c.id))
        return c.id


def make_assignment(app, course_id, title="Homework 1", due_date=None, max_score=100) -> str:
    from app.lms.modules.assignments.models import Assignment

    with session_scope(app) as s:
        a = Assignment(course_id=course_id, title=title, due_date=due_date or in_days(7), max_score=max_score)
        s.add(a)
        s.flush()
        return a.id
