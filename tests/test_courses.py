"""Tests for the Courses module."""
from app.lms.db import session_scope
from app.lms.modules.courses.models import Course, CourseMaterial
from app.lms.modules.courses.service import validate_material_payload
from app.lms.modules.notifications.models import Notification
from tests.helpers import login, make_course, make_user, post


def test_courses_list_requires_auth(client):
    r = client.get("/dashboard/courses")
    assert r.status_code == 302


def test_lecturer_creates_course(app, client, lecturer):
    login(client, "lecturer@test.com")
    r = post(client, "/dashboard/courses/new", {"title": "Data Structures", "description": "Lists and trees"})
    assert r.status_code == 302

    with session_scope(app) as s:
        c = s.query(Course).filter(Course.title == "Data Structures").one()
        assert c.lecturer_id == lecturer

    r = client.get("/dashboard/courses")
    assert r.status_code == 200
    assert b"Data Structures" in r.data


def test_course_title_required(app, client, lecturer):
    login(client, "lecturer@test.com")
    r = post(client, "/dashboard/courses/new", {"title": "  "}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Title is required." in r.data
    with session_scope(app) as s:
        assert s.query(Course).count() == 0


def test_student_cannot_create_course(client, student):
    login(client, "student@test.com")
    r = post(client, "/dashboard/courses/new", {"title": "Sneaky"})
    assert r.status_code == 403


def test_lists_are_scoped_to_user(app, client, lecturer, student):
    other = make_user(app, "other@test.com", "lecturer", "Oli", "Other")
    make_course(app, lecturer, "Enrolled Course", student_ids=[student])
    make_course(app, other, "Someone Else's Course")

    login(client, "student@test.com")
    r = client.get("/dashboard/courses")
    assert b"Enrolled Course" in r.data
    assert b"Someone Else" not in r.data


def test_course_detail_not_found_for_outsider(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Private Course")
    login(client, "student@test.com")
    r = client.get(f"/dashboard/courses/{cid}")
    assert r.status_code == 404
    assert b"Course not found" in r.data


def test_course_detail_shows_roster_to_owner(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Algorithms", student_ids=[student])
    login(client, "lecturer@test.com")
    r = client.get(f"/dashboard/courses/{cid}")
    assert r.status_code == 200
    assert b"Algorithms" in r.data
    assert b"Sam Student" in r.data


def test_add_material_notifies_students(app, client, lecturer, student):
    cid = make_course(app, lecturer, "Networks", student_ids=[student])
    login(client, "lecturer@test.com")
    r = post(
        client,
        f"/dashboard/courses/{cid}/materials",
        {"title": "Week 1 slides", "file_url": "https://example.com/w1.pdf", "file_type": "PDF"},
    )
    assert r.status_code == 302

    with session_scope(app) as s:
        m = s.query(CourseMaterial).one()
        assert m.file_type == "pdf"
        n = s.query(Notification).filter(Notification.user_id == student).one()
        assert n.related_entity_type == "course"
        assert n.related_entity_id == cid


def test_material_for_foreign_course_is_not_found(app, client, lecturer):
    other = make_user(app, "other@test.com", "lecturer", "Oli", "Other")
    cid = make_course(app, other, "Not Mine")
    login(client, "lecturer@test.com")
    r = post(client, f"/dashboard/courses/{cid}/materials", {"title": "X", "file_url": "https://example.com/x"})
    assert r.status_code == 404


def test_material_url_must_be_http():
    errors = validate_material_payload({"title": "Notes", "file_url": "ftp://example.com/notes"})
    assert errors == ["File URL must start with http:// or https://"]
    assert validate_material_payload({"title": "Notes", "file_url": "https://example.com"}) == []
