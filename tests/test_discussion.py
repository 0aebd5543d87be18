"""Tests for the Discussion module."""
from app.lms.db import session_scope
from app.lms.modules.discussion.models import DiscussionReply, DiscussionTopic
from app.lms.modules.notifications.models import Notification
from tests.helpers import login, make_course, make_user, post


def test_student_posts_topic_and_lecturer_is_notified(app, client, lecturer, student):
    cid = make_course(app, lecturer, "History", student_ids=[student])
    login(client, "student@test.com")
    r = post(client, "/dashboard/discussion/new", {"course_id": cid, "title": "Exam scope?", "content": "Which chapters?"})
    assert r.status_code == 302

    with session_scope(app) as s:
        topic = s.query(DiscussionTopic).one()
        assert topic.created_by == student
        notes = s.query(Notification).all()
        assert [n.user_id for n in notes] == [lecturer]
        assert notes[0].related_entity_type == "discussion"

    r = client.get("/dashboard/discussion")
    assert b"Exam scope?" in r.data


def test_reply_notifies_topic_creator(app, client, lecturer, student):
    cid = make_course(app, lecturer, "History", student_ids=[student])
    with session_scope(app) as s:
        t = DiscussionTopic(course_id=cid, title="Welcome", content="Say hi", created_by=lecturer)
        s.add(t)
        s.flush()
        topic_id = t.id

    login(client, "student@test.com")
    r = post(client, f"/dashboard/discussion/{topic_id}/replies", {"content": "Hi!"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Hi!" in r.data

    with session_scope(app) as s:
        assert s.query(DiscussionReply).count() == 1
        n = s.query(Notification).one()
        assert n.user_id == lecturer
        assert n.title == "New reply to Welcome"


def test_empty_reply_rejected(app, client, lecturer, student):
    cid = make_course(app, lecturer, "History", student_ids=[student])
    with session_scope(app) as s:
        t = DiscussionTopic(course_id=cid, title="Welcome", content="Say hi", created_by=lecturer)
        s.add(t)
        s.flush()
        topic_id = t.id

    login(client, "student@test.com")
    r = post(client, f"/dashboard/discussion/{topic_id}/replies", {"content": "   "}, follow_redirects=True)
    assert b"Reply cannot be empty." in r.data
    with session_scope(app) as s:
        assert s.query(DiscussionReply).count() == 0


def test_topic_hidden_outside_course(app, client, lecturer):
    make_user(app, "outsider@test.com", "student", "Out", "Sider")
    cid = make_course(app, lecturer, "History")
    with session_scope(app) as s:
        t = DiscussionTopic(course_id=cid, title="Private", content="...", created_by=lecturer)
        s.add(t)
        s.flush()
        topic_id = t.id

    login(client, "outsider@test.com")
    assert client.get(f"/dashboard/discussion/{topic_id}").status_code == 404
    r = post(client, "/dashboard/discussion/new", {"course_id": cid, "title": "x", "content": "y"}, follow_redirects=True)
    assert b"Choose one of your courses." in r.data
