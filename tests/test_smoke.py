from tests.helpers import login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_root_redirects_to_login_when_anonymous(client):
    r = client.get("/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_dashboard_requires_login(client):
    r = client.get("/dashboard/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
    assert "next=" in r.headers["Location"]


def test_login_and_dashboard_access(client, lecturer):
    r = login(client, "lecturer@test.com")
    assert r.status_code == 302

    r = client.get("/dashboard/")
    assert r.status_code == 200
    assert b"Dashboard" in r.data
    assert b"Ada" in r.data


def test_post_without_csrf_is_rejected(client, lecturer):
    login(client, "lecturer@test.com")
    r = client.post("/dashboard/courses/new", data={"title": "No token"})
    assert r.status_code == 400
    assert b"CSRF" in r.data
