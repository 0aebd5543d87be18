import pytest

from app.lms import create_app
from app.lms.auth import _login_attempts
from app.lms.models import Base
from tests.helpers import make_user


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("AUTH_BACKEND", "local")
    for k in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_DB_URL"):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()
    app.config["TESTING"] = True
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    yield app
    engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def lecturer(app):
    return make_user(app, "lecturer@test.com", "lecturer", "Ada", "Lovelace")


@pytest.fixture()
def student(app):
    return make_user(app, "student@test.com", "student", "Sam", "Student")
