from app.lms.auth_backend import LocalAuthBackend, SupabaseAuthBackend
from app.lms.config import load_settings
from scripts._db_utils import create_script_engine
from scripts.init_db import _backend_for


def test_seed_backend_prefers_service_role_key(monkeypatch):
    monkeypatch.setenv("AUTH_BACKEND", "supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")

    backend = _backend_for(None, load_settings())
    assert isinstance(backend, SupabaseAuthBackend)
    assert backend.url == "https://example.supabase.co"
    assert backend.key == "service-key"


def test_seed_backend_falls_back_to_anon_key(monkeypatch):
    monkeypatch.setenv("AUTH_BACKEND", "supabase")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

    assert _backend_for(None, load_settings()).key == "anon-key"


def test_seed_backend_defaults_to_local(monkeypatch, tmp_path):
    monkeypatch.delenv("AUTH_BACKEND", raising=False)
    engine = create_script_engine(f"sqlite:///{tmp_path / 'seed.db'}")
    try:
        assert isinstance(_backend_for(engine, load_settings()), LocalAuthBackend)
    finally:
        engine.dispose()
