import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    auth_backend: str
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str
    auth_token_ttl_seconds: int
    auth_refresh_ttl_seconds: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        # SUPABASE_DB_URL is the connection string shown in the Supabase dashboard.
        database_url=_getenv("DATABASE_URL") or _getenv("SUPABASE_DB_URL", "sqlite:///lms.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        auth_backend=_getenv("AUTH_BACKEND", "local").lower(),
        supabase_url=_getenv("SUPABASE_URL"),
        supabase_anon_key=_getenv("SUPABASE_ANON_KEY"),
        supabase_service_role_key=_getenv("SUPABASE_SERVICE_ROLE_KEY"),
        auth_token_ttl_seconds=_getenv_int("AUTH_TOKEN_TTL_SECONDS", 3600),
        auth_refresh_ttl_seconds=_getenv_int("AUTH_REFRESH_TTL_SECONDS", 7 * 24 * 3600),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "AUTH_BACKEND": s.auth_backend,
        "SUPABASE_URL": s.supabase_url,
        "SUPABASE_ANON_KEY": s.supabase_anon_key,
        "SUPABASE_SERVICE_ROLE_KEY": s.supabase_service_role_key,
        "AUTH_TOKEN_TTL_SECONDS": s.auth_token_ttl_seconds,
        "AUTH_REFRESH_TTL_SECONDS": s.auth_refresh_ttl_seconds,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }
