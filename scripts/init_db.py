import sys
from pathlib import Path
import os
from datetime import timedelta

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.lms.auth import provision_profile
from app.lms.auth_backend import AuthBackend, AuthError, AuthUser, LocalAuthBackend, SupabaseAuthBackend
from app.lms.config import Settings, load_settings
from app.lms.models import ROLE_LECTURER, ROLE_STUDENT, Base
from app.lms.db import make_sessionmaker
from scripts._db_utils import create_script_engine, script_session


def _seed_accounts() -> list[dict]:
    password = os.environ.get("SEED_PASSWORD") or "password123"
    return [
        {
            "email": (os.environ.get("SEED_LECTURER_EMAIL") or "lecturer@test.com").strip().lower(),
            "password": password,
            "metadata": {"first_name": "Test", "last_name": "Lecturer", "role": ROLE_LECTURER},
        },
        {
            "email": (os.environ.get("SEED_STUDENT_EMAIL") or "student@test.com").strip().lower(),
            "password": password,
            "metadata": {"first_name": "Test", "last_name": "Student", "role": ROLE_STUDENT},
        },
    ]


def _backend_for(engine, settings: Settings) -> AuthBackend:
    if settings.auth_backend == "supabase":
        key = settings.supabase_service_role_key or settings.supabase_anon_key
        return SupabaseAuthBackend(url=settings.supabase_url, key=key)
    return LocalAuthBackend(make_sessionmaker(engine), token_ttl=timedelta(minutes=5))


def _ensure_identity(backend: AuthBackend, account: dict) -> AuthUser | None:
    try:
        return backend.sign_up(account["email"], account["password"], account["metadata"])
    except AuthError as e:
        if "already registered" not in str(e).lower():
            raise
    # Existing identity: sign in once to learn its id. Never resets the password.
    try:
        auth_session = backend.sign_in_with_password(account["email"], account["password"])
    except AuthError as e:
        print(f"Skipping {account['email']}: {e}")
        return None
    backend.sign_out(auth_session.access_token, auth_session.refresh_token)
    return auth_session.user


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> None:
    """
    Seed the test lecturer/student accounts in an idempotent way.
    Does NOT overwrite an existing account's password or profile.
    """
    settings = load_settings()
    db_url = (database_url or settings.database_url).strip()
    env = settings.env.lower()
    default_seed = "0" if env in ("prod", "production") else "1"
    if (os.environ.get("SEED_TEST_ACCOUNTS") or default_seed).strip() not in ("1", "true", "yes"):
        print("Skipping test account seed (SEED_TEST_ACCOUNTS disabled).")
        return

    engine = create_script_engine(db_url)
    try:
        if create_tables:
            Base.metadata.create_all(engine)
        backend = _backend_for(engine, settings)
        for account in _seed_accounts():
            auth_user = _ensure_identity(backend, account)
            if auth_user is None:
                continue
            # Identities created before metadata existed still get a profile.
            if not auth_user.user_metadata:
                auth_user = AuthUser(id=auth_user.id, email=auth_user.email, user_metadata=account["metadata"])
            with script_session(engine) as s:
                user = provision_profile(s, auth_user)
            if user is None:
                print(f"Could not create profile for {account['email']}")
            else:
                print(f"Seeded {user.role}: {user.email}")
    finally:
        engine.dispose()

    print("Initialized database (seed_only).")
    print("Test account password: (from SEED_PASSWORD)")


def main() -> None:
    seed_only(database_url=None, create_tables=True)


if __name__ == "__main__":
    main()
