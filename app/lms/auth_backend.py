"""
Adapters over the hosted auth service.

`SupabaseAuthBackend` talks to Supabase Auth (GoTrue) through the `supabase`
client. `LocalAuthBackend` keeps identities and tokens in the application
database so development and tests run without the hosted project; both honour
the same contract:

- sign_in_with_password / sign_up raise AuthError with a user-facing message
- get_session returns None for unknown, revoked or expired tokens
- sign_out revokes the token pair
"""
from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.lms.models import AuthIdentity, AuthToken

logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    """Backend auth failure; str(err) is safe to show to the user."""


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    user: AuthUser


class AuthBackend:
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> AuthUser:
        raise NotImplementedError

    def get_session(self, access_token: str, refresh_token: str | None = None) -> AuthSession | None:
        raise NotImplementedError

    def sign_out(self, access_token: str, refresh_token: str | None = None) -> None:
        raise NotImplementedError


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class LocalAuthBackend(AuthBackend):
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        token_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self.session_factory = session_factory
        self.token_ttl = token_ttl
        self.refresh_ttl = refresh_ttl

    @staticmethod
    def _to_user(identity: AuthIdentity) -> AuthUser:
        meta: dict[str, Any] = {}
        if identity.user_metadata_json:
            try:
                meta = json.loads(identity.user_metadata_json) or {}
            except json.JSONDecodeError:
                logger.warning("Unreadable user metadata for identity %s", identity.id)
        return AuthUser(id=identity.id, email=identity.email, user_metadata=meta)

    def _issue(self, s: Session, identity: AuthIdentity) -> AuthSession:
        now = datetime.utcnow()
        tok = AuthToken(
            access_token=secrets.token_urlsafe(32),
            refresh_token=secrets.token_urlsafe(32),
            identity_id=identity.id,
            expires_at=now + self.token_ttl,
            refresh_expires_at=now + self.refresh_ttl,
        )
        s.add(tok)
        return AuthSession(access_token=tok.access_token, refresh_token=tok.refresh_token, user=self._to_user(identity))

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = _normalize_email(email)
        s = self.session_factory()
        try:
            identity = s.query(AuthIdentity).filter(AuthIdentity.email == email).one_or_none()
            if not identity or not check_password_hash(identity.password_hash, password or ""):
                raise AuthError("Invalid login credentials")
            if identity.email_confirmed_at is None:
                raise AuthError("Email not confirmed")
            out = self._issue(s, identity)
            s.commit()
            return out
        finally:
            s.close()

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> AuthUser:
        email = _normalize_email(email)
        if not email or "@" not in email:
            raise AuthError("Unable to validate email address: invalid format")
        if len(password or "") < 6:
            raise AuthError("Password should be at least 6 characters.")
        s = self.session_factory()
        try:
            identity = AuthIdentity(
                email=email,
                password_hash=generate_password_hash(password),
                user_metadata_json=json.dumps(metadata, sort_keys=True) if metadata else None,
                # Local identities are confirmed on creation; there is no mailer.
                email_confirmed_at=datetime.utcnow(),
            )
            s.add(identity)
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise AuthError("User already registered") from e
            return self._to_user(identity)
        finally:
            s.close()

    def get_session(self, access_token: str, refresh_token: str | None = None) -> AuthSession | None:
        if not access_token:
            return None
        now = datetime.utcnow()
        s = self.session_factory()
        try:
            tok = s.get(AuthToken, access_token)
            if tok is None or tok.revoked_at is not None:
                return None
            identity = s.get(AuthIdentity, tok.identity_id)
            if identity is None:
                return None
            if tok.expires_at > now:
                return AuthSession(access_token=tok.access_token, refresh_token=tok.refresh_token, user=self._to_user(identity))

            # Expired access token: rotate when the caller still holds a live refresh token.
            if not refresh_token or refresh_token != tok.refresh_token or tok.refresh_expires_at <= now:
                return None
            tok.revoked_at = now
            out = self._issue(s, identity)
            s.commit()
            logger.debug("Refreshed local session for identity %s", identity.id)
            return out
        finally:
            s.close()

    def sign_out(self, access_token: str, refresh_token: str | None = None) -> None:
        if not access_token:
            return
        s = self.session_factory()
        try:
            tok = s.get(AuthToken, access_token)
            if tok is not None and tok.revoked_at is None:
                tok.revoked_at = datetime.utcnow()
                s.commit()
        finally:
            s.close()


class SupabaseAuthBackend(AuthBackend):
    def __init__(self, url: str, key: str) -> None:
        self.url = url
        self.key = key

    def _client(self):
        try:
            from supabase import ClientOptions, create_client  # type: ignore
        except Exception as e:  # pragma: no cover
            raise AuthError("supabase package required for AUTH_BACKEND=supabase. Install supabase.") from e
        # A fresh client per call: the GoTrue client keeps the signed-in session as instance state.
        # Tokens live in the cookie; the client must not refresh them on a background timer.
        return create_client(self.url, self.key, options=ClientOptions(auto_refresh_token=False, persist_session=False))

    @staticmethod
    def _message(e: Exception) -> str:
        return getattr(e, "message", None) or str(e) or e.__class__.__name__

    @staticmethod
    def _to_user(user: Any) -> AuthUser:
        return AuthUser(id=str(user.id), email=user.email or "", user_metadata=dict(user.user_metadata or {}))

    def _to_session(self, res: Any) -> AuthSession | None:
        sess = getattr(res, "session", None)
        user = getattr(res, "user", None) or getattr(sess, "user", None)
        if sess is None or user is None:
            return None
        return AuthSession(access_token=sess.access_token, refresh_token=sess.refresh_token, user=self._to_user(user))

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            res = self._client().auth.sign_in_with_password({"email": _normalize_email(email), "password": password})
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(self._message(e)) from e
        out = self._to_session(res)
        if out is None:
            raise AuthError("Sign in returned no session")
        return out

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> AuthUser:
        try:
            res = self._client().auth.sign_up(
                {
                    "email": _normalize_email(email),
                    "password": password,
                    "options": {"data": metadata or {}},
                }
            )
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(self._message(e)) from e
        if getattr(res, "user", None) is None:
            raise AuthError("Failed to create user")
        return self._to_user(res.user)

    def get_session(self, access_token: str, refresh_token: str | None = None) -> AuthSession | None:
        if not access_token or not refresh_token:
            return None
        try:
            # set_session refreshes transparently when the access token has expired.
            res = self._client().auth.set_session(access_token, refresh_token)
        except Exception as e:
            logger.info("Supabase session rejected: %s", self._message(e))
            return None
        return self._to_session(res)

    def sign_out(self, access_token: str, refresh_token: str | None = None) -> None:
        if not access_token or not refresh_token:
            return
        client = self._client()
        try:
            client.auth.set_session(access_token, refresh_token)
            client.auth.sign_out()
        except Exception as e:
            raise AuthError(self._message(e)) from e


def auth_backend_from_app(app) -> AuthBackend:
    config = app.config
    backend = (config.get("AUTH_BACKEND") or "local").strip().lower()
    if backend == "supabase":
        return SupabaseAuthBackend(
            url=(config.get("SUPABASE_URL") or "").strip(),
            key=(config.get("SUPABASE_ANON_KEY") or "").strip(),
        )
    # default local
    return LocalAuthBackend(
        app.extensions["sqlalchemy_sessionmaker"],
        token_ttl=timedelta(seconds=int(config.get("AUTH_TOKEN_TTL_SECONDS") or 3600)),
        refresh_ttl=timedelta(seconds=int(config.get("AUTH_REFRESH_TTL_SECONDS") or 7 * 24 * 3600)),
    )
