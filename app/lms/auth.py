from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.lms.auth_backend import AuthBackend, AuthError, AuthSession, AuthUser, auth_backend_from_app
from app.lms.db import db_session
from app.lms.models import VALID_ROLES, User

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds

_SESSION_KEYS = ("access_token", "refresh_token")


@dataclass
class AuthContext:
    """Request-scoped view of who is signed in."""

    user: User | None = None
    loading: bool = True

    @property
    def role(self) -> str | None:
        return self.user.role if self.user else None

    @property
    def is_lecturer(self) -> bool:
        return bool(self.user and self.user.is_lecturer)


def get_auth_backend() -> AuthBackend:
    backend = current_app.extensions.get("lms_auth_backend")
    if backend is None:
        backend = auth_backend_from_app(current_app)
        current_app.extensions["lms_auth_backend"] = backend
    return backend


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def _store_tokens(auth_session: AuthSession) -> None:
    session["access_token"] = auth_session.access_token
    session["refresh_token"] = auth_session.refresh_token


def _clear_tokens() -> None:
    for k in _SESSION_KEYS:
        session.pop(k, None)


def _profile_from_metadata(auth_user: AuthUser) -> dict[str, Any] | None:
    meta = auth_user.user_metadata or {}
    first_name = (meta.get("first_name") or "").strip()
    last_name = (meta.get("last_name") or "").strip()
    role = (meta.get("role") or "").strip().lower()
    if not first_name or not last_name or role not in VALID_ROLES:
        return None
    return {"first_name": first_name, "last_name": last_name, "role": role}


def provision_profile(s: Session, auth_user: AuthUser) -> User | None:
    """
    Return the profile row for an auth identity, creating it from the identity's
    sign-up metadata when it is missing. Returns None when there is no row and
    the metadata is incomplete, or when the insert fails.
    """
    user = s.get(User, auth_user.id)
    if user is not None:
        return user

    fields = _profile_from_metadata(auth_user)
    if fields is None:
        return None

    user = User(id=auth_user.id, email=(auth_user.email or "").strip().lower(), **fields)
    s.add(user)
    try:
        s.commit()
    except SQLAlchemyError as e:
        s.rollback()
        logger.warning("Profile provisioning failed for %s: %s", auth_user.id, e)
        return None
    logger.info("Provisioned %s profile for %s", user.role, user.email)
    return user


def load_current_user() -> None:
    """
    Resolves g.auth / g.current_user from the tokens in the signed session cookie.
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.auth = AuthContext()
    g.current_user = None

    access_token = session.get("access_token")
    if not access_token:
        g.auth.loading = False
        return

    try:
        auth_session = get_auth_backend().get_session(access_token, session.get("refresh_token"))
        if auth_session is None:
            _clear_tokens()
        else:
            if auth_session.access_token != access_token:
                _store_tokens(auth_session)
            g.auth.user = provision_profile(db_session(), auth_session.user)
    except (AuthError, SQLAlchemyError) as e:
        current_app.logger.error("load_current_user failed (clearing session): %s", e)
        _clear_tokens()
    finally:
        g.auth.loading = False
    g.current_user = g.auth.user


def sign_in(email: str, password: str) -> str | None:
    """Sign in through the auth backend. Returns an error message, or None on success."""
    try:
        auth_session = get_auth_backend().sign_in_with_password(email, password)
    except AuthError as e:
        return str(e)

    user = provision_profile(db_session(), auth_session.user)
    if user is None:
        try:
            get_auth_backend().sign_out(auth_session.access_token, auth_session.refresh_token)
        except AuthError as e:
            logger.warning("Could not revoke session without profile: %s", e)
        return "No profile exists for this account."

    _store_tokens(auth_session)
    g.auth = AuthContext(user=user, loading=False)
    g.current_user = user
    return None


def sign_out() -> None:
    access_token = session.get("access_token")
    refresh_token = session.get("refresh_token")
    try:
        if access_token:
            get_auth_backend().sign_out(access_token, refresh_token)
    except AuthError as e:
        current_app.logger.warning("Backend sign-out failed: %s", e)
    finally:
        _clear_tokens()
        g.auth = AuthContext(user=None, loading=False)
        g.current_user = None


def validate_registration(payload: dict) -> list[str]:
    errors = []
    for key, label in (("email", "Email"), ("password", "Password"), ("first_name", "First name"), ("last_name", "Last name")):
        if not (payload.get(key) or "").strip():
            errors.append(f"{label} is required.")
    role = (payload.get("role") or "").strip().lower()
    if role not in VALID_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")
    return errors


def register(payload: dict) -> str | None:
    """Create the auth identity and its profile row. Returns an error message, or None."""
    email = (payload.get("email") or "").strip().lower()
    first_name = (payload.get("first_name") or "").strip()
    last_name = (payload.get("last_name") or "").strip()
    role = (payload.get("role") or "").strip().lower()
    try:
        auth_user = get_auth_backend().sign_up(
            email,
            payload.get("password") or "",
            {"first_name": first_name, "last_name": last_name, "role": role},
        )
    except AuthError as e:
        return str(e)

    s = db_session()
    if s.get(User, auth_user.id) is None:
        s.add(User(id=auth_user.id, email=email, first_name=first_name, last_name=last_name, role=role))
        try:
            s.commit()
        except SQLAlchemyError as e:
            s.rollback()
            logger.warning("Profile insert after sign-up failed for %s: %s", email, e)
            return "Account created but the profile could not be saved; it will be created on first sign-in."
    return None


def _safe_next(nxt: str) -> str | None:
    # Only allow local paths to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


@bp.get("/login")
def login_get():
    if getattr(g, "current_user", None):
        return redirect(url_for("dashboard.index"))
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    try:
        error = sign_in(email, password)
    except Exception:
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise

    if error:
        current_app.logger.info("Login failed for %s: %s", email, error)
        flash(error, "danger")
        return render_template("auth/login.html", next=nxt, email=email), 401

    _login_attempts[ip].clear()
    return redirect(_safe_next(nxt) or url_for("dashboard.index"))


@bp.get("/register")
def register_get():
    return render_template("auth/register.html", form={})


@bp.post("/register")
def register_post():
    payload = {
        "email": request.form.get("email"),
        "password": request.form.get("password"),
        "first_name": request.form.get("first_name"),
        "last_name": request.form.get("last_name"),
        "role": request.form.get("role"),
    }
    errors = validate_registration(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("auth/register.html", form=payload), 400

    error = register(payload)
    if error:
        flash(error, "danger")
        return render_template("auth/register.html", form=payload), 400

    flash("Account created. You can now log in.", "success")
    return redirect(url_for("auth.login_get"))


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    sign_out()
    return redirect(url_for("auth.login_get"))
