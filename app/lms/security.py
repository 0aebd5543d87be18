import secrets

from flask import Request, session

CSRF_SESSION_KEY = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def ensure_csrf_token() -> str:
    """Return the session's CSRF token, minting one on first use."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Compare the submitted token (form field or header) with the session copy."""
    token = req.form.get(CSRF_SESSION_KEY) or req.headers.get(CSRF_HEADER)
    expected = session.get(CSRF_SESSION_KEY)
    if not token or not expected:
        return False
    return secrets.compare_digest(str(token), str(expected))
