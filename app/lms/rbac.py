from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.lms.models import ROLE_LECTURER, ROLE_STUDENT, User

_SHARED = frozenset(
    {
        "dashboard.view",
        "courses.view",
        "assignments.view",
        "attendance.view",
        "discussion.view",
        "discussion.post",
        "notifications.view",
    }
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_LECTURER: _SHARED
    | {
        "courses.create",
        "materials.create",
        "assignments.create",
        "assignments.grade",
        "attendance.manage",
        "students.view",
        "students.enroll",
    },
    ROLE_STUDENT: _SHARED | {"assignments.submit"},
}


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user:
        return False
    return permission_key in ROLE_PERMISSIONS.get(user.role, frozenset())


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login.
            if not user:
                nxt = request.full_path or request.path
                # Avoid trailing '?' from full_path when there is no query string.
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            # Authenticated but wrong role → 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
