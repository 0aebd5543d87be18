import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv

from app.lms.config import load_config
from app.lms.db import init_db, teardown_db_session
from app.lms.routes import bp as routes_bp
from app.lms.auth import bp as auth_bp, load_current_user
from app.lms.dashboard import bp as dashboard_bp
from app.lms.modules.courses.views import bp as courses_bp
from app.lms.modules.assignments.views import bp as assignments_bp
from app.lms.modules.attendance.views import bp as attendance_bp
from app.lms.modules.discussion.views import bp as discussion_bp
from app.lms.modules.notifications.views import bp as notifications_bp
from app.lms.modules.students.views import bp as students_bp

_PROBE_PREFIXES = ("/static/", "/health", "/healthz")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    from app.lms.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_auth() -> dict:
        from app.lms.rbac import user_has_permission

        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm, "auth": getattr(g, "auth", None)}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_PROBE_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/register/logout run before a session exists.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    if app.config.get("AUTH_BACKEND") == "supabase":
        missing = [k for k in ("SUPABASE_URL", "SUPABASE_ANON_KEY") if not app.config.get(k)]
        if missing:
            raise RuntimeError(f"AUTH_BACKEND=supabase requires: {', '.join(missing)}")
    elif env in ("prod", "production"):
        app.logger.warning("AUTH_BACKEND=%s in production; identities are stored locally.", app.config.get("AUTH_BACKEND"))

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(courses_bp, url_prefix="/dashboard")
    app.register_blueprint(assignments_bp, url_prefix="/dashboard")
    app.register_blueprint(attendance_bp, url_prefix="/dashboard")
    app.register_blueprint(discussion_bp, url_prefix="/dashboard")
    app.register_blueprint(notifications_bp, url_prefix="/dashboard")
    app.register_blueprint(students_bp, url_prefix="/dashboard")

    def _load_user_wrapper():
        if request.path.startswith(_PROBE_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning(
                "Forbidden: missing_permission=%s role=%s request_id=%s",
                missing,
                getattr(getattr(g, "current_user", None), "role", None),
                getattr(g, "request_id", None),
            )
        return render_template("errors/403.html", missing_permission=missing), 403

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
