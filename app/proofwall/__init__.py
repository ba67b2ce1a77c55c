import logging

from flask import Flask, g
from flask_cors import CORS
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app.proofwall.auth import assign_request_id, guard_admin_prefix, init_admin_gate
from app.proofwall.config import load_config
from app.proofwall.db import init_db, teardown_db_session
from app.proofwall.errors import ProofWallError, StorageError
from app.proofwall.routes import bp as routes_bp
from app.proofwall.modules.moderation.admin import bp as moderation_admin_bp
from app.proofwall.modules.moderation.routes import bp as moderation_bp

CORS_ALLOW_HEADERS = ["content-type", "x-admin-token"]
CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False  # type: ignore[attr-defined]

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("ADMIN_TOKEN"):
            raise RuntimeError("ADMIN_TOKEN must be set in production.")

    init_db(app)
    init_admin_gate(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Order matters: the request id must exist before the gate logs a denial.
    app.before_request(assign_request_id)
    app.before_request(guard_admin_prefix)

    origins = app.config.get("CORS_ORIGINS") or []
    CORS(
        app,
        origins="*" if "*" in origins else origins,
        allow_headers=CORS_ALLOW_HEADERS,
        methods=CORS_ALLOW_METHODS,
    )

    app.register_blueprint(routes_bp)
    app.register_blueprint(moderation_bp)
    app.register_blueprint(moderation_admin_bp)

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(ProofWallError)
    def _err_proofwall(e: ProofWallError):  # type: ignore[no-redef]
        if isinstance(e, StorageError):
            app.logger.error(
                "Storage failure (request_id=%s): %s", getattr(g, "request_id", None), e.message, exc_info=e
            )
            return {"error": e.public_message}, e.status_code
        return {"error": e.message}, e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _err_db(e: SQLAlchemyError):  # type: ignore[no-redef]
        # Commit-time failures surface here rather than through storage_guard.
        app.logger.exception("Unhandled DB error (request_id=%s)", getattr(g, "request_id", None))
        return {"error": StorageError.public_message}, 500

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        if (e.code or 500) >= 500:
            app.logger.exception("Unhandled %s (request_id=%s)", e.code, getattr(g, "request_id", None))
            return {"error": "Internal server error"}, e.code
        return {"error": e.name}, e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return {"error": "Internal server error"}, 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
