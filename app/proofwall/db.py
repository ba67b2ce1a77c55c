from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from typing import Any, TypeVar

from flask import Flask, g
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.proofwall.errors import StorageError

F = TypeVar("F", bound=Callable[..., Any])


def engine_kwargs_for(db_url: str, *, statement_timeout_ms: int = 0) -> dict[str, object]:
    is_postgres = db_url.startswith("postgres")
    kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if is_postgres:
        kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
        if statement_timeout_ms > 0:
            kwargs["connect_args"] = {"options": f"-c statement_timeout={int(statement_timeout_ms)}"}
    return kwargs


def init_db(app: Flask) -> None:
    db_url = app.config["DATABASE_URL"]
    engine = create_engine(
        db_url,
        **engine_kwargs_for(db_url, statement_timeout_ms=int(app.config.get("DB_STATEMENT_TIMEOUT_MS") or 0)),
    )
    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout from pool")
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session. Use inside request handlers.
    """
    if hasattr(g, "db_session") and g.db_session is not None:
        return g.db_session
    if app is None:
        from flask import current_app

        app = current_app
    sm = app.extensions["sqlalchemy_sessionmaker"]
    g.db_session = sm()  # type: ignore[assignment]
    return g.db_session


def teardown_db_session(_exc: BaseException | None) -> None:
    # Closing an uncommitted session rolls it back, so a request that dies
    # half-way never leaves a partial unit of work behind.
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        try:
            s.close()
        except SQLAlchemyError:
            from flask import current_app

            current_app.logger.exception("Failed to close request DB session")
        g.db_session = None


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for scripts and tests: yields a session and commits/rolls back.
    """
    sm = app.extensions["sqlalchemy_sessionmaker"]
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def storage_guard(fn: F) -> F:
    """
    Translate driver/ORM failures into StorageError.
    Engine-level errors (ValidationError etc.) pass through untouched.
    """

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as e:
            raise StorageError(f"{fn.__name__} failed: {e.__class__.__name__}") from e

    return wrapped  # type: ignore[return-value]
