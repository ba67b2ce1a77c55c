from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.proofwall.config import load_settings
from app.proofwall.db import engine_kwargs_for


def resolve_db_url(database_url: str | None = None) -> str:
    """Explicit URL first, then DATABASE_URL (same default as the app)."""
    return (database_url or "").strip() or load_settings().database_url


def create_script_engine(db_url: str | None = None) -> Engine:
    """Engine with the app's pool options and, on Postgres, DB_STATEMENT_TIMEOUT_MS."""
    url = resolve_db_url(db_url)
    timeout_ms = load_settings().db_statement_timeout_ms
    return create_engine(url, **engine_kwargs_for(url, statement_timeout_ms=timeout_ms))


@contextmanager
def script_session(db_url: str | None = None) -> Iterator[Session]:
    """One unit of work for a maintenance script: commit on success, roll back on error."""
    engine = create_script_engine(db_url)
    s: Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
