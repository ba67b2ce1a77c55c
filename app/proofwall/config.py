import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    env: str
    database_url: str
    admin_token: str
    cors_origins: str
    db_statement_timeout_ms: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).") from None


def load_settings() -> Settings:
    return Settings(
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///proofwall.db"),
        # Empty means "deny every admin request", never "admin is open".
        admin_token=_getenv("ADMIN_TOKEN", ""),
        cors_origins=_getenv("CORS_ORIGINS", "*"),
        db_statement_timeout_ms=_getenv_int("DB_STATEMENT_TIMEOUT_MS", 15000),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "ADMIN_TOKEN": s.admin_token,
        "CORS_ORIGINS": [o.strip() for o in s.cors_origins.split(",") if o.strip()],
        "DB_STATEMENT_TIMEOUT_MS": s.db_statement_timeout_ms,
        # intake bodies are small JSON documents
        "MAX_CONTENT_LENGTH": 64 * 1024,
    }
