from __future__ import annotations

import hmac
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from flask import Flask, current_app, g, request

from app.proofwall.errors import AuthorizationError

ADMIN_TOKEN_HEADER = "X-Admin-Token"
ADMIN_PATH_PREFIX = "/admin"


@dataclass(frozen=True)
class AdminGate:
    """
    Shared-secret gate for admin routes.

    An empty secret denies everything; there is no "auth disabled" mode.
    """

    secret: str = field(repr=False)

    def admits(self, credential: str | None) -> bool:
        if not self.secret or credential is None:
            return False
        return hmac.compare_digest(credential.encode("utf-8"), self.secret.encode("utf-8"))

    def check(self, credential: str | None) -> None:
        if not self.admits(credential):
            raise AuthorizationError()


def init_admin_gate(app: Flask) -> AdminGate:
    gate = AdminGate(secret=app.config.get("ADMIN_TOKEN") or "")
    if not gate.secret:
        app.logger.warning("ADMIN_TOKEN is not set; all admin requests will be rejected.")
    app.extensions["admin_gate"] = gate
    return gate


def assign_request_id() -> None:
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex


def enforce_admin() -> None:
    """Raise AuthorizationError unless the current request carries the admin secret."""
    gate: AdminGate = current_app.extensions["admin_gate"]
    try:
        gate.check(request.headers.get(ADMIN_TOKEN_HEADER))
    except AuthorizationError:
        # Never log the presented value.
        current_app.logger.warning(
            "Admin request denied: method=%s path=%s request_id=%s",
            request.method,
            request.path,
            getattr(g, "request_id", None),
        )
        raise


def guard_admin_prefix() -> None:
    """before_request hook: every /admin path is gated, known route or not."""
    if request.method == "OPTIONS":
        return None
    path = request.path
    if path == ADMIN_PATH_PREFIX or path.startswith(ADMIN_PATH_PREFIX + "/"):
        enforce_admin()
    return None


def require_admin(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Gate a single route that lives outside the /admin prefix."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        enforce_admin()
        return fn(*args, **kwargs)

    return wrapped
