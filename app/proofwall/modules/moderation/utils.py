from __future__ import annotations

from datetime import datetime
from typing import Any

from app.proofwall.modules.moderation.models import Creator, Form, Submission


def iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds") + "Z"


def creator_json(c: Creator) -> dict[str, Any]:
    return {"id": c.id, "name": c.name, "createdAt": iso(c.created_at)}


def form_json(f: Form) -> dict[str, Any]:
    return {
        "id": f.id,
        "creatorId": f.creator_id,
        "slug": f.slug,
        "title": f.title,
        "createdAt": iso(f.created_at),
    }


def public_form_json(f: Form, creator_name: str) -> dict[str, Any]:
    """Form metadata shown above the public intake form."""
    return {"id": f.id, "title": f.title, "slug": f.slug, "creatorName": creator_name}


def submission_json(sub: Submission) -> dict[str, Any]:
    return {
        "id": sub.id,
        "formId": sub.form_id,
        "name": sub.name,
        "role": sub.role,
        "company": sub.company,
        "quote": sub.quote,
        "email": sub.email,
        "createdAt": iso(sub.created_at),
        "approvedAt": iso(sub.approved_at),
        "status": sub.status,
    }


def json_body(req) -> dict[str, Any]:
    """Request JSON as a dict; malformed or non-object bodies read as empty."""
    data = req.get_json(silent=True)
    return data if isinstance(data, dict) else {}
