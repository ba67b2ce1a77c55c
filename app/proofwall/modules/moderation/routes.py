from __future__ import annotations

from flask import Blueprint, request

from app.proofwall.db import db_session
from app.proofwall.modules.moderation.service import get_form, get_wall, submit_testimonial
from app.proofwall.modules.moderation.utils import (
    form_json,
    json_body,
    public_form_json,
    submission_json,
)

bp = Blueprint("moderation", __name__)


@bp.get("/forms/<slug>")
def form_detail(slug: str):
    s = db_session()
    form, creator_name = get_form(s, slug)
    return {"form": public_form_json(form, creator_name)}


@bp.post("/forms/<slug>/submissions")
def submission_create(slug: str):
    s = db_session()
    payload = json_body(request)
    submission = submit_testimonial(
        s,
        slug,
        name=payload.get("name"),
        quote=payload.get("quote"),
        role=payload.get("role"),
        company=payload.get("company"),
        email=payload.get("email"),
    )
    s.commit()
    return {"submission": submission_json(submission)}


@bp.get("/wall/<slug>")
def wall(slug: str):
    s = db_session()
    rows, form = get_wall(s, slug)
    return {"submissions": [submission_json(r) for r in rows], "form": form_json(form)}
