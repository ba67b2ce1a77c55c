from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.proofwall.auth import require_admin
from app.proofwall.db import db_session
from app.proofwall.modules.moderation.service import approve_submission, list_submissions, register_form
from app.proofwall.modules.moderation.utils import creator_json, form_json, json_body, submission_json

bp = Blueprint("moderation_admin", __name__)


# ---------- Forms ----------
@bp.post("/forms")
@require_admin
def forms_create():
    s = db_session()
    payload = json_body(request)
    form, creator = register_form(
        s,
        creator_name=payload.get("creatorName"),
        title=payload.get("title"),
        slug=payload.get("slug"),
    )
    s.commit()
    current_app.logger.info("Form registered slug=%s request_id=%s", form.slug, getattr(g, "request_id", None))
    return {"form": form_json(form), "creator": creator_json(creator)}


# ---------- Moderation queue ----------
# /admin/* is also gated app-wide in create_app(); the decorator keeps each
# view safe if it is ever mounted elsewhere.
@bp.get("/admin/submissions")
@require_admin
def submissions_list():
    s = db_session()
    rows, form = list_submissions(s, request.args.get("slug"))
    return {"submissions": [submission_json(r) for r in rows], "form": form_json(form)}


@bp.post("/admin/submissions/<submission_id>/approve")
@require_admin
def submission_approve(submission_id: str):
    s = db_session()
    submission = approve_submission(s, submission_id)
    s.commit()
    current_app.logger.info(
        "Submission approved id=%s request_id=%s", submission.id, getattr(g, "request_id", None)
    )
    return {"submission": submission_json(submission)}
