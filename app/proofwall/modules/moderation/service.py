from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.proofwall.audit import record_event
from app.proofwall.db import storage_guard
from app.proofwall.errors import ConflictError, NotFoundError, ValidationError
from app.proofwall.models import utcnow
from app.proofwall.modules.moderation.models import (
    STATUS_APPROVED,
    STATUS_PENDING,
    Creator,
    Form,
    Submission,
)

logger = logging.getLogger(__name__)

ADMIN_ACTOR = "admin"
# Integer primary keys; larger ids cannot exist in any backend.
MAX_ID = 2**31 - 1

# pending -> approved is the only edge; approved is terminal.
TRANSITIONS: dict[str, tuple[str, ...]] = {
    STATUS_PENDING: (STATUS_APPROVED,),
    STATUS_APPROVED: (),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


def normalize_text(value: Any, *, error: str = "Invalid request") -> str | None:
    """Strip a JSON text field. Numbers, booleans, lists and objects are rejected, not stringified."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(error)
    text = value.strip()
    return text or None


def _form_by_slug(s: Session, slug: Any) -> Form:
    # Path slugs match exactly; only registration trims.
    if not isinstance(slug, str) or not slug:
        raise NotFoundError("Form not found")
    form = s.execute(select(Form).where(Form.slug == slug)).scalar_one_or_none()
    if form is None:
        raise NotFoundError("Form not found")
    return form


def _slug_taken(s: Session, slug: str) -> bool:
    return s.execute(select(Form.id).where(Form.slug == slug)).scalar_one_or_none() is not None


def parse_submission_id(raw: Any) -> int:
    """Accept positive integers (or their decimal string form) only."""
    if isinstance(raw, bool):
        raise ValidationError("Invalid id")
    if isinstance(raw, int):
        value = raw
    else:
        text = normalize_text(raw, error="Invalid id") or ""
        if not (text.isascii() and text.isdecimal()):
            raise ValidationError("Invalid id")
        value = int(text)
    if value <= 0:
        raise ValidationError("Invalid id")
    return value


@storage_guard
def register_form(s: Session, *, creator_name: Any, title: Any, slug: Any) -> tuple[Form, Creator]:
    """
    Create a Creator and its Form as one unit.

    Nothing is committed here; the caller commits. On a slug collision the
    session is rolled back, so the Creator row is discarded together with the Form.
    """
    required = "creatorName, title, and slug are required"
    creator_name = normalize_text(creator_name, error=required)
    title = normalize_text(title, error=required)
    slug = normalize_text(slug, error=required)
    if not creator_name or not title or not slug:
        raise ValidationError(required)

    if _slug_taken(s, slug):
        raise ConflictError("Slug already exists")

    creator = Creator(name=creator_name)
    s.add(creator)
    try:
        s.flush()
        form = Form(creator_id=creator.id, title=title, slug=slug)
        s.add(form)
        s.flush()
    except IntegrityError:
        # Lost a race with another registration for the same slug.
        s.rollback()
        logger.info("Slug conflict on insert (slug=%s)", slug)
        raise ConflictError("Slug already exists") from None

    record_event(
        s,
        actor=ADMIN_ACTOR,
        action="form.register",
        entity_type="Form",
        entity_id=str(form.id),
        metadata={"slug": form.slug, "creator_id": creator.id},
    )
    return form, creator


@storage_guard
def get_form(s: Session, slug: Any) -> tuple[Form, str]:
    """Return (form, creator display name) for public form metadata."""
    if not isinstance(slug, str) or not slug:
        raise NotFoundError("Form not found")
    row = s.execute(
        select(Form, Creator.name)
        .join(Creator, Form.creator_id == Creator.id)
        .where(Form.slug == slug)
    ).one_or_none()
    if row is None:
        raise NotFoundError("Form not found")
    return row[0], row[1]


@storage_guard
def submit_testimonial(
    s: Session,
    slug: Any,
    *,
    name: Any,
    quote: Any,
    role: Any = None,
    company: Any = None,
    email: Any = None,
) -> Submission:
    form = _form_by_slug(s, slug)

    required = "name and quote are required"
    name = normalize_text(name, error=required)
    quote = normalize_text(quote, error=required)
    if not name or not quote:
        raise ValidationError(required)

    submission = Submission(
        form_id=form.id,
        name=name,
        quote=quote,
        role=normalize_text(role, error="role must be text"),
        company=normalize_text(company, error="company must be text"),
        email=normalize_text(email, error="email must be text"),
        approved_at=None,
    )
    s.add(submission)
    s.flush()

    record_event(
        s,
        actor=None,
        action="submission.create",
        entity_type="Submission",
        entity_id=str(submission.id),
        metadata={"form_id": form.id},
    )
    return submission


@storage_guard
def list_submissions(s: Session, slug: Any) -> tuple[list[Submission], Form]:
    """Moderation queue: every submission for the form, newest first."""
    if not slug:
        raise ValidationError("slug is required")
    form = _form_by_slug(s, slug)
    rows = (
        s.execute(
            select(Submission)
            .where(Submission.form_id == form.id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
        )
        .scalars()
        .all()
    )
    return list(rows), form


@storage_guard
def approve_submission(s: Session, submission_id: Any) -> Submission:
    """
    Latch a submission into the approved state.

    The UPDATE only matches rows whose approved_at is still NULL, so two
    concurrent approvals cannot both write and a repeat call keeps the
    original timestamp.
    """
    sid = parse_submission_id(submission_id)
    if sid > MAX_ID:
        raise NotFoundError("Submission not found")

    submission = s.get(Submission, sid)
    if submission is None:
        raise NotFoundError("Submission not found")
    if not can_transition(submission.status, STATUS_APPROVED):
        return submission

    result = s.execute(
        update(Submission)
        .where(Submission.id == sid, Submission.approved_at.is_(None))
        .values(approved_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    submission = s.get(Submission, sid, populate_existing=True)
    if submission is None:
        raise NotFoundError("Submission not found")

    if result.rowcount == 1:
        record_event(
            s,
            actor=ADMIN_ACTOR,
            action="submission.approve",
            entity_type="Submission",
            entity_id=str(submission.id),
            metadata={"form_id": submission.form_id},
        )
    return submission


@storage_guard
def get_wall(s: Session, slug: Any) -> tuple[list[Submission], Form]:
    """Public wall: approved submissions only, most recently approved first."""
    form = _form_by_slug(s, slug)
    rows = (
        s.execute(
            select(Submission)
            .where(Submission.form_id == form.id, Submission.approved_at.is_not(None))
            .order_by(Submission.approved_at.desc(), Submission.id.desc())
        )
        .scalars()
        .all()
    )
    return list(rows), form
