"""Tests for the moderation engine (service layer, no HTTP)."""
from datetime import datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.proofwall import create_app
from app.proofwall.db import session_scope
from app.proofwall.errors import ConflictError, NotFoundError, StorageError, ValidationError
from app.proofwall.models import AuditEvent, Base
from app.proofwall.modules.moderation import service
from app.proofwall.modules.moderation.models import STATUS_APPROVED, STATUS_PENDING, Creator, Form, Submission
from app.proofwall.modules.moderation.service import (
    approve_submission,
    can_transition,
    get_form,
    get_wall,
    list_submissions,
    parse_submission_id,
    register_form,
    submit_testimonial,
)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_TOKEN", "svc-token")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def demo(app):
    with session_scope(app) as s:
        form, _creator = register_form(s, creator_name="Ava", title="Ava's Studio", slug="demo")
        return form.id


def _count(app, model) -> int:
    with session_scope(app) as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


def _submit(app, name="Taylor", quote="Great product", **extra) -> int:
    with session_scope(app) as s:
        return submit_testimonial(s, "demo", name=name, quote=quote, **extra).id


class TestStateMachine:
    def test_only_pending_to_approved(self):
        assert can_transition(STATUS_PENDING, STATUS_APPROVED) is True
        assert can_transition(STATUS_APPROVED, STATUS_APPROVED) is False
        assert can_transition(STATUS_APPROVED, STATUS_PENDING) is False

    def test_status_follows_approved_at(self):
        sub = Submission(form_id=1, name="n", quote="q")
        assert sub.status == STATUS_PENDING
        sub.approved_at = datetime(2026, 1, 1)
        assert sub.status == STATUS_APPROVED


class TestParseSubmissionId:
    @pytest.mark.parametrize("raw,expected", [("7", 7), (" 12 ", 12), (3, 3)])
    def test_valid(self, raw, expected):
        assert parse_submission_id(raw) == expected

    @pytest.mark.parametrize("raw", ["0", "-1", "abc", "1.5", "", None, 0, -4, True])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            parse_submission_id(raw)


class TestRegisterForm:
    def test_creates_creator_and_form(self, app):
        with session_scope(app) as s:
            form, creator = register_form(s, creator_name=" Ava ", title="Studio", slug="studio")
            assert form.creator_id == creator.id
            assert creator.name == "Ava"
            assert form.slug == "studio"
        assert _count(app, Creator) == 1
        assert _count(app, Form) == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {"creator_name": "", "title": "t", "slug": "s"},
            {"creator_name": "a", "title": None, "slug": "s"},
            {"creator_name": "a", "title": "t", "slug": "   "},
        ],
    )
    def test_missing_fields(self, app, payload):
        with pytest.raises(ValidationError):
            with session_scope(app) as s:
                register_form(s, **payload)
        assert _count(app, Creator) == 0

    def test_duplicate_slug_conflicts_without_new_creator(self, app, demo):
        with pytest.raises(ConflictError):
            with session_scope(app) as s:
                register_form(s, creator_name="Other", title="Other", slug="demo")
        assert _count(app, Creator) == 1
        assert _count(app, Form) == 1

    def test_unique_constraint_race_rolls_back_creator(self, app, demo, monkeypatch):
        # Simulate losing the race: the pre-check misses, the insert hits the constraint.
        monkeypatch.setattr(service, "_slug_taken", lambda s, slug: False)
        with pytest.raises(ConflictError):
            with session_scope(app) as s:
                register_form(s, creator_name="Racer", title="Race", slug="demo")
        assert _count(app, Creator) == 1


class TestUnknownSlug:
    def test_every_slug_operation_is_not_found(self, app):
        with session_scope(app) as s:
            with pytest.raises(NotFoundError):
                get_form(s, "ghost")
            with pytest.raises(NotFoundError):
                submit_testimonial(s, "ghost", name="n", quote="q")
            with pytest.raises(NotFoundError):
                list_submissions(s, "ghost")
            with pytest.raises(NotFoundError):
                get_wall(s, "ghost")

    def test_list_without_slug_is_validation_error(self, app):
        with session_scope(app) as s:
            with pytest.raises(ValidationError):
                list_submissions(s, None)


class TestSubmitTestimonial:
    def test_get_form_includes_creator_name(self, app, demo):
        with session_scope(app) as s:
            form, creator_name = get_form(s, "demo")
        assert form.id == demo
        assert creator_name == "Ava"

    def test_creates_pending_submission(self, app, demo):
        with session_scope(app) as s:
            sub = submit_testimonial(s, "demo", name="Taylor", quote="Great product", role="", email="t@x.co")
            assert sub.approved_at is None
            assert sub.status == STATUS_PENDING
            assert sub.form_id == demo
            assert sub.role is None
            assert sub.email == "t@x.co"

    def test_empty_quote_creates_nothing(self, app, demo):
        with pytest.raises(ValidationError):
            with session_scope(app) as s:
                submit_testimonial(s, "demo", name="Taylor", quote="")
        assert _count(app, Submission) == 0

    def test_missing_name(self, app, demo):
        with pytest.raises(ValidationError):
            with session_scope(app) as s:
                submit_testimonial(s, "demo", name="  ", quote="Nice")
        assert _count(app, Submission) == 0


class TestModerationFlow:
    def test_wall_hidden_until_approved(self, app, demo):
        sid = _submit(app)

        with session_scope(app) as s:
            rows, form = get_wall(s, "demo")
            assert rows == []
            assert form.slug == "demo"

        with session_scope(app) as s:
            approve_submission(s, sid)

        with session_scope(app) as s:
            rows, _form = get_wall(s, "demo")
            assert [r.id for r in rows] == [sid]

    def test_queue_includes_pending_newest_first(self, app, demo):
        first = _submit(app, name="First")
        second = _submit(app, name="Second")
        with session_scope(app) as s:
            approve_submission(s, first)
        with session_scope(app) as s:
            rows, form = list_submissions(s, "demo")
            assert [r.id for r in rows] == [second, first]
            assert form.id == demo

    def test_approve_is_a_latch(self, app, demo, monkeypatch):
        sid = _submit(app)
        t1 = datetime(2026, 3, 1, 12, 0, 0)
        t2 = datetime(2026, 3, 2, 12, 0, 0)

        monkeypatch.setattr(service, "utcnow", lambda: t1)
        with session_scope(app) as s:
            assert approve_submission(s, sid).approved_at == t1

        monkeypatch.setattr(service, "utcnow", lambda: t2)
        with session_scope(app) as s:
            assert approve_submission(s, str(sid)).approved_at == t1

        with session_scope(app) as s:
            assert s.get(Submission, sid).approved_at == t1
            approvals = (
                s.execute(select(func.count()).select_from(AuditEvent).where(AuditEvent.action == "submission.approve"))
                .scalar_one()
            )
            assert approvals == 1

    def test_conditional_update_protects_first_approval(self, app, demo, monkeypatch):
        sid = _submit(app)
        t1 = datetime(2026, 1, 1, 9, 0, 0)
        t2 = datetime(2027, 1, 1, 9, 0, 0)

        monkeypatch.setattr(service, "utcnow", lambda: t1)
        with session_scope(app) as s:
            approve_submission(s, sid)

        # A second approver that read the row while it was still pending.
        monkeypatch.setattr(service, "can_transition", lambda current, target: True)
        monkeypatch.setattr(service, "utcnow", lambda: t2)
        with session_scope(app) as s:
            assert approve_submission(s, sid).approved_at == t1

        with session_scope(app) as s:
            assert s.get(Submission, sid).approved_at == t1
            approvals = (
                s.execute(select(func.count()).select_from(AuditEvent).where(AuditEvent.action == "submission.approve"))
                .scalar_one()
            )
            # The audit row is written only when the UPDATE matched a row.
            assert approvals == 1

    def test_wall_orders_by_approval_time(self, app, demo, monkeypatch):
        older = _submit(app, name="Older")
        newer = _submit(app, name="Newer")

        # Approve the newer submission first so approval order differs from creation order.
        monkeypatch.setattr(service, "utcnow", lambda: datetime(2026, 5, 1))
        with session_scope(app) as s:
            approve_submission(s, newer)
        monkeypatch.setattr(service, "utcnow", lambda: datetime(2026, 5, 2))
        with session_scope(app) as s:
            approve_submission(s, older)

        with session_scope(app) as s:
            rows, _form = get_wall(s, "demo")
            assert [r.id for r in rows] == [older, newer]

    def test_wall_is_scoped_to_form(self, app, demo):
        with session_scope(app) as s:
            register_form(s, creator_name="Bo", title="Bo's Shop", slug="bo")
        with session_scope(app) as s:
            other = submit_testimonial(s, "bo", name="X", quote="Y").id
        with session_scope(app) as s:
            approve_submission(s, other)
        with session_scope(app) as s:
            rows, _form = get_wall(s, "demo")
            assert rows == []

    def test_approve_unknown_id(self, app, demo):
        with session_scope(app) as s:
            with pytest.raises(NotFoundError):
                approve_submission(s, 999)
            with pytest.raises(NotFoundError):
                approve_submission(s, 2**40)

    def test_approve_invalid_id(self, app):
        with session_scope(app) as s:
            with pytest.raises(ValidationError):
                approve_submission(s, "0")


def test_gateway_failure_becomes_storage_error(app, demo, monkeypatch):
    def _boom(s, slug):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    monkeypatch.setattr(service, "_form_by_slug", _boom)
    with session_scope(app) as s:
        with pytest.raises(StorageError):
            get_wall(s, "demo")
