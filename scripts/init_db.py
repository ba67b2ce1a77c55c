"""
Reset and seed the demo testimonial form.

Maintenance path only: it deletes the existing "demo" form with its creator and
submissions before recreating them, which the API never does.

Usage:
  python scripts/init_db.py [--create-tables]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete, select

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.proofwall.models import Base, utcnow  # noqa: E402
from app.proofwall.modules.moderation.models import Creator, Form, Submission  # noqa: E402
from scripts._db_utils import create_script_engine, resolve_db_url, script_session  # noqa: E402

DEMO_SLUG = "demo"

DEMO_SUBMISSIONS = (
    {
        "name": "Taylor Gray",
        "role": "Founder",
        "company": "Acme",
        "quote": "ProofWall helped us turn happy customers into an always-on sales page.",
        "email": "taylor@acme.co",
        "approved": True,
    },
    {
        "name": "Jordan Lee",
        "role": "Course Creator",
        "company": "Growth Lab",
        "quote": "The intake form is clean and we shipped a testimonial wall in days.",
        "email": "jordan@growthlab.co",
        "approved": False,
    },
)


def seed_demo(*, database_url: str | None = None, slug: str = DEMO_SLUG) -> int:
    """
    Recreate the demo form. Returns the new form id.
    """
    db_url = resolve_db_url(database_url)

    with script_session(db_url) as s:
        existing = s.execute(select(Form).where(Form.slug == slug)).scalar_one_or_none()
        if existing:
            s.execute(delete(Submission).where(Submission.form_id == existing.id))
            s.execute(delete(Form).where(Form.id == existing.id))
            s.execute(delete(Creator).where(Creator.id == existing.creator_id))
            s.flush()

        creator = Creator(name="Ava Hart")
        s.add(creator)
        s.flush()
        form = Form(creator_id=creator.id, title="Ava's Creator Studio", slug=slug)
        s.add(form)
        s.flush()

        for row in DEMO_SUBMISSIONS:
            s.add(
                Submission(
                    form_id=form.id,
                    name=row["name"],
                    role=row["role"],
                    company=row["company"],
                    quote=row["quote"],
                    email=row["email"],
                    approved_at=utcnow() if row["approved"] else None,
                )
            )
        s.flush()
        return form.id


def main() -> None:
    ap = argparse.ArgumentParser(description="Reset and seed the demo testimonial form.")
    ap.add_argument("--create-tables", action="store_true", help="Create tables directly (dev only; prod uses alembic).")
    args = ap.parse_args()

    db_url = resolve_db_url()
    if args.create_tables:
        engine = create_script_engine(db_url)
        Base.metadata.create_all(bind=engine)
        engine.dispose()

    try:
        form_id = seed_demo(database_url=db_url)
    except Exception as e:
        print(f"Seed failed: {e}", flush=True)
        sys.exit(1)
    print(f"Seed complete (form_id={form_id}).", flush=True)


if __name__ == "__main__":
    main()
