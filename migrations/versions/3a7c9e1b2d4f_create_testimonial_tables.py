"""create creators, forms, submissions and audit tables

Revision ID: 3a7c9e1b2d4f
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "3a7c9e1b2d4f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in insp.get_indexes(table))
        except Exception:
            return False

    if "creators" not in existing_tables:
        op.create_table(
            "creators",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )
        existing_tables.add("creators")

    if "forms" not in existing_tables:
        op.create_table(
            "forms",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("creator_id", sa.Integer(), nullable=False),
            sa.Column("slug", sa.String(length=255), nullable=False),
            sa.Column("title", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.ForeignKeyConstraint(["creator_id"], ["creators.id"]),
            sa.UniqueConstraint("slug", name="uq_forms_slug"),
        )
        existing_tables.add("forms")

    if "submissions" not in existing_tables:
        op.create_table(
            "submissions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("form_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("role", sa.Text(), nullable=True),
            sa.Column("company", sa.Text(), nullable=True),
            sa.Column("quote", sa.Text(), nullable=False),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("approved_at", sa.DateTime(timezone=False), nullable=True),
            sa.ForeignKeyConstraint(["form_id"], ["forms.id"]),
        )
        existing_tables.add("submissions")

    if "submissions" in existing_tables:
        for idx_name, cols in (
            ("idx_submissions_form_created", ["form_id", "created_at"]),
            ("idx_submissions_form_approved", ["form_id", "approved_at"]),
        ):
            if not _has_index("submissions", idx_name):
                op.create_index(idx_name, "submissions", cols)

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("actor", sa.String(length=64), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )


def downgrade() -> None:
    op.drop_table("audit_events")

    op.drop_index("idx_submissions_form_approved", table_name="submissions")
    op.drop_index("idx_submissions_form_created", table_name="submissions")
    op.drop_table("submissions")

    op.drop_table("forms")
    op.drop_table("creators")
