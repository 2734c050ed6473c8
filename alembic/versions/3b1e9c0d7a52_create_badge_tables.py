"""create badge tables

Revision ID: 3b1e9c0d7a52
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c0d7a52"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "badges",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("image_path", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "requirements",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    # containment lookups by course_id / hackathon / requirement id
    op.create_index(
        "ix_badges_requirements",
        "badges",
        ["requirements"],
        postgresql_using="gin",
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hackathon_id", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "project_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.String(length=64),
            sa.ForeignKey("projects.id"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            server_default="Pending Confirmation",
        ),
    )
    op.create_index(
        "ix_project_members_project_id", "project_members", ["project_id"]
    )

    for table, subject_col, subject_fk in (
        ("user_badges", "user_id", None),
        ("project_badges", "project_id", "projects.id"),
    ):
        subject_args = [sa.ForeignKey(subject_fk)] if subject_fk else []
        op.create_table(
            table,
            sa.Column(
                subject_col, sa.String(length=64), *subject_args, primary_key=True
            ),
            sa.Column(
                "badge_id",
                sa.String(length=64),
                sa.ForeignKey("badges.id"),
                primary_key=True,
            ),
            sa.Column(
                "status", sa.String(length=16), nullable=False, server_default="pending"
            ),
            sa.Column(
                "evidence",
                postgresql.JSONB(),
                nullable=False,
                server_default=sa.text("'[]'::jsonb"),
            ),
            sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("awarded_by", sa.String(length=64), nullable=True),
            sa.Column(
                "requirements_version",
                sa.Integer(),
                nullable=False,
                server_default="1",
            ),
        )


def downgrade() -> None:
    op.drop_table("project_badges")
    op.drop_table("user_badges")
    op.drop_index("ix_project_members_project_id", table_name="project_members")
    op.drop_table("project_members")
    op.drop_table("projects")
    op.drop_index("ix_badges_requirements", table_name="badges")
    op.drop_table("badges")
