"""create progress schema

Revision ID: 3b7e0c2d9a41
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e0c2d9a41"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
    )

    op.create_table(
        "courses",
        _uuid("id", primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        _uuid("instructor_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "is_published", sa.Boolean(), nullable=False, server_default="false"
        ),
    )
    op.create_index("ix_courses_instructor_id", "courses", ["instructor_id"])

    op.create_table(
        "course_modules",
        _uuid("id", primary_key=True),
        _uuid("course_id", nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="pdf"),
    )
    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"])

    op.create_table(
        "enrollments",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("finished", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("user_id", "course_id"),
        sa.CheckConstraint(
            "progress >= 0 AND progress <= 100", name="progress_range"
        ),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])

    op.create_table(
        "module_completions",
        _uuid("user_id", sa.ForeignKey("users.id"), primary_key=True),
        _uuid("module_id", primary_key=True),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=False),
        sa.Column(
            "is_complete", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("completed_at", sa.Integer(), nullable=True),
    )
    op.create_index(
        "ix_module_completions_user_course",
        "module_completions",
        ["user_id", "course_id"],
    )

    op.create_table(
        "labs",
        _uuid("id", primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_time", sa.Integer(), nullable=True),
        sa.Column("end_time", sa.Integer(), nullable=True),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="scheduled"
        ),
    )

    op.create_table(
        "lab_grades",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("lab_id", sa.ForeignKey("labs.id"), nullable=False),
        sa.Column("grade", sa.Float(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        _uuid("graded_by", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("graded_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("user_id", "lab_id"),
    )
    op.create_index("ix_lab_grades_lab_id", "lab_grades", ["lab_id"])

    op.create_table(
        "certificates",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("course_id", sa.ForeignKey("courses.id"), nullable=True),
        _uuid("lab_id", sa.ForeignKey("labs.id"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="pending"
        ),
        sa.Column(
            "auto_generated", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("issued_at", sa.Integer(), nullable=False),
        _uuid("approved_by", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "course_id IS NULL OR lab_id IS NULL", name="single_certificate_subject"
        ),
    )
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"])
    op.create_index("ix_certificates_course_id", "certificates", ["course_id"])
    op.create_index("ix_certificates_lab_id", "certificates", ["lab_id"])
    op.create_index("ix_certificates_status", "certificates", ["status"])


def downgrade() -> None:
    op.drop_table("certificates")
    op.drop_table("lab_grades")
    op.drop_table("labs")
    op.drop_table("module_completions")
    op.drop_table("enrollments")
    op.drop_table("course_modules")
    op.drop_table("courses")
    op.drop_table("users")
