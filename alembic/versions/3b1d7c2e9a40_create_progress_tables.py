"""create catalog and progress tables

Revision ID: 3b1d7c2e9a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1d7c2e9a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "learning_materials",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("content_type", sa.String(length=32), nullable=False),
        sa.Column(
            "content_data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_table(
        "course_sections",
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "section_id",
            sa.Integer(),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "section_materials",
        sa.Column(
            "section_id",
            sa.Integer(),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "material_id",
            sa.String(length=64),
            sa.ForeignKey("learning_materials.id"),
            primary_key=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "student_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("learning_material_id", sa.String(length=64), nullable=False),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="not_started"
        ),
        sa.Column(
            "progress_percentage",
            sa.Numeric(5, 2),
            nullable=False,
            server_default="0",
        ),
        sa.Column("time_spent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score", sa.Numeric(5, 2), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "interaction_data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("started_at", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("last_accessed_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("student_id", "learning_material_id"),
    )
    op.create_index(
        "ix_student_progress_student_section",
        "student_progress",
        ["student_id", "section_id"],
    )
    op.create_index(
        "ix_student_progress_student_course",
        "student_progress",
        ["student_id", "course_id"],
    )

    op.create_table(
        "student_section_progress",
        sa.Column("student_id", sa.Integer(), primary_key=True),
        sa.Column("section_id", sa.Integer(), primary_key=True),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="not_started"
        ),
        sa.Column("started_at", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.Integer(), nullable=True),
    )
    op.create_table(
        "course_student",
        sa.Column("student_id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), primary_key=True),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="enrolled"
        ),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
    )

    op.create_table(
        "quiz_results",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.String(length=64), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("score", sa.Numeric(5, 2), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("time_taken", sa.Integer(), nullable=False),
        sa.Column(
            "answers",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "question_results",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("submitted_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("student_id", "material_id", "attempt_number"),
    )
    op.create_table(
        "assignment_submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.String(length=64), nullable=False),
        sa.Column("submission_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("file_path", sa.String(length=1024), nullable=True),
        sa.Column("original_filename", sa.String(length=255), nullable=True),
        sa.Column("url", sa.String(length=2048), nullable=True),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="submitted"
        ),
        sa.Column("grade", sa.Numeric(5, 2), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_assignment_submissions_student_material",
        "assignment_submissions",
        ["student_id", "material_id"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_assignment_submissions_student_material", table_name="assignment_submissions"
    )
    op.drop_table("assignment_submissions")
    op.drop_table("quiz_results")
    op.drop_table("course_student")
    op.drop_table("student_section_progress")
    op.drop_index("ix_student_progress_student_course", table_name="student_progress")
    op.drop_index("ix_student_progress_student_section", table_name="student_progress")
    op.drop_table("student_progress")
    op.drop_table("section_materials")
    op.drop_table("course_sections")
    op.drop_table("sections")
    op.drop_table("courses")
    op.drop_table("learning_materials")
