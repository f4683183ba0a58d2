"""Academy schema: courses, content tree, entitlements, progress, quizzes.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the four enum types first; the tables reference them with
create_type=False, matching academy/enums.py.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


quiz_status = postgresql.ENUM(
    "not_started", "passed", "failed", name="quiz_status", create_type=False
)
access_status = postgresql.ENUM(
    "none", "active", "expired", "revoked", name="access_status", create_type=False
)
granted_via = postgresql.ENUM(
    "access_code", "purchase", "admin", name="granted_via", create_type=False
)
completion_status = postgresql.ENUM(
    "completed", name="completion_status", create_type=False
)


def _timestamp(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.TIMESTAMP(timezone=True), **kwargs)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (quiz_status, access_status, granted_via, completion_status):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("short_description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_courses"),
        sa.UniqueConstraint("slug", name="uq_courses_slug"),
    )

    op.create_table(
        "chapters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_chapters"),
    )
    op.create_index(
        "idx_chapters_course_order", "chapters", ["course_id", "sort_order"]
    )

    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "chapter_id",
            sa.Integer(),
            sa.ForeignKey("chapters.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("subtitle", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_sections"),
    )
    op.create_index(
        "idx_sections_chapter_order", "sections", ["chapter_id", "sort_order"]
    )

    op.create_table(
        "subsections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "section_id",
            sa.Integer(),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content_html", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "quiz_required", sa.Boolean(), server_default="false", nullable=False
        ),
        sa.Column(
            "quiz_pass_score", sa.Integer(), server_default="70", nullable=False
        ),
        sa.PrimaryKeyConstraint("id", name="pk_subsections"),
        sa.CheckConstraint(
            "quiz_pass_score BETWEEN 0 AND 100",
            name="ck_subsections_valid_quiz_pass_score",
        ),
    )
    op.create_index(
        "idx_subsections_section_order", "subsections", ["section_id", "sort_order"]
    )

    op.create_table(
        "access_codes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("expires_at", nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_access_codes"),
        sa.UniqueConstraint("code", name="uq_access_codes_code"),
    )

    op.create_table(
        "customer_course_access",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", access_status, nullable=False),
        sa.Column("granted_via", granted_via, nullable=False),
        sa.Column(
            "access_code_id",
            sa.Integer(),
            sa.ForeignKey("access_codes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("expires_at", nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_customer_course_access"),
        sa.UniqueConstraint(
            "customer_id", "course_id", name="uq_customer_course_access_customer_id"
        ),
    )
    op.create_index(
        "idx_customer_course_access_customer",
        "customer_course_access",
        ["customer_id"],
    )

    op.create_table(
        "access_code_usages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "access_code_id",
            sa.Integer(),
            sa.ForeignKey("access_codes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        _timestamp("used_at", server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_access_code_usages"),
        sa.UniqueConstraint(
            "access_code_id",
            "customer_id",
            name="uq_access_code_usages_access_code_id",
        ),
    )

    op.create_table(
        "customer_subsection_progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column(
            "subsection_id",
            sa.Integer(),
            sa.ForeignKey("subsections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", completion_status, nullable=False),
        _timestamp("completed_at", server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_customer_subsection_progress"),
        sa.UniqueConstraint(
            "customer_id",
            "subsection_id",
            name="uq_customer_subsection_progress_customer_id",
        ),
    )
    op.create_index(
        "idx_customer_subsection_progress_customer",
        "customer_subsection_progress",
        ["customer_id"],
    )

    op.create_table(
        "customer_subsection_quiz_status",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column(
            "subsection_id",
            sa.Integer(),
            sa.ForeignKey("subsections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", quiz_status, nullable=False),
        sa.Column("score", sa.Integer(), server_default="0", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        _timestamp("last_attempt_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_customer_subsection_quiz_status"),
        sa.UniqueConstraint(
            "customer_id",
            "subsection_id",
            name="uq_customer_subsection_quiz_status_customer_id",
        ),
        sa.CheckConstraint(
            "score BETWEEN 0 AND 100",
            name="ck_customer_subsection_quiz_status_valid_score",
        ),
    )
    op.create_index(
        "idx_customer_subsection_quiz_status_customer",
        "customer_subsection_quiz_status",
        ["customer_id"],
    )

    op.create_table(
        "subsection_quiz_questions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "subsection_id",
            sa.Integer(),
            sa.ForeignKey("subsections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("prompt_html", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_subsection_quiz_questions"),
    )
    op.create_index(
        "idx_subsection_quiz_questions_subsection",
        "subsection_quiz_questions",
        ["subsection_id"],
    )

    op.create_table(
        "subsection_quiz_options",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "question_id",
            sa.Integer(),
            sa.ForeignKey("subsection_quiz_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text_html", sa.Text(), server_default="", nullable=False),
        sa.Column("is_correct", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_subsection_quiz_options"),
    )
    op.create_index(
        "idx_subsection_quiz_options_question",
        "subsection_quiz_options",
        ["question_id"],
    )


def downgrade() -> None:
    for table in (
        "subsection_quiz_options",
        "subsection_quiz_questions",
        "customer_subsection_quiz_status",
        "customer_subsection_progress",
        "access_code_usages",
        "customer_course_access",
        "access_codes",
        "subsections",
        "sections",
        "chapters",
        "courses",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (completion_status, granted_via, access_status, quiz_status):
        enum_type.drop(bind, checkfirst=True)
