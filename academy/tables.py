"""SQLAlchemy Core table definitions for the academy schema."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP

from .enums import (
    access_status_enum,
    completion_status_enum,
    granted_via_enum,
    quiz_status_enum,
)

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. COURSES
# =====================================================
courses = Table(
    "courses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", Text, nullable=False, unique=True),
    Column("title", Text, nullable=False),
    Column("short_description", Text),
    Column("is_active", Boolean, server_default="true", nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 2. CHAPTERS / SECTIONS / SUBSECTIONS
# Ordering key is (sort_order, id) at every level.
# =====================================================
chapters = Table(
    "chapters",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("sort_order", Integer, server_default="0", nullable=False),
    Index("idx_chapters_course_order", "course_id", "sort_order"),
)

sections = Table(
    "sections",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "chapter_id",
        Integer,
        ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("subtitle", Text),
    Column("sort_order", Integer, server_default="0", nullable=False),
    Index("idx_sections_chapter_order", "chapter_id", "sort_order"),
)

subsections = Table(
    "subsections",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "section_id",
        Integer,
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("content_html", Text),
    Column("sort_order", Integer, server_default="0", nullable=False),
    Column("quiz_required", Boolean, server_default="false", nullable=False),
    Column("quiz_pass_score", Integer, server_default="70", nullable=False),
    Index("idx_subsections_section_order", "section_id", "sort_order"),
    CheckConstraint(
        "quiz_pass_score BETWEEN 0 AND 100", name="valid_quiz_pass_score"
    ),
)


# =====================================================
# 3. ENTITLEMENTS
# customer_id references the external customer store (no FK, no cascade)
# =====================================================
customer_course_access = Table(
    "customer_course_access",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", Integer, nullable=False),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", access_status_enum, nullable=False),
    Column("granted_via", granted_via_enum, nullable=False),
    Column(
        "access_code_id",
        Integer,
        ForeignKey("access_codes.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("expires_at", TIMESTAMP(timezone=True)),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("customer_id", "course_id"),
    Index("idx_customer_course_access_customer", "customer_id"),
)

access_codes = Table(
    "access_codes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("code", Text, nullable=False, unique=True),
    Column(
        "course_id",
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=True,
    ),
    Column("is_active", Boolean, server_default="true", nullable=False),
    Column("max_uses", Integer, nullable=True),  # NULL = unlimited
    Column("used_count", Integer, server_default="0", nullable=False),
    Column("expires_at", TIMESTAMP(timezone=True)),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)

access_code_usages = Table(
    "access_code_usages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "access_code_id",
        Integer,
        ForeignKey("access_codes.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("customer_id", Integer, nullable=False),
    Column("used_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("access_code_id", "customer_id"),
)


# =====================================================
# 4. PROGRESS
# One row per (customer, subsection); rows are upserted, never deleted.
# =====================================================
customer_subsection_progress = Table(
    "customer_subsection_progress",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", Integer, nullable=False),
    Column(
        "subsection_id",
        Integer,
        ForeignKey("subsections.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", completion_status_enum, nullable=False),
    Column(
        "completed_at",
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    ),
    UniqueConstraint("customer_id", "subsection_id"),
    Index("idx_customer_subsection_progress_customer", "customer_id"),
)

customer_subsection_quiz_status = Table(
    "customer_subsection_quiz_status",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", Integer, nullable=False),
    Column(
        "subsection_id",
        Integer,
        ForeignKey("subsections.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("status", quiz_status_enum, nullable=False),
    Column("score", Integer, server_default="0", nullable=False),
    Column("attempts", Integer, server_default="0", nullable=False),
    Column("last_attempt_at", TIMESTAMP(timezone=True)),
    UniqueConstraint("customer_id", "subsection_id"),
    Index("idx_customer_subsection_quiz_status_customer", "customer_id"),
    CheckConstraint("score BETWEEN 0 AND 100", name="valid_score"),
)


# =====================================================
# 5. QUIZ CONTENT
# =====================================================
subsection_quiz_questions = Table(
    "subsection_quiz_questions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "subsection_id",
        Integer,
        ForeignKey("subsections.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("prompt_html", Text, nullable=False),
    Column("sort_order", Integer, server_default="0", nullable=False),
    Index("idx_subsection_quiz_questions_subsection", "subsection_id"),
)

subsection_quiz_options = Table(
    "subsection_quiz_options",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "question_id",
        Integer,
        ForeignKey("subsection_quiz_questions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("text_html", Text, nullable=False, server_default=""),
    Column("is_correct", Boolean, server_default="false", nullable=False),
    Column("sort_order", Integer, server_default="0", nullable=False),
    Index("idx_subsection_quiz_options_question", "question_id"),
)
