"""Course content tree: loading and navigation.

The tree is loaded with three ordered queries (chapters, sections,
subsections) and assembled in memory. List order at every level IS the
prerequisite order, so every query and every in-memory sort uses
(sort_order, id).
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from .errors import CourseStructureError, SectionNotFoundError
from .tables import chapters, courses, sections, subsections


@dataclass(frozen=True)
class Subsection:
    """The atomic unit of completion and of quiz gating."""

    id: int
    section_id: int
    title: str
    sort_order: int = 0
    quiz_required: bool = False
    quiz_pass_score: int = 70


@dataclass(frozen=True)
class Section:
    id: int
    chapter_id: int
    title: str
    subtitle: str | None = None
    sort_order: int = 0
    subsections: tuple[Subsection, ...] = ()


@dataclass(frozen=True)
class Chapter:
    id: int
    course_id: int
    title: str
    sort_order: int = 0
    sections: tuple[Section, ...] = ()

    @property
    def total_subsections(self) -> int:
        return sum(len(s.subsections) for s in self.sections)


@dataclass(frozen=True)
class SubsectionLocation:
    """Where a subsection sits in the tree, by index at every level."""

    chapter_index: int
    section_index: int
    subsection_index: int
    chapter: Chapter
    section: Section
    subsection: Subsection


@dataclass(frozen=True)
class CourseTree:
    course_id: int
    chapters: tuple[Chapter, ...] = field(default_factory=tuple)

    def iter_locations(self) -> Iterator[SubsectionLocation]:
        """Yield every subsection in prerequisite order with its location."""
        for ci, chapter in enumerate(self.chapters):
            for si, section in enumerate(chapter.sections):
                for ki, subsection in enumerate(section.subsections):
                    yield SubsectionLocation(ci, si, ki, chapter, section, subsection)

    def linear_subsections(self) -> list[Subsection]:
        return [loc.subsection for loc in self.iter_locations()]

    @property
    def total_subsections(self) -> int:
        return sum(chapter.total_subsections for chapter in self.chapters)

    def find_subsection(self, subsection_id: int) -> SubsectionLocation | None:
        for loc in self.iter_locations():
            if loc.subsection.id == subsection_id:
                return loc
        return None

    def next_subsection_id(self, subsection_id: int) -> int | None:
        """Successor across section and chapter boundaries; None at the end."""
        linear = self.linear_subsections()
        for i, subsection in enumerate(linear):
            if subsection.id == subsection_id:
                return linear[i + 1].id if i + 1 < len(linear) else None
        return None

    def previous_subsection_id(self, subsection_id: int) -> int | None:
        """Predecessor across section and chapter boundaries; None at the start."""
        linear = self.linear_subsections()
        for i, subsection in enumerate(linear):
            if subsection.id == subsection_id:
                return linear[i - 1].id if i > 0 else None
        return None


def _ordered(rows: Iterable[dict]) -> list[dict]:
    return sorted(rows, key=lambda r: (r["sort_order"], r["id"]))


def build_course_tree(
    course_id: int,
    chapter_rows: Iterable[dict],
    section_rows: Iterable[dict],
    subsection_rows: Iterable[dict],
    *,
    default_pass_score: int = 70,
) -> CourseTree:
    """Assemble a CourseTree from flat rows.

    Raises:
        CourseStructureError: a section or subsection names a parent that is
            not part of this course.
    """
    chapter_rows = _ordered(chapter_rows)
    chapter_ids = {row["id"] for row in chapter_rows}

    subs_by_section: dict[int, list[Subsection]] = {}
    section_ids = set()
    sections_by_chapter: dict[int, list[dict]] = {}
    for row in _ordered(section_rows):
        if row["chapter_id"] not in chapter_ids:
            raise CourseStructureError(
                f"Section {row['id']} references chapter {row['chapter_id']} "
                f"outside course {course_id}."
            )
        section_ids.add(row["id"])
        sections_by_chapter.setdefault(row["chapter_id"], []).append(row)

    for row in _ordered(subsection_rows):
        if row["section_id"] not in section_ids:
            raise CourseStructureError(
                f"Subsection {row['id']} references section {row['section_id']} "
                f"outside course {course_id}."
            )
        pass_score = row.get("quiz_pass_score")
        subs_by_section.setdefault(row["section_id"], []).append(
            Subsection(
                id=row["id"],
                section_id=row["section_id"],
                title=row["title"],
                sort_order=row["sort_order"],
                quiz_required=bool(row.get("quiz_required")),
                quiz_pass_score=(
                    default_pass_score if pass_score is None else int(pass_score)
                ),
            )
        )

    built = []
    for ch in chapter_rows:
        built.append(
            Chapter(
                id=ch["id"],
                course_id=course_id,
                title=ch["title"],
                sort_order=ch["sort_order"],
                sections=tuple(
                    Section(
                        id=s["id"],
                        chapter_id=s["chapter_id"],
                        title=s["title"],
                        subtitle=s.get("subtitle"),
                        sort_order=s["sort_order"],
                        subsections=tuple(subs_by_section.get(s["id"], [])),
                    )
                    for s in sections_by_chapter.get(ch["id"], [])
                ),
            )
        )
    return CourseTree(course_id=course_id, chapters=tuple(built))


async def find_course_by_slug(
    conn: AsyncConnection, slug: str, *, active_only: bool = True
) -> dict[str, Any] | None:
    """Get a course row by slug. Inactive courses are hidden by default."""
    slug = (slug or "").strip()
    if not slug:
        return None

    query = select(courses).where(courses.c.slug == slug)
    if active_only:
        query = query.where(courses.c.is_active.is_(True))

    result = await conn.execute(query)
    row = result.mappings().first()
    return dict(row) if row else None


async def list_active_courses(conn: AsyncConnection) -> list[dict[str, Any]]:
    """Active catalog, newest first."""
    result = await conn.execute(
        select(courses)
        .where(courses.c.is_active.is_(True))
        .order_by(courses.c.created_at.desc(), courses.c.id.desc())
    )
    return [dict(row) for row in result.mappings()]


async def load_course_tree(
    conn: AsyncConnection, course_id: int, *, default_pass_score: int = 70
) -> CourseTree:
    """Load the ordered chapter/section/subsection hierarchy for a course."""
    chapter_result = await conn.execute(
        select(
            chapters.c.id,
            chapters.c.title,
            chapters.c.sort_order,
        )
        .where(chapters.c.course_id == course_id)
        .order_by(chapters.c.sort_order, chapters.c.id)
    )
    chapter_rows = [dict(row) for row in chapter_result.mappings()]

    section_result = await conn.execute(
        select(
            sections.c.id,
            sections.c.chapter_id,
            sections.c.title,
            sections.c.subtitle,
            sections.c.sort_order,
        )
        .join(chapters, sections.c.chapter_id == chapters.c.id)
        .where(chapters.c.course_id == course_id)
        .order_by(sections.c.sort_order, sections.c.id)
    )
    section_rows = [dict(row) for row in section_result.mappings()]

    subsection_result = await conn.execute(
        select(
            subsections.c.id,
            subsections.c.section_id,
            subsections.c.title,
            subsections.c.sort_order,
            subsections.c.quiz_required,
            subsections.c.quiz_pass_score,
        )
        .join(sections, subsections.c.section_id == sections.c.id)
        .join(chapters, sections.c.chapter_id == chapters.c.id)
        .where(chapters.c.course_id == course_id)
        .order_by(subsections.c.sort_order, subsections.c.id)
    )
    subsection_rows = [dict(row) for row in subsection_result.mappings()]

    return build_course_tree(
        course_id,
        chapter_rows,
        section_rows,
        subsection_rows,
        default_pass_score=default_pass_score,
    )


async def get_subsection_detail(
    conn: AsyncConnection, subsection_id: int
) -> dict[str, Any] | None:
    """Get a subsection row with its body and ancestry.

    Returns None if the subsection does not exist.

    Raises:
        SectionNotFoundError: the subsection's parent section is missing.
    """
    result = await conn.execute(
        select(
            subsections.c.id,
            subsections.c.section_id,
            subsections.c.title,
            subsections.c.content_html,
            subsections.c.quiz_required,
            subsections.c.quiz_pass_score,
            sections.c.id.label("parent_section_id"),
            sections.c.chapter_id,
            chapters.c.course_id,
        )
        .select_from(
            subsections.outerjoin(
                sections, subsections.c.section_id == sections.c.id
            ).outerjoin(chapters, sections.c.chapter_id == chapters.c.id)
        )
        .where(subsections.c.id == subsection_id)
    )
    row = result.mappings().first()
    if not row:
        return None
    if row["parent_section_id"] is None:
        raise SectionNotFoundError("Parent section not found.")
    return dict(row)
