"""Lock-state resolution and prerequisite enforcement.

Both work on an in-memory snapshot (content tree + completion set + quiz
outcomes) and never touch the database, so the bulk outline view and the
per-node guards cannot drift apart.

Locking is strictly linear and cascades chapter -> section -> subsection:

- the first chapter is open once subscribed; each later chapter opens when
  the previous one is open and complete (every section complete, at least
  one subsection in total);
- within an open chapter, each section opens when the previous section is
  open and complete;
- within an open section, each subsection opens when every earlier sibling
  is completed and, for quiz-gated siblings, passed.

A section with no subsections is never complete, so it blocks everything
after it.
"""

from dataclasses import dataclass, field
from typing import Any

from .course_tree import Chapter, CourseTree, Section, Subsection, SubsectionLocation
from .enums import LockState, QuizStatus
from .errors import (
    NotSubscribedError,
    PrerequisiteLockedError,
    QuizRequiredNotPassedError,
)
from .grading import percent
from .quiz_status import NOT_STARTED, QuizOutcome


@dataclass(frozen=True)
class ProgressSnapshot:
    """One customer's completion records and quiz outcomes."""

    completed_ids: frozenset[int] = frozenset()
    quiz_outcomes: dict[int, QuizOutcome] = field(default_factory=dict)

    def is_completed(self, subsection_id: int) -> bool:
        return subsection_id in self.completed_ids

    def quiz_outcome(self, subsection_id: int) -> QuizOutcome:
        return self.quiz_outcomes.get(subsection_id, NOT_STARTED)

    def quiz_passed(self, subsection_id: int) -> bool:
        return self.quiz_outcome(subsection_id).passed

    def with_completion(self, subsection_id: int) -> "ProgressSnapshot":
        return ProgressSnapshot(
            completed_ids=self.completed_ids | {subsection_id},
            quiz_outcomes=self.quiz_outcomes,
        )

    def with_quiz_outcome(
        self, subsection_id: int, outcome: QuizOutcome
    ) -> "ProgressSnapshot":
        return ProgressSnapshot(
            completed_ids=self.completed_ids,
            quiz_outcomes={**self.quiz_outcomes, subsection_id: outcome},
        )


# --- Completeness predicates ---


def is_subsection_complete(subsection: Subsection, snapshot: ProgressSnapshot) -> bool:
    """Completed and, if quiz-gated, passed."""
    if not snapshot.is_completed(subsection.id):
        return False
    return not subsection.quiz_required or snapshot.quiz_passed(subsection.id)


def is_section_complete(section: Section, snapshot: ProgressSnapshot) -> bool:
    """Every subsection complete; an empty section is never complete."""
    if not section.subsections:
        return False
    return all(is_subsection_complete(ss, snapshot) for ss in section.subsections)


def is_chapter_complete(chapter: Chapter, snapshot: ProgressSnapshot) -> bool:
    """Every section complete and at least one subsection in the chapter."""
    if chapter.total_subsections == 0:
        return False
    return all(is_section_complete(s, snapshot) for s in chapter.sections)


# --- Resolved view ---


def _lock(is_open: bool, subscribed: bool) -> LockState:
    if not subscribed:
        return LockState.SUBSCRIPTION_LOCKED
    return LockState.OPEN if is_open else LockState.PREREQ_LOCKED


@dataclass(frozen=True)
class ResolvedSubsection:
    subsection: Subsection
    locked: LockState
    completed: bool
    sequence: int
    quiz: QuizOutcome = NOT_STARTED

    @property
    def quiz_status(self) -> QuizStatus:
        if not self.subsection.quiz_required:
            return QuizStatus.not_started
        return self.quiz.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.subsection.id,
            "title": self.subsection.title,
            "locked": int(self.locked),
            "completed": self.completed,
            "sequence": self.sequence,
            "quiz_required": self.subsection.quiz_required,
            "quiz_status": self.quiz_status.value,
        }


@dataclass(frozen=True)
class ResolvedSection:
    section: Section
    locked: LockState
    subsections: tuple[ResolvedSubsection, ...]
    complete: bool

    @property
    def total(self) -> int:
        return len(self.subsections)

    @property
    def completed(self) -> int:
        return sum(1 for node in self.subsections if node.completed)

    @property
    def progress(self) -> int:
        return percent(self.completed, self.total)

    def progress_dict(self) -> dict[str, int]:
        return {
            "completed": self.completed,
            "total": self.total,
            "progress": self.progress,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.section.id,
            "title": self.section.title,
            "description": self.section.subtitle,
            "locked": int(self.locked),
            "subsections": [node.to_dict() for node in self.subsections],
            "meta": {
                "totalSubsections": self.total,
                "completedSubsections": self.completed,
                "progress": self.progress,
            },
        }


@dataclass(frozen=True)
class ResolvedChapter:
    chapter: Chapter
    locked: LockState
    sections: tuple[ResolvedSection, ...]
    complete: bool

    @property
    def total(self) -> int:
        return sum(s.total for s in self.sections)

    @property
    def completed(self) -> int:
        return sum(s.completed for s in self.sections)

    @property
    def progress(self) -> int:
        return percent(self.completed, self.total)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.chapter.id,
            "title": self.chapter.title,
            "locked": int(self.locked),
            "sections": [s.to_dict() for s in self.sections],
            "meta": {
                "totalSections": len(self.sections),
                "totalSubsections": self.total,
                "completedSubsections": self.completed,
                "progress": self.progress,
            },
        }


@dataclass(frozen=True)
class ResolvedCourse:
    course_id: int
    subscribed: bool
    chapters: tuple[ResolvedChapter, ...]

    @property
    def total(self) -> int:
        return sum(c.total for c in self.chapters)

    @property
    def completed(self) -> int:
        return sum(c.completed for c in self.chapters)

    @property
    def progress(self) -> int:
        return percent(self.completed, self.total)

    @property
    def is_complete(self) -> bool:
        """Terminal state: a non-empty course with every chapter complete."""
        return bool(self.chapters) and all(c.complete for c in self.chapters)

    def iter_subsections(self):
        for chapter in self.chapters:
            for section in chapter.sections:
                yield from section.subsections

    def find_subsection(self, subsection_id: int) -> ResolvedSubsection | None:
        for node in self.iter_subsections():
            if node.subsection.id == subsection_id:
                return node
        return None

    def find_section(self, section_id: int) -> ResolvedSection | None:
        for chapter in self.chapters:
            for section in chapter.sections:
                if section.section.id == section_id:
                    return section
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [c.to_dict() for c in self.chapters],
            "meta": {
                "totalChapters": len(self.chapters),
                "totalSubsections": self.total,
                "completedSubsections": self.completed,
                "progress": self.progress,
            },
        }


def resolve_course(
    tree: CourseTree, snapshot: ProgressSnapshot, *, subscribed: bool = True
) -> ResolvedCourse:
    """Compute the lock state of every node for one customer.

    Single top-to-bottom pass over the tree. Locked chapters and sections
    still list all their nodes; everything nested under a locked node is
    PREREQ_LOCKED. Without a subscription every node is SUBSCRIPTION_LOCKED.
    """
    resolved_chapters = []
    chapter_open = True

    for chapter in tree.chapters:
        section_open = chapter_open
        resolved_sections = []

        for section in chapter.sections:
            chain_open = section_open
            nodes = []
            previous: Subsection | None = None

            for idx, subsection in enumerate(section.subsections):
                # Quiz gate on the previous sibling closes the chain before
                # this node's own state is emitted
                if (
                    chain_open
                    and previous is not None
                    and previous.quiz_required
                    and not snapshot.quiz_passed(previous.id)
                ):
                    chain_open = False

                completed = snapshot.is_completed(subsection.id)
                nodes.append(
                    ResolvedSubsection(
                        subsection=subsection,
                        locked=_lock(chain_open, subscribed),
                        completed=completed,
                        sequence=idx + 1,
                        quiz=snapshot.quiz_outcome(subsection.id),
                    )
                )
                if not completed:
                    chain_open = False
                previous = subsection

            section_complete = is_section_complete(section, snapshot)
            resolved_sections.append(
                ResolvedSection(
                    section=section,
                    locked=_lock(section_open, subscribed),
                    subsections=tuple(nodes),
                    complete=section_complete,
                )
            )
            section_open = section_open and section_complete

        chapter_complete = is_chapter_complete(chapter, snapshot)
        resolved_chapters.append(
            ResolvedChapter(
                chapter=chapter,
                locked=_lock(chapter_open, subscribed),
                sections=tuple(resolved_sections),
                complete=chapter_complete,
            )
        )
        chapter_open = chapter_open and chapter_complete

    return ResolvedCourse(
        course_id=tree.course_id,
        subscribed=subscribed,
        chapters=tuple(resolved_chapters),
    )


# --- Per-node guard ---


def check_prerequisites(
    tree: CourseTree,
    snapshot: ProgressSnapshot,
    location: SubsectionLocation,
    *,
    subscribed: bool,
    for_completion: bool = False,
) -> None:
    """Fail closed at the first unmet prerequisite of ``location``.

    Checks, in order: entitlement; every earlier chapter complete; every
    earlier section of the current chapter complete; every earlier sibling
    completed (and passed if quiz-gated). With ``for_completion`` the target
    itself must also have its own mandatory quiz passed.

    Raises:
        NotSubscribedError, PrerequisiteLockedError, QuizRequiredNotPassedError
    """
    if not subscribed:
        raise NotSubscribedError()

    for chapter in tree.chapters[: location.chapter_index]:
        if not is_chapter_complete(chapter, snapshot):
            raise PrerequisiteLockedError("Complete previous chapters first.")

    for section in location.chapter.sections[: location.section_index]:
        if not is_section_complete(section, snapshot):
            raise PrerequisiteLockedError("Complete previous sections first.")

    for previous in location.section.subsections[: location.subsection_index]:
        if not snapshot.is_completed(previous.id):
            raise PrerequisiteLockedError("Complete previous lessons first.")
        if previous.quiz_required and not snapshot.quiz_passed(previous.id):
            raise PrerequisiteLockedError("Pass the previous quiz to continue.")

    target = location.subsection
    if for_completion and target.quiz_required and not snapshot.quiz_passed(target.id):
        raise QuizRequiredNotPassedError()
