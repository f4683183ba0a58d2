"""
Access controller: the single entry point the web layer calls.

Each operation loads the course tree and the customer's progress snapshot,
runs the pure resolver/enforcer, and performs at most one write path. The
route owns the connection (reads) or transaction (writes) and passes it in.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncConnection

from .config import get_default_pass_score
from .course_tree import (
    CourseTree,
    SubsectionLocation,
    find_course_by_slug,
    get_subsection_detail,
    list_active_courses,
    load_course_tree,
)
from .entitlements import (
    get_entitlement,
    list_customer_entitlements,
    redeem_access_code,
)
from .errors import (
    CourseNotFoundError,
    NotSubscribedError,
    QuizNotConfiguredError,
    QuizNotRequiredError,
    SubsectionNotFoundError,
    ValidationError,
)
from .gating import ProgressSnapshot, check_prerequisites, resolve_course
from .grading import GradeResult, grade_answers, normalize_answers
from .progress import get_completed_subsection_ids, mark_subsection_completed
from .quiz_status import get_quiz_statuses, record_quiz_attempt
from .quizzes import create_quiz_questions, get_quiz_questions, serialize_questions

logger = logging.getLogger(__name__)


def serialize_course(course: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": course["id"],
        "slug": course["slug"],
        "title": course["title"],
        "short_description": course.get("short_description"),
        "is_active": bool(course.get("is_active", True)),
    }


async def _require_course(conn: AsyncConnection, slug: str) -> dict[str, Any]:
    course = await find_course_by_slug(conn, slug)
    if not course:
        raise CourseNotFoundError()
    return course


async def _load_snapshot(
    conn: AsyncConnection, customer_id: int, tree: CourseTree
) -> ProgressSnapshot:
    subsection_ids = [s.id for s in tree.linear_subsections()]
    completed = await get_completed_subsection_ids(conn, customer_id, subsection_ids)
    outcomes = await get_quiz_statuses(conn, customer_id, subsection_ids)
    return ProgressSnapshot(completed_ids=completed, quiz_outcomes=outcomes)


async def _load_course_state(
    conn: AsyncConnection, customer_id: int, slug: str
) -> tuple[dict[str, Any], CourseTree, ProgressSnapshot, bool]:
    course = await _require_course(conn, slug)
    tree = await load_course_tree(
        conn, course["id"], default_pass_score=get_default_pass_score()
    )
    entitlement = await get_entitlement(conn, customer_id, course["id"])
    snapshot = await _load_snapshot(conn, customer_id, tree)
    return course, tree, snapshot, entitlement.is_active()


def _locate(tree: CourseTree, subsection_id: int) -> SubsectionLocation:
    location = tree.find_subsection(subsection_id)
    if location is None:
        raise SubsectionNotFoundError()
    return location


def _progress_summary(
    tree: CourseTree,
    snapshot: ProgressSnapshot,
    location: SubsectionLocation,
    *,
    customer_id: int,
    course: dict[str, Any],
    newly_completed: bool,
) -> dict[str, Any]:
    """Navigation and progress after a completion, shared by complete/submit."""
    resolved = resolve_course(tree, snapshot)
    section = resolved.find_section(location.section.id)
    course_completed = resolved.is_complete
    if course_completed and newly_completed:
        logger.info(
            f"course_completed: customer {customer_id} finished course "
            f"{course['slug']} ({course['id']})"
        )
    return {
        "next_subsection_id": tree.next_subsection_id(location.subsection.id),
        "section_progress": section.progress_dict(),
        "course_completed": course_completed,
    }


# --- Catalog and entitlements ---


async def list_courses(conn: AsyncConnection) -> list[dict[str, Any]]:
    return [serialize_course(c) for c in await list_active_courses(conn)]


async def list_customer_courses(
    conn: AsyncConnection, customer_id: int
) -> list[dict[str, Any]]:
    """Catalog with ``is_registered`` set where the customer has live access."""
    courses = await list_active_courses(conn)
    entitlements = await list_customer_entitlements(conn, customer_id)
    enriched = []
    for course in courses:
        entitlement = entitlements.get(course["id"])
        item = serialize_course(course)
        item["is_registered"] = bool(entitlement and entitlement.is_active())
        enriched.append(item)
    return enriched


async def get_course(conn: AsyncConnection, slug: str) -> dict[str, Any]:
    return serialize_course(await _require_course(conn, slug))


async def get_course_access(
    conn: AsyncConnection, customer_id: int, slug: str
) -> dict[str, Any]:
    course = await _require_course(conn, slug)
    entitlement = await get_entitlement(conn, customer_id, course["id"])
    return {
        "course": serialize_course(course),
        "has_access": entitlement.is_active(),
        "status": entitlement.effective_status().value,
        "expires_at": (
            entitlement.expires_at.isoformat() if entitlement.expires_at else None
        ),
    }


async def redeem_course_code(
    conn: AsyncConnection, customer_id: int, slug: str, code: str
) -> dict[str, Any]:
    """Redeem an access code. ``conn`` must be a transaction."""
    course = await _require_course(conn, slug)
    result = await redeem_access_code(
        conn, customer_id=customer_id, course_id=course["id"], code=code
    )
    return {
        "course": serialize_course(course),
        "has_access": True,
        "already_redeemed": result.already_redeemed,
        "code_stats": {"code": result.code, "remaining": result.remaining},
    }


# --- Content ---


async def get_course_content(
    conn: AsyncConnection, customer_id: int, slug: str
) -> dict[str, Any]:
    """Resolved outline for the customer.

    Raises:
        NotSubscribedError: carries the fully subscription-locked outline so
            clients can still render the course structure.
    """
    course, tree, snapshot, subscribed = await _load_course_state(
        conn, customer_id, slug
    )
    if not subscribed:
        outline = resolve_course(tree, ProgressSnapshot(), subscribed=False)
        raise NotSubscribedError(
            decision=NotSubscribedError.code,
            subscribed=False,
            content=outline.to_dict(),
        )

    resolved = resolve_course(tree, snapshot)
    return {"subscribed": True, "content": resolved.to_dict()}


async def get_subsection_content(
    conn: AsyncConnection, customer_id: int, slug: str, subsection_id: int
) -> dict[str, Any]:
    """Subsection body and navigation, once every prerequisite is met."""
    course, tree, snapshot, subscribed = await _load_course_state(
        conn, customer_id, slug
    )
    location = _locate(tree, subsection_id)
    check_prerequisites(tree, snapshot, location, subscribed=subscribed)

    detail = await get_subsection_detail(conn, subsection_id)
    if detail is None or detail["course_id"] != course["id"]:
        raise SubsectionNotFoundError()

    subsection = location.subsection
    outcome = snapshot.quiz_outcome(subsection.id)
    return {
        "subsection": {
            "id": subsection.id,
            "section_id": location.section.id,
            "chapter_id": location.chapter.id,
            "title": subsection.title,
            "content_html": detail["content_html"],
            "completed": snapshot.is_completed(subsection.id),
            "quiz_required": subsection.quiz_required,
            "quiz_pass_score": subsection.quiz_pass_score,
            "quiz_status": outcome.status.value if subsection.quiz_required else None,
        },
        "navigation": {
            "previous_subsection_id": tree.previous_subsection_id(subsection.id),
            "next_subsection_id": tree.next_subsection_id(subsection.id),
        },
    }


async def complete_subsection(
    conn: AsyncConnection, customer_id: int, slug: str, subsection_id: int
) -> dict[str, Any]:
    """Mark a subsection complete. ``conn`` must be a transaction.

    Idempotent: repeating the call changes nothing and returns the same
    navigation.
    """
    course, tree, snapshot, subscribed = await _load_course_state(
        conn, customer_id, slug
    )
    location = _locate(tree, subsection_id)
    check_prerequisites(
        tree, snapshot, location, subscribed=subscribed, for_completion=True
    )

    created = await mark_subsection_completed(
        conn, customer_id=customer_id, subsection_id=subsection_id
    )
    if created:
        logger.info(f"Customer {customer_id} completed subsection {subsection_id}")

    return _progress_summary(
        tree,
        snapshot.with_completion(subsection_id),
        location,
        customer_id=customer_id,
        course=course,
        newly_completed=created,
    )


# --- Quizzes ---


async def get_quiz(
    conn: AsyncConnection, customer_id: int, slug: str, subsection_id: int
) -> dict[str, Any]:
    """Learner quiz view: shuffled, without correctness flags."""
    course, tree, snapshot, subscribed = await _load_course_state(
        conn, customer_id, slug
    )
    location = _locate(tree, subsection_id)
    if not location.subsection.quiz_required:
        raise QuizNotRequiredError()
    check_prerequisites(tree, snapshot, location, subscribed=subscribed)

    questions = await get_quiz_questions(conn, subsection_id)
    if not questions:
        raise QuizNotConfiguredError()

    return {
        "subsection_id": subsection_id,
        "title": location.subsection.title,
        "pass_score": location.subsection.quiz_pass_score,
        "status": snapshot.quiz_outcome(subsection_id).to_dict(),
        "questions": serialize_questions(questions, shuffle=True),
    }


async def submit_quiz(
    conn: AsyncConnection,
    customer_id: int,
    slug: str,
    subsection_id: int,
    *,
    answers: Any = None,
    score: Any = None,
) -> dict[str, Any]:
    """Grade a submission, record the attempt, and auto-complete on pass.

    ``answers`` is graded server-side. ``score`` is the legacy
    client-computed percentage, used only when no answers are sent.
    ``conn`` must be a transaction.
    """
    course, tree, snapshot, subscribed = await _load_course_state(
        conn, customer_id, slug
    )
    location = _locate(tree, subsection_id)
    subsection = location.subsection
    if not subsection.quiz_required:
        raise QuizNotRequiredError()
    check_prerequisites(tree, snapshot, location, subscribed=subscribed)

    if answers is not None:
        answer_set = normalize_answers(answers)
        questions = await get_quiz_questions(conn, subsection_id)
        if not questions:
            raise QuizNotConfiguredError()
        grade = grade_answers(
            questions, answer_set, pass_score=subsection.quiz_pass_score
        )
    elif score is not None:
        grade = GradeResult.from_legacy_score(score, subsection.quiz_pass_score)
    else:
        raise ValidationError("Provide answers or numeric score.")

    outcome = await record_quiz_attempt(
        conn,
        customer_id=customer_id,
        subsection_id=subsection_id,
        score=grade.score,
        passed=grade.passed,
    )
    logger.info(
        f"Quiz attempt {outcome.attempts} by customer {customer_id} on subsection "
        f"{subsection_id}: score={grade.score} passed={grade.passed}"
        + (" (legacy score)" if grade.legacy else "")
    )

    snapshot = snapshot.with_quiz_outcome(subsection_id, outcome)
    created = False
    if grade.passed:
        created = await mark_subsection_completed(
            conn, customer_id=customer_id, subsection_id=subsection_id
        )
        snapshot = snapshot.with_completion(subsection_id)

    summary = _progress_summary(
        tree,
        snapshot,
        location,
        customer_id=customer_id,
        course=course,
        newly_completed=created,
    )
    return {
        "passed": grade.passed,
        "score": grade.score,
        "required": subsection.quiz_pass_score,
        "attempts": outcome.attempts,
        **summary,
    }


# --- Quiz authoring (admin) ---


def _validate_quiz_payload(questions: Any) -> list[dict[str, Any]]:
    if not isinstance(questions, list) or not questions:
        raise ValidationError("questions must be a non-empty list.")
    for question in questions:
        if not isinstance(question, dict) or not question.get("prompt_html"):
            raise ValidationError("Each question needs prompt_html.")
        options = question.get("options") or []
        if not isinstance(options, list) or not all(isinstance(o, dict) for o in options):
            raise ValidationError("options must be a list.")
        if options and not any(o.get("is_correct") for o in options):
            raise ValidationError("Each question needs at least one correct option.")
    return questions


async def create_quiz(
    conn: AsyncConnection, slug: str, subsection_id: int, questions: Any
) -> dict[str, Any]:
    """Author questions/options for a subsection. ``conn`` must be a transaction."""
    course = await _require_course(conn, slug)
    tree = await load_course_tree(conn, course["id"])
    _locate(tree, subsection_id)

    created = await create_quiz_questions(
        conn, subsection_id, _validate_quiz_payload(questions)
    )
    logger.info(
        f"Created {len(created)} quiz question(s) for subsection {subsection_id}"
    )
    return {"subsection_id": subsection_id, "questions": created}


async def get_quiz_admin(
    conn: AsyncConnection, slug: str, subsection_id: int
) -> dict[str, Any]:
    """Authoring view: authored order, with correctness flags."""
    course = await _require_course(conn, slug)
    tree = await load_course_tree(
        conn, course["id"], default_pass_score=get_default_pass_score()
    )
    location = _locate(tree, subsection_id)
    questions = await get_quiz_questions(conn, subsection_id)
    return {
        "subsection_id": subsection_id,
        "quiz_required": location.subsection.quiz_required,
        "pass_score": location.subsection.quiz_pass_score,
        "questions": serialize_questions(questions, include_correct=True),
    }
