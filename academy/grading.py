"""Server-side quiz grading.

Pure functions: no database access. The caller loads the authored
questions and persists the outcome.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from .errors import QuizNotConfiguredError, ValidationError
from .quizzes import QuizQuestion

AnswerPair = tuple[int, int]  # (question_id, option_id)


@dataclass(frozen=True)
class GradeResult:
    total: int
    correct: int
    score: int
    passed: bool
    legacy: bool = False

    @classmethod
    def from_legacy_score(cls, score: Any, pass_score: int) -> "GradeResult":
        """Accept a client-computed score as-is (older clients only)."""
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ValidationError("Provide answers or numeric score.")
        if not 0 <= score <= 100:
            raise ValidationError("score must be between 0 and 100.")
        # Pass is decided on the raw value; only the stored score is rounded
        return cls(
            total=0,
            correct=0,
            score=round_half_up(score),
            passed=score >= pass_score,
            legacy=True,
        )


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def percent(done: int, total: int) -> int:
    """round(100 * done / total), 0 when total is 0. Exact integer math."""
    if not total:
        return 0
    return (200 * done + total) // (2 * total)


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_answers(raw: Any) -> frozenset[AnswerPair]:
    """Turn a submitted answer payload into a set of (question_id, option_id).

    Accepts a list of ``{"question_id": ..., "option_id": ...}`` objects or a
    ``{question_id: option_id}`` mapping. Entries with missing or
    non-numeric ids are dropped. Exact duplicates collapse (the input is a
    set); a question submitted with several different options keeps all of
    them, and grading scores it wrong.

    Raises:
        ValidationError: the payload is neither a list nor a mapping.
    """
    pairs: set[AnswerPair] = set()

    if isinstance(raw, dict):
        items: Iterable[tuple[Any, Any]] = raw.items()
    elif isinstance(raw, (list, tuple)):
        items = (
            (entry.get("question_id"), entry.get("option_id"))
            for entry in raw
            if isinstance(entry, dict)
        )
    else:
        raise ValidationError(
            "answers must be a list of {question_id, option_id} or a map."
        )

    for question_id, option_id in items:
        qid, oid = _to_int(question_id), _to_int(option_id)
        if qid is None or oid is None:
            continue
        pairs.add((qid, oid))
    return frozenset(pairs)


def grade_answers(
    questions: list[QuizQuestion],
    answers: frozenset[AnswerPair],
    *,
    pass_score: int,
) -> GradeResult:
    """Score an answer set against the authored correct options.

    The denominator is every authored question: unanswered questions count
    as wrong. Pairs whose question is not one of ``questions`` are ignored.
    A question is correct only when exactly one option was submitted for it
    and that option is flagged correct.

    Raises:
        QuizNotConfiguredError: the subsection has no authored questions.
    """
    total = len(questions)
    if total == 0:
        raise QuizNotConfiguredError()

    correct_options = {
        q.id: {o.id for o in q.options if o.is_correct} for q in questions
    }

    chosen: dict[int, set[int]] = {}
    for question_id, option_id in answers:
        if question_id in correct_options:
            chosen.setdefault(question_id, set()).add(option_id)

    correct_questions = {
        question_id
        for question_id, options in chosen.items()
        if len(options) == 1 and options <= correct_options[question_id]
    }

    score = percent(len(correct_questions), total)
    return GradeResult(
        total=total,
        correct=len(correct_questions),
        score=score,
        passed=score >= pass_score,
    )
