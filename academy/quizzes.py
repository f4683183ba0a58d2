"""Quiz content store: authored questions and options per subsection."""

import random
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from .tables import subsection_quiz_options, subsection_quiz_questions


@dataclass(frozen=True)
class QuizOption:
    id: int
    question_id: int
    text_html: str
    is_correct: bool = False
    sort_order: int = 0


@dataclass(frozen=True)
class QuizQuestion:
    id: int
    subsection_id: int
    prompt_html: str
    sort_order: int = 0
    options: tuple[QuizOption, ...] = field(default_factory=tuple)


async def get_quiz_questions(
    conn: AsyncConnection, subsection_id: int
) -> list[QuizQuestion]:
    """Get all questions (with options) for a subsection in authored order."""
    q_result = await conn.execute(
        select(
            subsection_quiz_questions.c.id,
            subsection_quiz_questions.c.prompt_html,
            subsection_quiz_questions.c.sort_order,
        )
        .where(subsection_quiz_questions.c.subsection_id == subsection_id)
        .order_by(
            subsection_quiz_questions.c.sort_order, subsection_quiz_questions.c.id
        )
    )
    question_rows = list(q_result.mappings())
    if not question_rows:
        return []

    question_ids = [row["id"] for row in question_rows]
    o_result = await conn.execute(
        select(subsection_quiz_options)
        .where(subsection_quiz_options.c.question_id.in_(question_ids))
        .order_by(
            subsection_quiz_options.c.question_id,
            subsection_quiz_options.c.sort_order,
            subsection_quiz_options.c.id,
        )
    )
    options_by_question: dict[int, list[QuizOption]] = {}
    for row in o_result.mappings():
        options_by_question.setdefault(row["question_id"], []).append(
            QuizOption(
                id=row["id"],
                question_id=row["question_id"],
                text_html=row["text_html"],
                is_correct=bool(row["is_correct"]),
                sort_order=row["sort_order"],
            )
        )

    return [
        QuizQuestion(
            id=row["id"],
            subsection_id=subsection_id,
            prompt_html=row["prompt_html"],
            sort_order=row["sort_order"],
            options=tuple(options_by_question.get(row["id"], [])),
        )
        for row in question_rows
    ]


def serialize_questions(
    questions: list[QuizQuestion],
    *,
    include_correct: bool = False,
    shuffle: bool = False,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Convert questions to API dicts.

    Learner views omit ``is_correct`` and may shuffle questions and options.
    """
    rng = rng or random.Random()
    ordered = list(questions)
    if shuffle:
        rng.shuffle(ordered)

    serialized = []
    for question in ordered:
        options = list(question.options)
        if shuffle:
            rng.shuffle(options)
        option_dicts = []
        for option in options:
            item = {
                "option_id": option.id,
                "text_html": option.text_html,
                "sort_order": option.sort_order,
            }
            if include_correct:
                item["is_correct"] = option.is_correct
            option_dicts.append(item)
        serialized.append(
            {
                "question_id": question.id,
                "prompt_html": question.prompt_html,
                "sort_order": question.sort_order,
                "options": option_dicts,
            }
        )
    return serialized


async def create_quiz_questions(
    conn: AsyncConnection, subsection_id: int, questions: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Insert questions and their options.

    Each item: {"prompt_html": str, "sort_order": int, "options": [
    {"text_html": str, "is_correct": bool, "sort_order": int}, ...]}.

    Returns [{"question_id": int, "option_ids": [int, ...]}, ...].
    No explicit commit - run inside the caller's transaction so a failure
    leaves no partial quiz behind.
    """
    created = []
    for question in questions:
        q_result = await conn.execute(
            pg_insert(subsection_quiz_questions)
            .values(
                subsection_id=subsection_id,
                prompt_html=question["prompt_html"],
                sort_order=question.get("sort_order", 0),
            )
            .returning(subsection_quiz_questions.c.id)
        )
        question_id = q_result.scalar_one()

        option_ids: list[int] = []
        options = question.get("options") or []
        if options:
            o_result = await conn.execute(
                pg_insert(subsection_quiz_options)
                .values(
                    [
                        {
                            "question_id": question_id,
                            "text_html": option.get("text_html") or "",
                            "is_correct": bool(option.get("is_correct")),
                            "sort_order": option.get("sort_order", 0),
                        }
                        for option in options
                    ]
                )
                .returning(subsection_quiz_options.c.id)
            )
            option_ids = list(o_result.scalars().all())

        created.append({"question_id": question_id, "option_ids": option_ids})
    return created
