"""Subsection quiz routes.

Endpoints:
- GET /api/academy/courses/{slug}/subsections/{subsection_id}/quiz - Learner view
- POST /api/academy/courses/{slug}/subsections/{subsection_id}/quiz/submit - Submit answers
- POST /api/academy/courses/{slug}/subsections/{subsection_id}/quiz - Author quiz (admin)
- GET /api/academy/courses/{slug}/subsections/{subsection_id}/quiz/admin - Authoring view (admin)
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from academy.access import create_quiz, get_quiz, get_quiz_admin, submit_quiz
from academy.database import get_connection, get_transaction
from web_api.auth import get_current_customer, require_admin

router = APIRouter(prefix="/api/academy", tags=["quizzes"])


class SubmitQuizRequest(BaseModel):
    # List of {question_id, option_id} or a {question_id: option_id} map
    answers: list[Any] | dict[str, Any] | None = None
    # Legacy: client-computed percentage, used only without answers
    score: Any = None


class QuizOptionInput(BaseModel):
    text_html: str = ""
    is_correct: bool = False
    sort_order: int = 0


class QuizQuestionInput(BaseModel):
    prompt_html: str = Field(min_length=1)
    sort_order: int = 0
    options: list[QuizOptionInput] = []


class CreateQuizRequest(BaseModel):
    questions: list[QuizQuestionInput] = Field(min_length=1)


@router.get("/courses/{slug}/subsections/{subsection_id}/quiz")
async def get_subsection_quiz(
    slug: str,
    subsection_id: int,
    customer: dict = Depends(get_current_customer),
):
    """Questions and options in shuffled order, without correctness flags."""
    async with get_connection() as conn:
        quiz = await get_quiz(conn, customer["customer_id"], slug, subsection_id)
    return {"success": True, "data": quiz}


@router.post("/courses/{slug}/subsections/{subsection_id}/quiz/submit")
async def submit_subsection_quiz(
    slug: str,
    subsection_id: int,
    body: SubmitQuizRequest,
    customer: dict = Depends(get_current_customer),
):
    """Grade a submission server-side and record the attempt.

    A pass also marks the subsection complete.

    Returns:
        {success, passed, score, required, attempts, next_subsection_id,
         section_progress, course_completed}
    """
    async with get_transaction() as conn:
        result = await submit_quiz(
            conn,
            customer["customer_id"],
            slug,
            subsection_id,
            answers=body.answers,
            score=body.score,
        )
    return {"success": True, **result}


@router.post("/courses/{slug}/subsections/{subsection_id}/quiz", status_code=201)
async def create_subsection_quiz(
    slug: str,
    subsection_id: int,
    body: CreateQuizRequest,
    admin: dict = Depends(require_admin),
):
    """Create questions and options in one transaction."""
    async with get_transaction() as conn:
        created = await create_quiz(
            conn,
            slug,
            subsection_id,
            [q.model_dump() for q in body.questions],
        )
    return {"success": True, "data": created}


@router.get("/courses/{slug}/subsections/{subsection_id}/quiz/admin")
async def get_subsection_quiz_admin(
    slug: str,
    subsection_id: int,
    admin: dict = Depends(require_admin),
):
    async with get_connection() as conn:
        quiz = await get_quiz_admin(conn, slug, subsection_id)
    return {"success": True, "data": quiz}
