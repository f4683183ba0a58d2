"""Course content routes: the locked outline, lesson bodies, completion.

Endpoints:
- GET /api/academy/courses/{slug}/content - Outline with lock states
- GET /api/academy/courses/{slug}/subsections/{subsection_id} - Lesson body
- POST /api/academy/courses/{slug}/subsections/{subsection_id}/complete - Mark complete
"""

from fastapi import APIRouter, Depends

from academy.access import (
    complete_subsection,
    get_course_content,
    get_subsection_content,
)
from academy.database import get_connection, get_transaction
from web_api.auth import get_current_customer

router = APIRouter(prefix="/api/academy", tags=["academy"])


@router.get("/courses/{slug}/content")
async def get_content(slug: str, customer: dict = Depends(get_current_customer)):
    """Get the course outline with per-node lock state and progress.

    Unsubscribed callers get 403 NOT_SUBSCRIBED with the fully locked
    outline attached.
    """
    async with get_connection() as conn:
        result = await get_course_content(conn, customer["customer_id"], slug)
    return {"success": True, **result}


@router.get("/courses/{slug}/subsections/{subsection_id}")
async def get_subsection(
    slug: str,
    subsection_id: int,
    customer: dict = Depends(get_current_customer),
):
    async with get_connection() as conn:
        result = await get_subsection_content(
            conn, customer["customer_id"], slug, subsection_id
        )
    return {"success": True, **result}


@router.post("/courses/{slug}/subsections/{subsection_id}/complete")
async def complete(
    slug: str,
    subsection_id: int,
    customer: dict = Depends(get_current_customer),
):
    """Mark a subsection complete. Idempotent.

    Returns:
        {success, next_subsection_id, section_progress, course_completed}
    """
    async with get_transaction() as conn:
        result = await complete_subsection(
            conn, customer["customer_id"], slug, subsection_id
        )
    return {"success": True, **result}
