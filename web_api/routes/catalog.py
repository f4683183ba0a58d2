"""Course catalog and entitlement routes.

Endpoints:
- GET /api/academy/courses - Active catalog
- GET /api/academy/courses/me - Catalog with the caller's registration flag
- GET /api/academy/courses/{slug} - One course
- GET /api/academy/courses/{slug}/access - Caller's entitlement for a course
- POST /api/academy/courses/{slug}/redeem - Redeem an access code
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from academy.access import (
    get_course,
    get_course_access,
    list_courses,
    list_customer_courses,
    redeem_course_code,
)
from academy.database import get_connection, get_transaction
from web_api.auth import get_current_customer

router = APIRouter(prefix="/api/academy", tags=["academy"])


class RedeemRequest(BaseModel):
    access_code: str


@router.get("/courses")
async def get_catalog():
    """List active courses. No authentication required."""
    async with get_connection() as conn:
        courses = await list_courses(conn)
    return {"success": True, "data": courses}


@router.get("/courses/me")
async def get_my_catalog(customer: dict = Depends(get_current_customer)):
    """List active courses with ``is_registered`` for the caller."""
    async with get_connection() as conn:
        courses = await list_customer_courses(conn, customer["customer_id"])
    return {"success": True, "data": courses}


@router.get("/courses/{slug}")
async def get_course_by_slug(slug: str):
    async with get_connection() as conn:
        course = await get_course(conn, slug)
    return {"success": True, "data": course}


@router.get("/courses/{slug}/access")
async def get_my_course_access(
    slug: str, customer: dict = Depends(get_current_customer)
):
    async with get_connection() as conn:
        access = await get_course_access(conn, customer["customer_id"], slug)
    return {"success": True, "data": access}


@router.post("/courses/{slug}/redeem")
async def redeem_code(
    slug: str,
    body: RedeemRequest,
    customer: dict = Depends(get_current_customer),
):
    """Redeem an access code for this course.

    201 when access is newly granted, 200 when the caller already used the
    code (no counter change).
    """
    async with get_transaction() as conn:
        result = await redeem_course_code(
            conn, customer["customer_id"], slug, body.access_code
        )

    status_code = 200 if result["already_redeemed"] else 201
    message = (
        "Access code already used by this customer"
        if result["already_redeemed"]
        else "Course access granted"
    )
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "message": message, "data": result},
    )
