"""Course entitlements and access-code redemption."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from .enums import AccessStatus, GrantedVia
from .errors import (
    AccessCodeExhaustedError,
    AccessCodeInvalidError,
    AccessCodeWrongCourseError,
)
from .tables import access_code_usages, access_codes, customer_course_access

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entitlement:
    status: AccessStatus = AccessStatus.none
    expires_at: datetime | None = None
    granted_via: GrantedVia | None = None
    access_code_id: int | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        if self.status != AccessStatus.active:
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return self.expires_at > now

    def effective_status(self, now: datetime | None = None) -> AccessStatus:
        """Stored status, except an active row past its expiry reads as expired."""
        if self.status == AccessStatus.active and not self.is_active(now):
            return AccessStatus.expired
        return self.status


NO_ENTITLEMENT = Entitlement()


@dataclass(frozen=True)
class RedemptionResult:
    already_redeemed: bool
    code: str
    remaining: int | None  # None = unlimited


def _row_to_entitlement(row) -> Entitlement:
    return Entitlement(
        status=AccessStatus(row["status"]),
        expires_at=row["expires_at"],
        granted_via=GrantedVia(row["granted_via"]) if row["granted_via"] else None,
        access_code_id=row["access_code_id"],
    )


async def get_entitlement(
    conn: AsyncConnection, customer_id: int, course_id: int
) -> Entitlement:
    """Get the customer's entitlement for a course, NO_ENTITLEMENT if none."""
    result = await conn.execute(
        select(
            customer_course_access.c.status,
            customer_course_access.c.expires_at,
            customer_course_access.c.granted_via,
            customer_course_access.c.access_code_id,
        ).where(
            (customer_course_access.c.customer_id == customer_id)
            & (customer_course_access.c.course_id == course_id)
        )
    )
    row = result.mappings().first()
    return _row_to_entitlement(row) if row else NO_ENTITLEMENT


async def list_customer_entitlements(
    conn: AsyncConnection, customer_id: int
) -> dict[int, Entitlement]:
    """Get every entitlement row for a customer, keyed by course_id."""
    result = await conn.execute(
        select(
            customer_course_access.c.course_id,
            customer_course_access.c.status,
            customer_course_access.c.expires_at,
            customer_course_access.c.granted_via,
            customer_course_access.c.access_code_id,
        ).where(customer_course_access.c.customer_id == customer_id)
    )
    return {row["course_id"]: _row_to_entitlement(row) for row in result.mappings()}


def build_entitlement_upsert(
    customer_id: int,
    course_id: int,
    *,
    granted_via: GrantedVia,
    access_code_id: int | None = None,
    expires_at: datetime | None = None,
):
    """INSERT ... ON CONFLICT DO UPDATE that (re)activates an entitlement."""
    stmt = pg_insert(customer_course_access).values(
        customer_id=customer_id,
        course_id=course_id,
        status=AccessStatus.active,
        granted_via=granted_via,
        access_code_id=access_code_id,
        expires_at=expires_at,
    )
    return stmt.on_conflict_do_update(
        index_elements=["customer_id", "course_id"],
        set_={
            "status": AccessStatus.active,
            "granted_via": stmt.excluded.granted_via,
            "access_code_id": stmt.excluded.access_code_id,
            "expires_at": stmt.excluded.expires_at,
            "updated_at": func.now(),
        },
    )


def _code_is_usable(row, now: datetime) -> bool:
    if not row["is_active"]:
        return False
    return row["expires_at"] is None or row["expires_at"] >= now


async def redeem_access_code(
    conn: AsyncConnection, *, customer_id: int, course_id: int, code: str
) -> RedemptionResult:
    """Redeem an access code for a course.

    Must run inside the caller's transaction: the code row is locked with
    SELECT ... FOR UPDATE so concurrent redemptions serialize on the usage
    counter. Redeeming a code the customer already used is a no-op success.

    Raises:
        AccessCodeInvalidError: unknown, inactive or expired code.
        AccessCodeWrongCourseError: the code belongs to another course.
        AccessCodeExhaustedError: max_uses reached.
    """
    code = (code or "").strip()
    if not code:
        raise AccessCodeInvalidError()

    now = datetime.now(timezone.utc)
    result = await conn.execute(
        select(access_codes).where(func.upper(access_codes.c.code) == code.upper())
    )
    found = result.mappings().first()
    if not found or not _code_is_usable(found, now):
        raise AccessCodeInvalidError()
    if found["course_id"] != course_id:
        raise AccessCodeWrongCourseError()

    locked_result = await conn.execute(
        select(access_codes)
        .where(access_codes.c.id == found["id"])
        .with_for_update()
    )
    locked = locked_result.mappings().first()
    if not locked or not _code_is_usable(locked, now):
        raise AccessCodeInvalidError()

    usage_result = await conn.execute(
        select(access_code_usages.c.id).where(
            (access_code_usages.c.access_code_id == locked["id"])
            & (access_code_usages.c.customer_id == customer_id)
        )
    )
    if usage_result.first() is not None:
        logger.info(
            f"Access code {locked['id']} already redeemed by customer {customer_id}"
        )
        return RedemptionResult(
            already_redeemed=True,
            code=locked["code"],
            remaining=_remaining(locked["max_uses"], locked["used_count"]),
        )

    if locked["max_uses"] is not None and locked["used_count"] >= locked["max_uses"]:
        raise AccessCodeExhaustedError()

    await conn.execute(
        update(access_codes)
        .where(access_codes.c.id == locked["id"])
        .values(used_count=access_codes.c.used_count + 1)
    )
    await conn.execute(
        pg_insert(access_code_usages).values(
            access_code_id=locked["id"], customer_id=customer_id
        )
    )
    await conn.execute(
        build_entitlement_upsert(
            customer_id,
            course_id,
            granted_via=GrantedVia.access_code,
            access_code_id=locked["id"],
        )
    )

    logger.info(
        f"Customer {customer_id} redeemed access code {locked['id']} "
        f"for course {course_id}"
    )
    return RedemptionResult(
        already_redeemed=False,
        code=locked["code"],
        remaining=_remaining(locked["max_uses"], locked["used_count"] + 1),
    )


def _remaining(max_uses: int | None, used: int) -> int | None:
    if max_uses is None:
        return None
    return max(max_uses - used, 0)
