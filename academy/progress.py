"""Completion store.

Records, per (customer, subsection), that the content was marked complete.
Rows are only ever upserted; concurrent repeats converge on one row.
"""

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from .enums import CompletionStatus
from .tables import customer_subsection_progress


def build_completion_upsert(customer_id: int, subsection_id: int):
    """INSERT ... ON CONFLICT DO NOTHING on (customer_id, subsection_id).

    The first completion time is kept; repeat calls are no-ops.
    """
    stmt = pg_insert(customer_subsection_progress).values(
        customer_id=customer_id,
        subsection_id=subsection_id,
        status=CompletionStatus.completed,
    )
    return stmt.on_conflict_do_nothing(
        index_elements=["customer_id", "subsection_id"],
    )


async def mark_subsection_completed(
    conn: AsyncConnection, *, customer_id: int, subsection_id: int
) -> bool:
    """Idempotently mark a subsection complete.

    Returns True if this call created the record, False if it already existed.
    No explicit commit - the caller's transaction context handles it.
    """
    result = await conn.execute(build_completion_upsert(customer_id, subsection_id))
    return result.rowcount > 0


async def get_completed_subsection_ids(
    conn: AsyncConnection, customer_id: int, subsection_ids: list[int] | None = None
) -> frozenset[int]:
    """Get the ids of subsections the customer has completed.

    Optionally restricted to ``subsection_ids`` (e.g. one course's tree).
    """
    if subsection_ids is not None and not subsection_ids:
        return frozenset()

    query = select(customer_subsection_progress.c.subsection_id).where(
        (customer_subsection_progress.c.customer_id == customer_id)
        & (customer_subsection_progress.c.status == CompletionStatus.completed)
    )
    if subsection_ids is not None:
        query = query.where(
            customer_subsection_progress.c.subsection_id.in_(subsection_ids)
        )

    result = await conn.execute(query)
    return frozenset(result.scalars().all())


async def count_completion_records(
    conn: AsyncConnection, *, customer_id: int, subsection_id: int
) -> int:
    """Number of completion rows for a pair (0 or 1 by the unique key)."""
    result = await conn.execute(
        select(func.count())
        .select_from(customer_subsection_progress)
        .where(
            (customer_subsection_progress.c.customer_id == customer_id)
            & (customer_subsection_progress.c.subsection_id == subsection_id)
        )
    )
    return result.scalar() or 0
