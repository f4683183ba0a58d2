"""Quiz status store.

One row per (customer, subsection) holding the latest attempt outcome.
Each attempt overwrites status and score and increments ``attempts``;
attempt history is not retained.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from .enums import QuizStatus
from .tables import customer_subsection_quiz_status


@dataclass(frozen=True)
class QuizOutcome:
    status: QuizStatus = QuizStatus.not_started
    score: int = 0
    attempts: int = 0
    last_attempt_at: datetime | None = None

    @property
    def passed(self) -> bool:
        return self.status == QuizStatus.passed

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "score": self.score,
            "attempts": self.attempts,
            "last_attempt_at": (
                self.last_attempt_at.isoformat() if self.last_attempt_at else None
            ),
        }


NOT_STARTED = QuizOutcome()


def _row_to_outcome(row) -> QuizOutcome:
    return QuizOutcome(
        status=QuizStatus(row["status"]),
        score=row["score"],
        attempts=row["attempts"],
        last_attempt_at=row["last_attempt_at"],
    )


async def get_quiz_statuses(
    conn: AsyncConnection, customer_id: int, subsection_ids: list[int]
) -> dict[int, QuizOutcome]:
    """Get quiz outcomes for many subsections. Missing pairs are omitted."""
    if not subsection_ids:
        return {}

    result = await conn.execute(
        select(
            customer_subsection_quiz_status.c.subsection_id,
            customer_subsection_quiz_status.c.status,
            customer_subsection_quiz_status.c.score,
            customer_subsection_quiz_status.c.attempts,
            customer_subsection_quiz_status.c.last_attempt_at,
        ).where(
            (customer_subsection_quiz_status.c.customer_id == customer_id)
            & (customer_subsection_quiz_status.c.subsection_id.in_(subsection_ids))
        )
    )
    return {row["subsection_id"]: _row_to_outcome(row) for row in result.mappings()}


async def get_quiz_status(
    conn: AsyncConnection, customer_id: int, subsection_id: int
) -> QuizOutcome:
    """Get the quiz outcome for one pair, NOT_STARTED if never attempted."""
    outcomes = await get_quiz_statuses(conn, customer_id, [subsection_id])
    return outcomes.get(subsection_id, NOT_STARTED)


def build_attempt_upsert(customer_id: int, subsection_id: int, score: int, passed: bool):
    """INSERT ... ON CONFLICT DO UPDATE that records one attempt.

    First attempt inserts attempts=1; later attempts overwrite status/score
    and increment the counter atomically in SQL.
    """
    status = QuizStatus.passed if passed else QuizStatus.failed
    now = func.now()
    stmt = pg_insert(customer_subsection_quiz_status).values(
        customer_id=customer_id,
        subsection_id=subsection_id,
        status=status,
        score=score,
        attempts=1,
        last_attempt_at=now,
    )
    return stmt.on_conflict_do_update(
        index_elements=["customer_id", "subsection_id"],
        set_={
            "status": stmt.excluded.status,
            "score": stmt.excluded.score,
            "attempts": customer_subsection_quiz_status.c.attempts + 1,
            "last_attempt_at": now,
        },
    ).returning(
        customer_subsection_quiz_status.c.status,
        customer_subsection_quiz_status.c.score,
        customer_subsection_quiz_status.c.attempts,
        customer_subsection_quiz_status.c.last_attempt_at,
    )


async def record_quiz_attempt(
    conn: AsyncConnection,
    *,
    customer_id: int,
    subsection_id: int,
    score: int,
    passed: bool,
) -> QuizOutcome:
    """Record an attempt and return the stored outcome.

    No explicit commit - the caller's transaction context handles it.
    """
    result = await conn.execute(
        build_attempt_upsert(customer_id, subsection_id, score, passed)
    )
    return _row_to_outcome(result.mappings().one())
