"""Tests for store SQL shapes and access-code redemption with a mocked connection."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from academy.entitlements import (
    Entitlement,
    build_entitlement_upsert,
    redeem_access_code,
)
from academy.enums import AccessStatus
from academy.errors import (
    AccessCodeExhaustedError,
    AccessCodeInvalidError,
    AccessCodeWrongCourseError,
)
from academy.progress import build_completion_upsert
from academy.quiz_status import build_attempt_upsert


def compile_pg(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestUpsertStatements:
    """Writes converge on one row per key via ON CONFLICT."""

    def test_completion_upsert_does_nothing_on_conflict(self):
        sql = compile_pg(build_completion_upsert(1, 2))

        assert "INSERT INTO customer_subsection_progress" in sql
        assert "ON CONFLICT (customer_id, subsection_id) DO NOTHING" in sql

    def test_attempt_upsert_increments_attempts(self):
        sql = compile_pg(build_attempt_upsert(1, 2, score=80, passed=True))

        assert "ON CONFLICT (customer_id, subsection_id) DO UPDATE" in sql
        assert "customer_subsection_quiz_status.attempts +" in sql
        assert "RETURNING" in sql

    def test_entitlement_upsert_reactivates(self):
        sql = compile_pg(
            build_entitlement_upsert(1, 2, granted_via="access_code", access_code_id=3)
        )

        assert "ON CONFLICT (customer_id, course_id) DO UPDATE" in sql


class TestEntitlement:
    """Tests for Entitlement.is_active and effective_status."""

    NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_no_row_is_inactive(self):
        entitlement = Entitlement()

        assert entitlement.is_active(self.NOW) is False
        assert entitlement.effective_status(self.NOW) == AccessStatus.none

    def test_active_without_expiry(self):
        assert Entitlement(status=AccessStatus.active).is_active(self.NOW) is True

    def test_active_with_future_expiry(self):
        entitlement = Entitlement(
            status=AccessStatus.active, expires_at=self.NOW + timedelta(days=1)
        )

        assert entitlement.is_active(self.NOW) is True

    def test_active_past_expiry_reads_as_expired(self):
        entitlement = Entitlement(
            status=AccessStatus.active, expires_at=self.NOW - timedelta(seconds=1)
        )

        assert entitlement.is_active(self.NOW) is False
        assert entitlement.effective_status(self.NOW) == AccessStatus.expired

    def test_revoked_is_inactive(self):
        entitlement = Entitlement(status=AccessStatus.revoked)

        assert entitlement.is_active(self.NOW) is False
        assert entitlement.effective_status(self.NOW) == AccessStatus.revoked


def _result(row=None):
    """Mock result whose .mappings().first() and .first() return ``row``."""
    result = MagicMock()
    result.mappings.return_value.first.return_value = row
    result.first.return_value = row
    return result


def _code_row(**overrides):
    row = {
        "id": 5,
        "code": "WELCOME",
        "course_id": 1,
        "is_active": True,
        "max_uses": 3,
        "used_count": 1,
        "expires_at": None,
    }
    row.update(overrides)
    return row


class TestRedeemAccessCode:
    """Tests for redeem_access_code against a mocked connection."""

    @pytest.mark.asyncio
    async def test_unknown_code_is_invalid(self):
        conn = AsyncMock()
        conn.execute.side_effect = [_result(None)]

        with pytest.raises(AccessCodeInvalidError):
            await redeem_access_code(conn, customer_id=9, course_id=1, code="nope")

    @pytest.mark.asyncio
    async def test_blank_code_is_invalid_without_query(self):
        conn = AsyncMock()

        with pytest.raises(AccessCodeInvalidError):
            await redeem_access_code(conn, customer_id=9, course_id=1, code="  ")
        conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_code_is_invalid(self):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        conn = AsyncMock()
        conn.execute.side_effect = [_result(_code_row(expires_at=past))]

        with pytest.raises(AccessCodeInvalidError):
            await redeem_access_code(conn, customer_id=9, course_id=1, code="welcome")

    @pytest.mark.asyncio
    async def test_code_for_other_course(self):
        conn = AsyncMock()
        conn.execute.side_effect = [_result(_code_row(course_id=2))]

        with pytest.raises(AccessCodeWrongCourseError):
            await redeem_access_code(conn, customer_id=9, course_id=1, code="WELCOME")

    @pytest.mark.asyncio
    async def test_already_used_by_customer_is_idempotent(self):
        conn = AsyncMock()
        conn.execute.side_effect = [
            _result(_code_row()),
            _result(_code_row()),
            _result((77,)),
        ]

        result = await redeem_access_code(
            conn, customer_id=9, course_id=1, code="WELCOME"
        )

        assert result.already_redeemed is True
        assert result.remaining == 2
        assert conn.execute.call_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_code(self):
        row = _code_row(max_uses=2, used_count=2)
        conn = AsyncMock()
        conn.execute.side_effect = [_result(row), _result(row), _result(None)]

        with pytest.raises(AccessCodeExhaustedError) as exc_info:
            await redeem_access_code(conn, customer_id=9, course_id=1, code="WELCOME")
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_successful_redemption_locks_code_row_and_grants_access(self):
        row = _code_row()
        conn = AsyncMock()
        conn.execute.side_effect = [
            _result(row),
            _result(row),
            _result(None),
            MagicMock(),
            MagicMock(),
            MagicMock(),
        ]

        result = await redeem_access_code(
            conn, customer_id=9, course_id=1, code="welcome"
        )

        assert result.already_redeemed is False
        assert result.code == "WELCOME"
        assert result.remaining == 1

        statements = [compile_pg(call.args[0]) for call in conn.execute.call_args_list]
        assert "FOR UPDATE" in statements[1]
        assert "FOR UPDATE" not in statements[0]
        assert statements[3].startswith("UPDATE access_codes")
        assert "INSERT INTO access_code_usages" in statements[4]
        assert "INSERT INTO customer_course_access" in statements[5]

    @pytest.mark.asyncio
    async def test_unlimited_code_reports_no_remaining_count(self):
        row = _code_row(max_uses=None, used_count=500)
        conn = AsyncMock()
        conn.execute.side_effect = [
            _result(row),
            _result(row),
            _result(None),
            MagicMock(),
            MagicMock(),
            MagicMock(),
        ]

        result = await redeem_access_code(
            conn, customer_id=9, course_id=1, code="WELCOME"
        )

        assert result.remaining is None
