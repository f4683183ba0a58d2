"""Enum definitions for the academy schema and lock states."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class LockState(enum.IntEnum):
    """Availability of a course node for one customer.

    Serialized as the integer codes clients already understand.
    """

    OPEN = 0
    PREREQ_LOCKED = 1
    SUBSCRIPTION_LOCKED = 2


class QuizStatus(str, enum.Enum):
    not_started = "not_started"
    passed = "passed"
    failed = "failed"


class AccessStatus(str, enum.Enum):
    none = "none"  # no customer_course_access row; never stored
    active = "active"
    expired = "expired"
    revoked = "revoked"


class GrantedVia(str, enum.Enum):
    access_code = "access_code"
    purchase = "purchase"
    admin = "admin"


class CompletionStatus(str, enum.Enum):
    completed = "completed"


# =====================================================
# SQLAlchemy Enum Types
# Created by the initial migration (create_type=False)
# =====================================================

quiz_status_enum = SQLEnum(
    QuizStatus, name="quiz_status", create_type=False, native_enum=True
)
access_status_enum = SQLEnum(
    AccessStatus, name="access_status", create_type=False, native_enum=True
)
granted_via_enum = SQLEnum(
    GrantedVia, name="granted_via", create_type=False, native_enum=True
)
completion_status_enum = SQLEnum(
    CompletionStatus, name="completion_status", create_type=False, native_enum=True
)
