"""Error taxonomy for the academy engine.

Every error carries a stable machine-readable ``code`` and the HTTP status
the web layer renders it with. The web layer never inspects messages; it
serializes ``to_dict()`` as ``{"success": false, "code": ..., "message": ...}``.
"""

from typing import Any


class AcademyError(Exception):
    """Base class for all errors surfaced to API clients."""

    code = "SERVER_ERROR"
    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body = {"success": False, "code": self.code, "message": self.message}
        body.update(self.extra)
        return body


# --- Authorization ---


class UnauthorizedError(AcademyError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Authentication required."


class ForbiddenError(AcademyError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotSubscribedError(AcademyError):
    code = "NOT_SUBSCRIBED"
    status_code = 403
    default_message = "You are not subscribed."


# --- Prerequisites ---


class PrerequisiteLockedError(AcademyError):
    code = "PREREQUISITE_LOCKED"
    status_code = 403
    default_message = "Complete the previous content first."


class QuizRequiredNotPassedError(AcademyError):
    code = "QUIZ_REQUIRED_NOT_PASSED"
    status_code = 403
    default_message = (
        "This lesson requires passing its quiz before it can be marked completed."
    )


# --- Not found ---


class CourseNotFoundError(AcademyError):
    code = "COURSE_NOT_FOUND"
    status_code = 404
    default_message = "Course not found."


class SectionNotFoundError(AcademyError):
    code = "SECTION_NOT_FOUND"
    status_code = 404
    default_message = "Section not found."


class SubsectionNotFoundError(AcademyError):
    code = "SUBSECTION_NOT_FOUND"
    status_code = 404
    default_message = "Subsection not found."


# --- Structural integrity / configuration ---


class CourseStructureError(AcademyError):
    """A node's parent cannot be located in the tree. Indicates corrupt data."""

    code = "COURSE_STRUCTURE_ERROR"
    status_code = 500
    default_message = "Course structure is inconsistent."


class QuizNotConfiguredError(AcademyError):
    code = "QUIZ_NOT_CONFIGURED"
    status_code = 500
    default_message = "Quiz is required but not configured for this subsection."


class QuizNotRequiredError(AcademyError):
    code = "QUIZ_NOT_REQUIRED"
    status_code = 400
    default_message = "Quiz is not required for this subsection."


# --- Validation ---


class ValidationError(AcademyError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request."


# --- Access codes ---


class AccessCodeInvalidError(AcademyError):
    code = "ACCESS_CODE_INVALID"
    status_code = 400
    default_message = "The provided access code is invalid, inactive, or expired."


class AccessCodeWrongCourseError(AcademyError):
    code = "ACCESS_CODE_WRONG_COURSE"
    status_code = 400
    default_message = "Access code is not valid for this course."


class AccessCodeExhaustedError(AcademyError):
    code = "ACCESS_CODE_EXHAUSTED"
    status_code = 409
    default_message = "This access code has reached its maximum uses."
