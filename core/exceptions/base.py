from typing import Any, Dict, Optional


class CustomException(Exception):
    """Base exception class for all custom exceptions."""

    code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    message: str = "An unexpected error occurred"
    data: Optional[Dict[str, Any]] = None

    def __init__(
        self,
        message: str = None,
        code: int = None,
        error_code: str = None,
        data: Dict[str, Any] = None
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.error_code = error_code or self.error_code
        self.data = data or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code}, error_code={self.error_code}, message={self.message})"


class BadRequestException(CustomException):
    """Exception for bad request errors (400)."""

    code = 400
    error_code = "BAD_REQUEST"
    message = "Bad request"


class UnauthorizedException(CustomException):
    """Exception for unauthorized access (401)."""

    code = 401
    error_code = "UNAUTHORIZED"
    message = "Unauthorized"


class ForbiddenException(CustomException):
    """Exception for forbidden access (403)."""

    code = 403
    error_code = "FORBIDDEN"
    message = "Access forbidden"


class NotFoundException(CustomException):
    """Exception for resource not found (404)."""

    code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class ConflictException(CustomException):
    """Exception for resource conflicts (409)."""

    code = 409
    error_code = "CONFLICT"
    message = "Resource conflict"


class ValidationException(CustomException):
    """Exception for validation errors (422)."""

    code = 422
    error_code = "VALIDATION_ERROR"
    message = "Validation error"


# ============== Enrollment errors ==============


class ActivityInactiveException(BadRequestException):
    """Activity is not active or its registration window is closed."""

    error_code = "ACTIVITY_INACTIVE"
    message = "Activity is not open for registration"


class AlreadyEnrolledException(ConflictException):
    """Student already holds an active or approved enrollment."""

    error_code = "ALREADY_ENROLLED"
    message = "Student is already enrolled in this activity"


class AlreadyWaitlistedException(ConflictException):
    """Student is already waiting for a seat in this activity."""

    error_code = "ALREADY_WAITLISTED"
    message = "Student is already on the waitlist for this activity"


class GradeRestrictionException(BadRequestException):
    """Student grade level is outside the activity bounds."""

    error_code = "GRADE_RESTRICTION"
    message = "Grade level is outside the allowed range for this activity"


class AgeRestrictionException(BadRequestException):
    """Student age is outside the activity bounds."""

    error_code = "AGE_RESTRICTION"
    message = "Student age is outside the allowed range for this activity"


class ScheduleConflictException(ConflictException):
    """Activity schedule overlaps one of the student's enrollments."""

    error_code = "SCHEDULE_CONFLICT"
    message = "Time slot conflict detected"


class InvalidStatusException(BadRequestException):
    """Unrecognized enrollment status value."""

    error_code = "INVALID_STATUS"
    message = "Invalid enrollment status"


class InvalidStatusTransitionException(ConflictException):
    """Status change not allowed from the current status."""

    error_code = "INVALID_STATUS_TRANSITION"
    message = "Enrollment status transition is not allowed"
