from core.exceptions.base import (
    CustomException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    ValidationException,
    ActivityInactiveException,
    AlreadyEnrolledException,
    AlreadyWaitlistedException,
    GradeRestrictionException,
    AgeRestrictionException,
    ScheduleConflictException,
    InvalidStatusException,
    InvalidStatusTransitionException,
)

__all__ = [
    "CustomException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "ValidationException",
    "ActivityInactiveException",
    "AlreadyEnrolledException",
    "AlreadyWaitlistedException",
    "GradeRestrictionException",
    "AgeRestrictionException",
    "ScheduleConflictException",
    "InvalidStatusException",
    "InvalidStatusTransitionException",
]
