from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from app.models.activity import ActivityStatus, Weekday
from app.schemas.base import BaseSchema
from core.config import config


class ScheduleCreate(BaseSchema):
    """Weekly time slot for an activity."""

    day_of_week: Weekday
    start_time: time
    end_time: time
    venue_id: Optional[str] = None
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None

    @field_validator("end_time")
    @classmethod
    def validate_end_time(cls, v: time, info) -> time:
        start_time = info.data.get("start_time")
        if start_time and v <= start_time:
            raise ValueError("end_time must be after start_time")
        return v

    @field_validator("effective_until")
    @classmethod
    def validate_effective_until(cls, v: Optional[date], info) -> Optional[date]:
        effective_from = info.data.get("effective_from")
        if v and effective_from and v < effective_from:
            raise ValueError("effective_until must be on or after effective_from")
        return v


class ScheduleResponse(BaseSchema):
    id: str
    activity_id: str
    venue_id: Optional[str] = None
    day_of_week: Weekday
    start_time: time
    end_time: time
    effective_from: date
    effective_until: Optional[date] = None
    is_active: bool


class ActivityCreate(BaseSchema):
    """Schema for creating a new activity."""

    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    coach_id: Optional[str] = None
    venue: Optional[str] = Field(None, max_length=100)
    schedule: Optional[str] = Field(None, max_length=100)
    capacity: int = Field(default_factory=lambda: config.DEFAULT_ACTIVITY_CAPACITY, ge=0)
    fee: Decimal = Field(Decimal("0.00"), ge=0)

    min_grade: Optional[int] = Field(None, ge=0, le=12)
    max_grade: Optional[int] = Field(None, ge=0, le=12)
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, ge=0)

    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None
    term_start_date: Optional[date] = None
    term_end_date: Optional[date] = None

    schedules: List[ScheduleCreate] = Field(default_factory=list)

    @field_validator("max_grade")
    @classmethod
    def validate_max_grade(cls, v: Optional[int], info) -> Optional[int]:
        min_grade = info.data.get("min_grade")
        if v is not None and min_grade is not None and v < min_grade:
            raise ValueError("max_grade must be greater than or equal to min_grade")
        return v

    @field_validator("max_age")
    @classmethod
    def validate_max_age(cls, v: Optional[int], info) -> Optional[int]:
        min_age = info.data.get("min_age")
        if v is not None and min_age is not None and v < min_age:
            raise ValueError("max_age must be greater than or equal to min_age")
        return v

    @field_validator("registration_end")
    @classmethod
    def validate_registration_end(cls, v: Optional[datetime], info) -> Optional[datetime]:
        start = info.data.get("registration_start")
        if v and start and v < start:
            raise ValueError("registration_end must be after registration_start")
        return v


class ActivityUpdate(BaseSchema):
    """Schema for updating an activity."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    coach_id: Optional[str] = None
    venue: Optional[str] = Field(None, max_length=100)
    schedule: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=0)
    fee: Optional[Decimal] = Field(None, ge=0)
    status: Optional[ActivityStatus] = None
    min_grade: Optional[int] = Field(None, ge=0, le=12)
    max_grade: Optional[int] = Field(None, ge=0, le=12)
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, ge=0)
    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None
    term_start_date: Optional[date] = None
    term_end_date: Optional[date] = None

    @field_validator("name", "category", "capacity", "fee", "status")
    @classmethod
    def reject_null(cls, v, info):
        # Optional only so the field can be left out of a partial update
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class ActivityResponse(BaseSchema):
    """Activity response."""

    id: str
    name: str
    category: str
    description: Optional[str] = None
    coach_id: Optional[str] = None
    venue: Optional[str] = None
    schedule: Optional[str] = None
    capacity: int
    current_enrollment: int
    available_spots: int
    fee: Decimal
    status: ActivityStatus
    min_grade: Optional[int] = None
    max_grade: Optional[int] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    registration_start: Optional[datetime] = None
    registration_end: Optional[datetime] = None
    term_start_date: Optional[date] = None
    term_end_date: Optional[date] = None
    schedules: List[ScheduleResponse] = []
    created_at: datetime


class ActivityListResponse(BaseSchema):
    items: list[ActivityResponse]
    total: int
    skip: int
    limit: int


class SeatStatusResponse(BaseSchema):
    """Seat availability of an activity."""

    activity_id: str
    active_count: int
    capacity: int
    has_room: bool
    waiting_count: int = 0


class SyncCountResponse(BaseSchema):
    activity_id: str
    previous_count: int
    current_enrollment: int


class VenueCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100)
    venue_type: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=200)


class VenueResponse(BaseSchema):
    id: str
    name: str
    venue_type: Optional[str] = None
    capacity: Optional[int] = None
    location: Optional[str] = None
    is_active: bool
