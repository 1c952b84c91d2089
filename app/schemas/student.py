from datetime import date, datetime
from typing import Optional

from pydantic import Field

from app.schemas.base import BaseSchema


class StudentCreate(BaseSchema):
    """Schema for creating a student record."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    grade_level: Optional[int] = Field(None, ge=0, le=12)
    date_of_birth: Optional[date] = None
    user_id: Optional[str] = None


class StudentResponse(BaseSchema):
    """Student response."""

    id: str
    first_name: str
    last_name: str
    grade_level: Optional[int] = None
    date_of_birth: Optional[date] = None
    user_id: Optional[str] = None
    created_at: datetime
