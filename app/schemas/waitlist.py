from datetime import datetime
from typing import Optional

from pydantic import Field

from app.models.waitlist import WaitlistStatus
from app.schemas.base import BaseSchema


class WaitlistEntryResponse(BaseSchema):
    """Waitlist entry with its current rank in the queue."""

    id: str
    student_id: str
    activity_id: str
    grade_level: Optional[int] = None
    position: int
    priority: int
    status: WaitlistStatus
    added_at: datetime
    notified_at: Optional[datetime] = None
    promoted_at: Optional[datetime] = None
    notes: Optional[str] = None
    rank: Optional[int] = None  # 1-indexed place among waiting entries
    student_name: Optional[str] = None


class WaitlistListResponse(BaseSchema):
    """Waiting entries for an activity in promotion order."""

    activity_id: str
    activity_name: str
    total_waiting: int
    entries: list[WaitlistEntryResponse]


class WaitlistPriorityUpdate(BaseSchema):
    priority: int = Field(..., ge=0, le=100)


class PromotionResponse(BaseSchema):
    activity_id: str
    promoted: bool
    promoted_student_id: Optional[str] = None
    enrollment_id: Optional[str] = None
