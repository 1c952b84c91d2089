from dataclasses import dataclass
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity, ActivityStatus
from app.models.enrollment import Enrollment
from core.exceptions.base import ActivityInactiveException, NotFoundException
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SeatStatus:
    """Seat availability computed from the enrollment table."""

    activity_id: str
    active_count: int
    capacity: int
    has_room: bool


class CapacityService:
    """Decides whether an activity has an open seat and moves the seat counter.

    ``reserve_seat`` and ``release_seat`` never commit: they run inside the
    caller's transaction together with the enrollment row they belong to.
    """

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def seat_status(self, activity_id: str) -> SeatStatus:
        activity = await Activity.get_by_id(self.db_session, activity_id)
        if not activity:
            raise NotFoundException(message="Activity not found")
        if activity.status != ActivityStatus.ACTIVE:
            raise ActivityInactiveException(message=f"Activity is {activity.status.value}")

        active_count = await Enrollment.count_open(self.db_session, activity_id)
        return SeatStatus(
            activity_id=activity_id,
            active_count=active_count,
            capacity=activity.capacity,
            has_room=active_count < activity.capacity,
        )

    async def reserve_seat(self, activity_id: str, override_quota: bool = False) -> bool:
        """Take a seat. Returns False when the activity is full."""
        if override_quota:
            await Activity.force_reserve_seat(self.db_session, activity_id)
            logger.info(f"Capacity override: seat forced for activity {activity_id}")
            return True
        return await Activity.reserve_seat(self.db_session, activity_id)

    async def release_seat(self, activity_id: str) -> None:
        released = await Activity.release_seat(self.db_session, activity_id)
        if not released:
            logger.warning(f"Seat counter for activity {activity_id} already at zero")

    async def sync_enrollment_count(self, activity_id: str) -> Tuple[int, int]:
        """Recompute the counter from open enrollments. Returns (previous, current)."""
        activity = await Activity.get_by_id(self.db_session, activity_id)
        if not activity:
            raise NotFoundException(message="Activity not found")

        previous = activity.current_enrollment
        current = await activity.sync_enrollment_count(self.db_session)
        if previous != current:
            logger.warning(
                f"Seat counter drift on activity {activity_id}: {previous} -> {current}"
            )
        return previous, current
