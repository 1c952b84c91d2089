"""Schedule, venue and eligibility checks run before a student takes a seat."""

from dataclasses import asdict, dataclass
from datetime import date, time
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity, ActivitySchedule, ActivityStatus
from app.models.conflict import ConflictType
from app.models.enrollment import Enrollment
from app.models.student import Student
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ScheduleConflict:
    """A slot of the target activity overlapping a slot the student already holds."""

    schedule_id: str
    conflicting_activity_id: str
    conflicting_activity_name: Optional[str]
    conflicting_schedule_id: str
    day_of_week: str
    start_time: str
    end_time: str

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class VenueConflict:
    """Two different activities booked into the same venue at the same time."""

    venue_id: str
    schedule_id: str
    conflicting_activity_id: str
    conflicting_schedule_id: str
    day_of_week: str


@dataclass
class RestrictionViolation:
    conflict_type: ConflictType
    message: str


class ScheduleConflictChecker:
    """Detects weekly time overlaps, venue double-booking and grade/age bounds."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    @staticmethod
    def times_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
        """Half-open interval overlap: touching endpoints do not overlap."""
        return start_a < end_b and start_b < end_a

    @staticmethod
    def windows_intersect(
        from_a: Optional[date],
        until_a: Optional[date],
        from_b: Optional[date],
        until_b: Optional[date],
    ) -> bool:
        """Check whether two effective-date windows share at least one day.

        A missing bound is open-ended.
        """
        if until_a is not None and from_b is not None and until_a < from_b:
            return False
        if until_b is not None and from_a is not None and until_b < from_a:
            return False
        return True

    @classmethod
    def slots_conflict(cls, a: ActivitySchedule, b: ActivitySchedule) -> bool:
        if not (a.is_active and b.is_active):
            return False
        if a.day_of_week != b.day_of_week:
            return False
        if not cls.windows_intersect(
            a.effective_from, a.effective_until, b.effective_from, b.effective_until
        ):
            return False
        return cls.times_overlap(a.start_time, a.end_time, b.start_time, b.end_time)

    async def find_time_conflicts(
        self, student_id: str, activity_id: str
    ) -> List[ScheduleConflict]:
        """Every overlap between the activity's slots and the student's open enrollments."""
        targets = await ActivitySchedule.get_active_for_activity(self.db_session, activity_id)
        if not targets:
            return []

        held_activity_ids = await Enrollment.get_open_activity_ids(
            self.db_session, student_id, exclude_activity_id=activity_id
        )
        held = await ActivitySchedule.get_active_for_activities(
            self.db_session, held_activity_ids
        )
        if not held:
            return []

        names = await self._activity_names({s.activity_id for s in held})

        conflicts = []
        for target in targets:
            for other in held:
                if self.slots_conflict(target, other):
                    conflicts.append(
                        ScheduleConflict(
                            schedule_id=target.id,
                            conflicting_activity_id=other.activity_id,
                            conflicting_activity_name=names.get(other.activity_id),
                            conflicting_schedule_id=other.id,
                            day_of_week=other.day_of_week.value,
                            start_time=other.start_time.strftime("%H:%M"),
                            end_time=other.end_time.strftime("%H:%M"),
                        )
                    )
        return conflicts

    async def find_venue_conflicts(self, activity_id: str) -> List[VenueConflict]:
        """Slots of other active activities that share a venue and time with this one."""
        targets = [
            s for s in await ActivitySchedule.get_active_for_activity(self.db_session, activity_id)
            if s.venue_id
        ]
        if not targets:
            return []

        result = await self.db_session.execute(
            select(ActivitySchedule)
            .join(Activity, Activity.id == ActivitySchedule.activity_id)
            .where(
                ActivitySchedule.venue_id.in_(list({s.venue_id for s in targets})),
                ActivitySchedule.activity_id != activity_id,
                ActivitySchedule.is_active == True,
                Activity.status == ActivityStatus.ACTIVE,
            )
        )
        others: Sequence[ActivitySchedule] = result.scalars().all()

        conflicts = []
        for target in targets:
            for other in others:
                if other.venue_id == target.venue_id and self.slots_conflict(target, other):
                    conflicts.append(
                        VenueConflict(
                            venue_id=target.venue_id,
                            schedule_id=target.id,
                            conflicting_activity_id=other.activity_id,
                            conflicting_schedule_id=other.id,
                            day_of_week=other.day_of_week.value,
                        )
                    )
        return conflicts

    @staticmethod
    def check_restrictions(
        student: Student,
        activity: Activity,
        grade_level: Optional[int],
        on_date: date,
    ) -> Optional[RestrictionViolation]:
        """Grade and age bounds. Unknown grade or birth date skips that check."""
        if grade_level is not None:
            if activity.min_grade is not None and grade_level < activity.min_grade:
                return RestrictionViolation(
                    ConflictType.GRADE_RESTRICTION,
                    f"Minimum grade for {activity.name} is {activity.min_grade}",
                )
            if activity.max_grade is not None and grade_level > activity.max_grade:
                return RestrictionViolation(
                    ConflictType.GRADE_RESTRICTION,
                    f"Maximum grade for {activity.name} is {activity.max_grade}",
                )

        age = student.age_on(on_date)
        if age is not None:
            if activity.min_age is not None and age < activity.min_age:
                return RestrictionViolation(
                    ConflictType.AGE_RESTRICTION,
                    f"Minimum age for {activity.name} is {activity.min_age}",
                )
            if activity.max_age is not None and age > activity.max_age:
                return RestrictionViolation(
                    ConflictType.AGE_RESTRICTION,
                    f"Maximum age for {activity.name} is {activity.max_age}",
                )
        return None

    async def _activity_names(self, activity_ids) -> Dict[str, str]:
        if not activity_ids:
            return {}
        result = await self.db_session.execute(
            select(Activity.id, Activity.name).where(Activity.id.in_(list(activity_ids)))
        )
        return {row.id: row.name for row in result.all()}
