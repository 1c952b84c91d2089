"""Per-activity waitlist: ordered queue and seat promotion."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity
from app.models.conflict import ConflictType
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.student import Student
from app.models.user import Role, User
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.services.audit_service import AuditService
from app.services.capacity_service import CapacityService
from app.services.conflict_service import ScheduleConflictChecker
from app.services.notification_service import NotificationService
from core.exceptions.base import (
    AlreadyWaitlistedException,
    BadRequestException,
    ForbiddenException,
    NotFoundException,
)
from core.logging import get_logger

logger = get_logger(__name__)

PROMOTION_NOTE = "Promoted from waitlist"


@dataclass
class SkippedCandidate:
    """A waiting entry passed over during promotion."""

    entry_id: str
    student_id: str
    reason: str
    conflicting_activity_id: Optional[str] = None
    conflicting_schedule_id: Optional[str] = None


@dataclass
class PromotionOutcome:
    activity_id: str
    entry_id: Optional[str] = None
    student_id: Optional[str] = None
    enrollment_id: Optional[str] = None
    skipped: List[SkippedCandidate] = field(default_factory=list)

    @property
    def promoted(self) -> bool:
        return self.enrollment_id is not None


class WaitlistService:
    """Queue operations for full activities.

    ``enqueue`` and ``promote`` do not commit; they run inside the caller's
    registration or cancellation transaction.
    """

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session
        self.capacity = CapacityService(db_session)
        self.checker = ScheduleConflictChecker(db_session)

    async def enqueue(
        self,
        student_id: str,
        activity_id: str,
        grade_level: Optional[int] = None,
        notes: Optional[str] = None,
        priority: int = 0,
    ) -> WaitlistEntry:
        """Append a waiting entry after the current last position."""
        if await WaitlistEntry.get_waiting(self.db_session, student_id, activity_id):
            raise AlreadyWaitlistedException()

        position = await WaitlistEntry.next_position(self.db_session, activity_id)
        entry = WaitlistEntry(
            student_id=student_id,
            activity_id=activity_id,
            grade_level=grade_level,
            position=position,
            priority=priority,
            status=WaitlistStatus.WAITING,
            notes=notes,
        )
        self.db_session.add(entry)
        await self.db_session.flush()
        logger.info(f"Student {student_id} waitlisted for activity {activity_id} at position {position}")
        return entry

    async def promote(
        self,
        activity_id: str,
        actor_id: Optional[str] = None,
        leaving_student_id: Optional[str] = None,
    ) -> PromotionOutcome:
        """Move the first eligible waiting student into a free seat.

        Candidates are tried in priority desc, position asc order. A candidate
        with a schedule conflict is skipped and left waiting. A candidate who
        already holds a seat, or who is the student giving the seat up, has
        the entry cancelled instead. At most one student is promoted per call.
        """
        outcome = PromotionOutcome(activity_id=activity_id)

        for entry in await WaitlistEntry.get_queue(self.db_session, activity_id):
            if entry.student_id == leaving_student_id:
                await WaitlistEntry.close_waiting(
                    self.db_session, entry.student_id, activity_id, WaitlistStatus.CANCELLED
                )
                outcome.skipped.append(
                    SkippedCandidate(entry.id, entry.student_id, "leaving")
                )
                continue

            if await Enrollment.get_open(self.db_session, entry.student_id, activity_id):
                await WaitlistEntry.close_waiting(
                    self.db_session, entry.student_id, activity_id, WaitlistStatus.CANCELLED
                )
                outcome.skipped.append(
                    SkippedCandidate(entry.id, entry.student_id, "already_enrolled")
                )
                continue

            await Student.lock(self.db_session, entry.student_id)
            conflicts = await self.checker.find_time_conflicts(entry.student_id, activity_id)
            if conflicts:
                first = conflicts[0]
                outcome.skipped.append(
                    SkippedCandidate(
                        entry.id,
                        entry.student_id,
                        ConflictType.TIME_OVERLAP.value,
                        first.conflicting_activity_id,
                        first.conflicting_schedule_id,
                    )
                )
                continue

            if not await self.capacity.reserve_seat(activity_id):
                logger.info(f"No free seat in activity {activity_id}; promotion skipped")
                return outcome

            now = datetime.now(timezone.utc)
            claimed = await self.db_session.execute(
                update(WaitlistEntry)
                .where(
                    WaitlistEntry.id == entry.id,
                    WaitlistEntry.status == WaitlistStatus.WAITING,
                )
                .values(status=WaitlistStatus.PROMOTED, promoted_at=now)
            )
            if claimed.rowcount == 0:
                await self.capacity.release_seat(activity_id)
                continue

            enrollment = Enrollment(
                student_id=entry.student_id,
                activity_id=activity_id,
                enrolled_by=actor_id,
                status=EnrollmentStatus.ACTIVE,
                grade_level=entry.grade_level,
                notes=PROMOTION_NOTE,
            )
            self.db_session.add(enrollment)
            await self.db_session.flush()

            outcome.entry_id = entry.id
            outcome.student_id = entry.student_id
            outcome.enrollment_id = enrollment.id
            logger.info(
                f"Promoted student {entry.student_id} from waitlist into activity {activity_id}"
            )
            return outcome

        return outcome

    async def after_promotion(self, outcome: PromotionOutcome, audit: AuditService) -> None:
        """Write diagnostics and queue emails for a committed promotion."""
        await audit.record_conflicts(
            (
                skipped.student_id,
                outcome.activity_id,
                ConflictType.TIME_OVERLAP,
                skipped.conflicting_activity_id,
                skipped.conflicting_schedule_id,
            )
            for skipped in outcome.skipped
            if skipped.reason == ConflictType.TIME_OVERLAP.value
        )
        if outcome.promoted:
            await audit.record(
                action="waitlist.promoted",
                entity_type="enrollment",
                entity_id=outcome.enrollment_id,
                new_value={
                    "student_id": outcome.student_id,
                    "activity_id": outcome.activity_id,
                    "waitlist_entry_id": outcome.entry_id,
                },
            )
            await NotificationService(self.db_session).promoted(
                outcome.student_id, outcome.activity_id
            )

    async def promote_now(self, activity_id: str, actor: User) -> PromotionOutcome:
        """Admin trigger: promote into an already free seat in its own transaction."""
        activity = await Activity.get_for_update(self.db_session, activity_id)
        if not activity:
            raise NotFoundException(message="Activity not found")

        try:
            outcome = await self.promote(activity_id, actor_id=actor.id)
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise

        await self.after_promotion(outcome, AuditService(self.db_session))
        return outcome

    async def cancel_entry(self, entry_id: str, actor: User) -> WaitlistEntry:
        """Leave the queue. Allowed for admins and the student's account."""
        entry = await WaitlistEntry.get_by_id(self.db_session, entry_id)
        if not entry:
            raise NotFoundException(message="Waitlist entry not found")

        student = await Student.get_by_id(self.db_session, entry.student_id)
        if actor.role != Role.ADMIN and (not student or student.user_id != actor.id):
            raise ForbiddenException(message="You don't have access to this waitlist entry")

        if entry.status != WaitlistStatus.WAITING:
            raise BadRequestException(
                message=f"Only waiting entries can be cancelled (entry is {entry.status.value})"
            )

        entry.status = WaitlistStatus.CANCELLED
        await self.db_session.commit()
        await self.db_session.refresh(entry)

        await AuditService(self.db_session).record(
            action="waitlist.cancelled",
            entity_type="waitlist_entry",
            entity_id=entry.id,
            user_id=actor.id,
            old_value={"status": WaitlistStatus.WAITING.value},
            new_value={"status": WaitlistStatus.CANCELLED.value},
        )
        return entry

    async def set_priority(self, entry_id: str, priority: int, actor: User) -> WaitlistEntry:
        """Change the priority of a waiting entry (admin)."""
        entry = await WaitlistEntry.get_by_id(self.db_session, entry_id)
        if not entry:
            raise NotFoundException(message="Waitlist entry not found")
        if entry.status != WaitlistStatus.WAITING:
            raise BadRequestException(message="Only waiting entries can be re-prioritized")

        previous = entry.priority
        entry.priority = priority
        await self.db_session.commit()
        await self.db_session.refresh(entry)

        await AuditService(self.db_session).record(
            action="waitlist.priority_changed",
            entity_type="waitlist_entry",
            entity_id=entry.id,
            user_id=actor.id,
            old_value={"priority": previous},
            new_value={"priority": priority},
        )
        return entry

    async def list_waiting(
        self, activity_id: str
    ) -> Tuple[Activity, Sequence[Tuple[WaitlistEntry, int]]]:
        """Waiting entries in promotion order with their 1-based rank."""
        activity = await Activity.get_by_id(self.db_session, activity_id)
        if not activity:
            raise NotFoundException(message="Activity not found")

        queue = await WaitlistEntry.get_queue(self.db_session, activity_id)
        return activity, [(entry, rank) for rank, entry in enumerate(queue, start=1)]

    async def get_rank(self, entry: WaitlistEntry) -> Optional[int]:
        if entry.status != WaitlistStatus.WAITING:
            return None
        queue = await WaitlistEntry.get_queue(self.db_session, entry.activity_id)
        for rank, queued in enumerate(queue, start=1):
            if queued.id == entry.id:
                return rank
        return None
