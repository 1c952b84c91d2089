"""Enrollment state machine: registration, withdrawal and status changes.

Every operation that moves a seat runs as one transaction: the activity row
is locked, the seat counter is changed with a conditional UPDATE and the
enrollment/waitlist rows are written before a single commit. Conflict
diagnostics, audit records and emails follow after the commit.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity, ActivityStatus
from app.models.conflict import ConflictType, EnrollmentConflict
from app.models.enrollment import (
    OPEN_STATUSES,
    PROMOTING_STATUSES,
    Enrollment,
    EnrollmentStatus,
)
from app.models.student import Student
from app.models.user import Role, User
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.services.audit_service import AuditService
from app.services.capacity_service import CapacityService
from app.services.conflict_service import ScheduleConflictChecker
from app.services.notification_service import NotificationService
from app.services.waitlist_service import PromotionOutcome, WaitlistService
from core.exceptions.base import (
    ActivityInactiveException,
    AgeRestrictionException,
    AlreadyEnrolledException,
    AlreadyWaitlistedException,
    ForbiddenException,
    GradeRestrictionException,
    InvalidStatusException,
    InvalidStatusTransitionException,
    NotFoundException,
    ScheduleConflictException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RegistrationResult:
    """Either a new enrollment or a waitlist spot."""

    result: str  # "enrolled" or "waitlisted"
    enrollment: Optional[Enrollment] = None
    waitlist_entry: Optional[WaitlistEntry] = None
    position: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def enrolled(self) -> bool:
        return self.result == "enrolled"


@dataclass
class CancellationResult:
    enrollment: Enrollment
    promoted_student_id: Optional[str] = None


@dataclass
class StatusChangeResult:
    enrollment: Enrollment
    changed: bool
    promoted_student_id: Optional[str] = None


def _snapshot(enrollment: Enrollment) -> Dict[str, Optional[str]]:
    return {
        "student_id": enrollment.student_id,
        "activity_id": enrollment.activity_id,
        "status": enrollment.status.value,
    }


class EnrollmentService:
    """Service for the enrollment lifecycle."""

    def __init__(
        self,
        db_session: AsyncSession,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db_session = db_session
        self.capacity = CapacityService(db_session)
        self.checker = ScheduleConflictChecker(db_session)
        self.waitlist = WaitlistService(db_session)
        self.audit = AuditService(db_session, ip_address=ip_address, user_agent=user_agent)
        self.notifications = NotificationService(db_session)

    # ============== Permissions ==============

    @staticmethod
    def ensure_can_act_for_student(actor: User, student: Student) -> None:
        if actor.role == Role.ADMIN:
            return
        if student.user_id and student.user_id == actor.id:
            return
        raise ForbiddenException(message="You can only manage your own enrollments")

    @staticmethod
    def ensure_can_manage_activity(actor: User, activity: Activity) -> None:
        if actor.role == Role.ADMIN:
            return
        if actor.role == Role.COACH and activity.coach_id == actor.id:
            return
        raise ForbiddenException(message="Only the activity's coach or an admin can do this")

    # ============== Registration ==============

    async def register_student(
        self,
        student_id: str,
        activity_id: str,
        actor: User,
        grade_level: Optional[int] = None,
        notes: Optional[str] = None,
        override_quota: bool = False,
    ) -> RegistrationResult:
        """
        Register a student for an activity, or waitlist them when it is full.

        Checks run in order: activity exists and is open, student exists,
        no open enrollment already, grade/age bounds, schedule conflicts.
        Venue double-booking only produces a warning.

        Args:
            student_id: Student to enroll
            activity_id: Target activity
            actor: Authenticated user performing the registration
            grade_level: Grade to check and store; defaults to the student's grade
            notes: Free-text notes
            override_quota: Admin only; bypass registration window and capacity

        Raises:
            NotFoundException: Activity or student not found
            ActivityInactiveException: Activity not active or registration closed
            AlreadyEnrolledException: Student already holds a seat
            AlreadyWaitlistedException: Activity full and student already waiting
            GradeRestrictionException / AgeRestrictionException: Outside bounds
            ScheduleConflictException: Weekly time slot overlap
        """
        if override_quota and actor.role != Role.ADMIN:
            raise ForbiddenException(message="Only admins can override capacity")

        activity = await Activity.get_for_update(self.db_session, activity_id)
        if not activity:
            raise NotFoundException(message="Activity not found")
        if activity.status != ActivityStatus.ACTIVE:
            raise ActivityInactiveException(message=f"Activity is {activity.status.value}")
        if not override_quota and not activity.registration_open(datetime.now(timezone.utc)):
            raise ActivityInactiveException(message="Registration window is closed")

        student = await Student.get_by_id(self.db_session, student_id)
        if not student:
            raise NotFoundException(message="Student not found")
        self.ensure_can_act_for_student(actor, student)

        if await Enrollment.get_open(self.db_session, student_id, activity_id):
            raise AlreadyEnrolledException()

        effective_grade = grade_level if grade_level is not None else student.grade_level
        violation = self.checker.check_restrictions(
            student, activity, effective_grade, datetime.now(timezone.utc).date()
        )
        if violation:
            await self.db_session.rollback()
            await self.audit.record_conflict(student_id, activity_id, violation.conflict_type)
            if violation.conflict_type == ConflictType.GRADE_RESTRICTION:
                raise GradeRestrictionException(message=violation.message)
            raise AgeRestrictionException(message=violation.message)

        # Serializes registrations of the same student across activities
        await Student.lock(self.db_session, student_id)
        conflicts = await self.checker.find_time_conflicts(student_id, activity_id)
        if conflicts:
            await self.db_session.rollback()
            await self.audit.record_conflicts(
                (student_id, activity_id, ConflictType.TIME_OVERLAP,
                 c.conflicting_activity_id, c.conflicting_schedule_id)
                for c in conflicts
            )
            first = conflicts[0]
            raise ScheduleConflictException(
                message=(
                    f"Time slot conflict with {first.conflicting_activity_name or 'another activity'}"
                    f" on {first.day_of_week} {first.start_time}-{first.end_time}"
                ),
                data={"conflict_details": [c.to_dict() for c in conflicts]},
            )

        venue_conflicts = await self.checker.find_venue_conflicts(activity_id)
        warnings = []
        for vc in venue_conflicts:
            logger.warning(
                f"Venue {vc.venue_id} double-booked on {vc.day_of_week}: activity {activity_id} "
                f"and activity {vc.conflicting_activity_id}"
            )
            warnings.append(f"Venue is also booked by another activity on {vc.day_of_week}")

        try:
            reserved = await self.capacity.reserve_seat(activity_id, override_quota=override_quota)
            if reserved:
                result = await self._insert_enrollment(
                    student_id, activity_id, actor, effective_grade, notes, override_quota
                )
            else:
                result = await self._enqueue(student_id, activity_id, effective_grade, notes)
        except Exception:
            await self.db_session.rollback()
            raise
        result.warnings = warnings

        await self.audit.record_conflicts(
            (student_id, activity_id, ConflictType.VENUE_CONFLICT,
             vc.conflicting_activity_id, vc.conflicting_schedule_id)
            for vc in venue_conflicts
        )
        if result.enrolled:
            await self.audit.record(
                action="enrollment.created",
                entity_type="enrollment",
                entity_id=result.enrollment.id,
                user_id=actor.id,
                new_value={**_snapshot(result.enrollment), "override_quota": override_quota},
            )
            await self.notifications.enrollment_confirmed(student_id, activity_id)
        else:
            await self.audit.record_conflict(student_id, activity_id, ConflictType.QUOTA_FULL)
            await self.audit.record(
                action="waitlist.joined",
                entity_type="waitlist_entry",
                entity_id=result.waitlist_entry.id,
                user_id=actor.id,
                new_value={"student_id": student_id, "activity_id": activity_id, "position": result.position},
            )
            await self.notifications.waitlisted(student_id, activity_id, result.position)

        return result

    async def _insert_enrollment(
        self,
        student_id: str,
        activity_id: str,
        actor: User,
        grade_level: Optional[int],
        notes: Optional[str],
        override_quota: bool,
    ) -> RegistrationResult:
        enrollment = Enrollment(
            student_id=student_id,
            activity_id=activity_id,
            enrolled_by=actor.id,
            status=EnrollmentStatus.ACTIVE,
            grade_level=grade_level,
            notes=notes,
        )
        self.db_session.add(enrollment)
        try:
            # A direct seat satisfies any queued request for the same activity
            closed = await WaitlistEntry.close_waiting(
                self.db_session, student_id, activity_id, WaitlistStatus.PROMOTED
            )
            await self.db_session.commit()
        except IntegrityError:
            # Partial unique index: a concurrent request enrolled the same student first
            await self.db_session.rollback()
            raise AlreadyEnrolledException()
        await self.db_session.refresh(enrollment)

        logger.info(
            f"Student {student_id} enrolled in activity {activity_id}"
            + (" (capacity override)" if override_quota else "")
            + (" (waitlist entry closed)" if closed else "")
        )
        return RegistrationResult(result="enrolled", enrollment=enrollment)

    async def _enqueue(
        self,
        student_id: str,
        activity_id: str,
        grade_level: Optional[int],
        notes: Optional[str],
    ) -> RegistrationResult:
        entry = await self.waitlist.enqueue(student_id, activity_id, grade_level, notes)
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            raise AlreadyWaitlistedException()
        await self.db_session.refresh(entry)
        return RegistrationResult(
            result="waitlisted", waitlist_entry=entry, position=entry.position
        )

    # ============== Withdrawal / status changes ==============

    async def cancel_enrollment(
        self,
        enrollment_id: str,
        actor: User,
        student_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        """Withdraw an enrollment and promote the next eligible waiting student.

        The withdrawal, seat release and promotion commit together.
        """
        enrollment = await Enrollment.get_by_id(self.db_session, enrollment_id)
        if not enrollment or (student_id and enrollment.student_id != student_id):
            raise NotFoundException(message="Enrollment not found")

        student = await Student.get_by_id(self.db_session, enrollment.student_id)
        if not student:
            raise NotFoundException(message="Student not found")
        self.ensure_can_act_for_student(actor, student)

        if enrollment.status not in OPEN_STATUSES:
            raise InvalidStatusTransitionException(
                message=f"Enrollment is already {enrollment.status.value}",
                data={"from": enrollment.status.value, "to": EnrollmentStatus.WITHDRAWN.value},
            )

        activity_id = enrollment.activity_id
        enrolled_student_id = enrollment.student_id
        old_value = _snapshot(enrollment)

        try:
            await Activity.get_for_update(self.db_session, activity_id)
            moved = await Enrollment.transition(
                self.db_session,
                enrollment_id,
                OPEN_STATUSES,
                status=EnrollmentStatus.WITHDRAWN,
                cancelled_at=datetime.now(timezone.utc),
                cancellation_reason=reason,
            )
            if not moved:
                raise InvalidStatusTransitionException(message="Enrollment was already withdrawn")
            await self.capacity.release_seat(activity_id)
            outcome = await self.waitlist.promote(
                activity_id, actor_id=actor.id, leaving_student_id=enrolled_student_id
            )
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise

        await self.db_session.refresh(enrollment)
        logger.info(
            f"Enrollment {enrollment_id} withdrawn by {actor.id}"
            + (f"; promoted student {outcome.student_id}" if outcome.promoted else "")
        )

        await self.audit.record(
            action="enrollment.withdrawn",
            entity_type="enrollment",
            entity_id=enrollment_id,
            user_id=actor.id,
            old_value=old_value,
            new_value={"status": EnrollmentStatus.WITHDRAWN.value, "reason": reason},
        )
        await self.waitlist.after_promotion(outcome, self.audit)
        await self.notifications.withdrawn(enrolled_student_id, activity_id, reason)

        return CancellationResult(enrollment=enrollment, promoted_student_id=outcome.student_id)

    async def update_enrollment_status(
        self, enrollment_id: str, new_status: str, actor: User
    ) -> StatusChangeResult:
        """
        Move an enrollment along the state machine (coach of the activity or admin).

        Withdrawn and rejected free the seat and promote from the waitlist;
        completed frees the seat only. Setting the current status is a no-op.

        Raises:
            InvalidStatusException: Unknown status value
            NotFoundException: Enrollment not found
            InvalidStatusTransitionException: Transition not allowed
        """
        target = EnrollmentStatus.parse(new_status)
        if target is None:
            raise InvalidStatusException(
                message=f"Invalid status '{new_status}'",
                data={"allowed": [s.value for s in EnrollmentStatus]},
            )

        enrollment = await Enrollment.get_by_id(self.db_session, enrollment_id)
        if not enrollment:
            raise NotFoundException(message="Enrollment not found")

        activity = await Activity.get_by_id(self.db_session, enrollment.activity_id)
        self.ensure_can_manage_activity(actor, activity)

        current = enrollment.status
        if current == target:
            return StatusChangeResult(enrollment=enrollment, changed=False)
        if not current.can_transition(target):
            raise InvalidStatusTransitionException(
                message=f"Cannot change enrollment from {current.value} to {target.value}",
                data={"from": current.value, "to": target.value},
            )

        activity_id = enrollment.activity_id
        student_id = enrollment.student_id
        values = {"status": target}
        if target in PROMOTING_STATUSES:
            values["cancelled_at"] = datetime.now(timezone.utc)

        outcome = PromotionOutcome(activity_id=activity_id)
        try:
            await Activity.get_for_update(self.db_session, activity_id)
            moved = await Enrollment.transition(self.db_session, enrollment_id, [current], **values)
            if not moved:
                raise InvalidStatusTransitionException(
                    message="Enrollment status was changed by another request"
                )
            if current in OPEN_STATUSES and target not in OPEN_STATUSES:
                await self.capacity.release_seat(activity_id)
            if target in PROMOTING_STATUSES:
                outcome = await self.waitlist.promote(
                    activity_id, actor_id=actor.id, leaving_student_id=student_id
                )
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise

        await self.db_session.refresh(enrollment)
        logger.info(f"Enrollment {enrollment_id}: {current.value} -> {target.value} by {actor.id}")

        await self.audit.record(
            action="enrollment.status_changed",
            entity_type="enrollment",
            entity_id=enrollment_id,
            user_id=actor.id,
            old_value={"status": current.value},
            new_value={"status": target.value},
        )
        await self.waitlist.after_promotion(outcome, self.audit)

        return StatusChangeResult(
            enrollment=enrollment, changed=True, promoted_student_id=outcome.student_id
        )

    async def add_performance_remark(
        self, enrollment_id: str, remark: str, actor: User
    ) -> Enrollment:
        enrollment = await Enrollment.get_by_id(self.db_session, enrollment_id)
        if not enrollment:
            raise NotFoundException(message="Enrollment not found")

        activity = await Activity.get_by_id(self.db_session, enrollment.activity_id)
        self.ensure_can_manage_activity(actor, activity)

        previous = enrollment.performance_remark
        enrollment.performance_remark = remark
        await self.db_session.commit()
        await self.db_session.refresh(enrollment)

        await self.audit.record(
            action="enrollment.remark_added",
            entity_type="enrollment",
            entity_id=enrollment_id,
            user_id=actor.id,
            old_value={"performance_remark": previous},
            new_value={"performance_remark": remark},
        )
        return enrollment

    async def delete_enrollment(self, enrollment_id: str, actor: User) -> Optional[str]:
        """Hard delete (admin). Frees the seat and promotes when the row held one.

        Returns the promoted student id, if any.
        """
        if actor.role != Role.ADMIN:
            raise ForbiddenException(message="Only admins can delete enrollments")

        enrollment = await Enrollment.get_by_id(self.db_session, enrollment_id)
        if not enrollment:
            raise NotFoundException(message="Enrollment not found")

        activity_id = enrollment.activity_id
        held_seat = enrollment.is_open
        old_value = _snapshot(enrollment)

        outcome = PromotionOutcome(activity_id=activity_id)
        try:
            await Activity.get_for_update(self.db_session, activity_id)
            await self.db_session.execute(delete(Enrollment).where(Enrollment.id == enrollment_id))
            if held_seat:
                await self.capacity.release_seat(activity_id)
                outcome = await self.waitlist.promote(
                    activity_id, actor_id=actor.id, leaving_student_id=old_value["student_id"]
                )
            await self.db_session.commit()
        except Exception:
            await self.db_session.rollback()
            raise

        logger.info(f"Enrollment {enrollment_id} deleted by admin {actor.id}")
        await self.audit.record(
            action="enrollment.deleted",
            entity_type="enrollment",
            entity_id=enrollment_id,
            user_id=actor.id,
            old_value=old_value,
        )
        await self.waitlist.after_promotion(outcome, self.audit)
        return outcome.student_id

    # ============== Queries ==============

    async def get_student_enrollments(self, student_id: str) -> Sequence[Enrollment]:
        if not await Student.get_by_id(self.db_session, student_id):
            raise NotFoundException(message="Student not found")
        return await Enrollment.get_by_student_id(self.db_session, student_id)

    async def get_activity_enrollments(self, activity_id: str) -> Sequence[Enrollment]:
        if not await Activity.get_by_id(self.db_session, activity_id):
            raise NotFoundException(message="Activity not found")
        return await Enrollment.get_open_by_activity_id(self.db_session, activity_id)

    async def get_enrollment_stats(self) -> Dict[str, object]:
        """System-wide enrollment counters for the admin dashboard."""
        by_status = {status.value: 0 for status in EnrollmentStatus}
        rows = await self.db_session.execute(
            select(Enrollment.status, func.count(Enrollment.id)).group_by(Enrollment.status)
        )
        for status, count in rows.all():
            by_status[status.value] = count

        waiting = await self.db_session.execute(
            select(func.count(WaitlistEntry.id)).where(
                WaitlistEntry.status == WaitlistStatus.WAITING
            )
        )
        unresolved = await self.db_session.execute(
            select(func.count(EnrollmentConflict.id)).where(
                EnrollmentConflict.resolved == False
            )
        )
        full = await self.db_session.execute(
            select(func.count(Activity.id)).where(
                Activity.status == ActivityStatus.ACTIVE,
                Activity.current_enrollment >= Activity.capacity,
            )
        )
        return {
            "total_enrollments": sum(by_status.values()),
            "by_status": by_status,
            "waiting_entries": waiting.scalar() or 0,
            "unresolved_conflicts": unresolved.scalar() or 0,
            "activities_full": full.scalar() or 0,
        }
