from datetime import datetime, time, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.models.activity import ActivityStatus, Venue, Weekday
from app.models.audit import AuditLog
from app.models.conflict import ConflictType, EnrollmentConflict
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.services.enrollment_service import EnrollmentService
from core.exceptions.base import (
    ActivityInactiveException,
    AgeRestrictionException,
    AlreadyEnrolledException,
    AlreadyWaitlistedException,
    ForbiddenException,
    GradeRestrictionException,
    NotFoundException,
    ScheduleConflictException,
)


async def count_rows(db_session, model, *conditions) -> int:
    result = await db_session.execute(select(func.count(model.id)).where(*conditions))
    return result.scalar()


class TestRegisterStudent:
    async def test_enrolls_when_seat_free(self, db_session, test_activity, test_student, parent_user):
        result = await EnrollmentService(db_session).register_student(
            test_student.id, test_activity.id, parent_user, notes="Keen striker"
        )

        assert result.enrolled
        assert result.enrollment.status == EnrollmentStatus.ACTIVE
        assert result.enrollment.enrolled_by == parent_user.id
        assert result.enrollment.grade_level == 7
        assert result.enrollment.notes == "Keen striker"

        await db_session.refresh(test_activity)
        assert test_activity.current_enrollment == 1

    async def test_audit_record_written(self, db_session, test_activity, test_student, parent_user):
        result = await EnrollmentService(db_session, ip_address="10.0.0.7").register_student(
            test_student.id, test_activity.id, parent_user
        )

        logs = await AuditLog.get_for_entity(db_session, "enrollment", result.enrollment.id)
        assert [log.action for log in logs] == ["enrollment.created"]
        assert logs[0].user_id == parent_user.id
        assert logs[0].ip_address == "10.0.0.7"

    async def test_duplicate_registration(self, db_session, test_activity, test_student, parent_user):
        service = EnrollmentService(db_session)
        await service.register_student(test_student.id, test_activity.id, parent_user)

        with pytest.raises(AlreadyEnrolledException):
            await service.register_student(test_student.id, test_activity.id, parent_user)

        assert await count_rows(db_session, Enrollment, Enrollment.student_id == test_student.id) == 1

    async def test_waitlisted_when_full(self, db_session, create_activity, create_student, admin_user):
        activity = await create_activity(capacity=1)
        first = await create_student("First")
        second = await create_student("Second")
        service = EnrollmentService(db_session)

        await service.register_student(first.id, activity.id, admin_user)
        result = await service.register_student(second.id, activity.id, admin_user)

        assert result.result == "waitlisted"
        assert result.position == 1
        assert result.waitlist_entry.student_id == second.id
        assert await count_rows(
            db_session,
            EnrollmentConflict,
            EnrollmentConflict.student_id == second.id,
            EnrollmentConflict.conflict_type == ConflictType.QUOTA_FULL,
        ) == 1

        with pytest.raises(AlreadyWaitlistedException):
            await service.register_student(second.id, activity.id, admin_user)

    async def test_schedule_conflict(self, db_session, create_activity, test_student, admin_user):
        football = await create_activity("Football", slots=[(Weekday.MONDAY, time(16, 0), time(17, 0))])
        drama = await create_activity("Drama", slots=[(Weekday.MONDAY, time(16, 30), time(17, 30))])
        service = EnrollmentService(db_session)
        await service.register_student(test_student.id, football.id, admin_user)

        with pytest.raises(ScheduleConflictException) as exc_info:
            await service.register_student(test_student.id, drama.id, admin_user)

        details = exc_info.value.data["conflict_details"]
        assert details[0]["conflicting_activity_id"] == football.id
        assert details[0]["day_of_week"] == "monday"
        assert await count_rows(
            db_session,
            EnrollmentConflict,
            EnrollmentConflict.attempted_activity_id == drama.id,
            EnrollmentConflict.conflict_type == ConflictType.TIME_OVERLAP,
        ) == 1
        assert await count_rows(db_session, Enrollment, Enrollment.activity_id == drama.id) == 0

    async def test_adjacent_slot_is_allowed(self, db_session, create_activity, test_student, admin_user):
        football = await create_activity("Football", slots=[(Weekday.MONDAY, time(16, 0), time(17, 0))])
        chess = await create_activity("Chess", slots=[(Weekday.MONDAY, time(17, 0), time(18, 0))])
        service = EnrollmentService(db_session)

        await service.register_student(test_student.id, football.id, admin_user)
        result = await service.register_student(test_student.id, chess.id, admin_user)
        assert result.enrolled

    async def test_withdrawn_enrollment_does_not_conflict(
        self, db_session, create_activity, test_student, admin_user
    ):
        football = await create_activity("Football", slots=[(Weekday.MONDAY, time(16, 0), time(17, 0))])
        drama = await create_activity("Drama", slots=[(Weekday.MONDAY, time(16, 30), time(17, 30))])
        service = EnrollmentService(db_session)

        first = await service.register_student(test_student.id, football.id, admin_user)
        await service.cancel_enrollment(first.enrollment.id, admin_user)

        result = await service.register_student(test_student.id, drama.id, admin_user)
        assert result.enrolled

    async def test_grade_restriction(self, db_session, create_activity, test_student, admin_user):
        activity = await create_activity(min_grade=9, max_grade=12)

        with pytest.raises(GradeRestrictionException):
            await EnrollmentService(db_session).register_student(test_student.id, activity.id, admin_user)

        assert await count_rows(
            db_session,
            EnrollmentConflict,
            EnrollmentConflict.conflict_type == ConflictType.GRADE_RESTRICTION,
        ) == 1

    async def test_requested_grade_overrides_student_grade(
        self, db_session, create_activity, test_student, admin_user
    ):
        activity = await create_activity(min_grade=9)
        result = await EnrollmentService(db_session).register_student(
            test_student.id, activity.id, admin_user, grade_level=9
        )
        assert result.enrollment.grade_level == 9

    async def test_age_restriction(self, db_session, create_activity, create_student, admin_user):
        activity = await create_activity(max_age=10)
        student = await create_student(age=12)

        with pytest.raises(AgeRestrictionException):
            await EnrollmentService(db_session).register_student(student.id, activity.id, admin_user)

    async def test_inactive_activity(self, db_session, create_activity, test_student, admin_user):
        activity = await create_activity(status=ActivityStatus.CANCELLED)
        with pytest.raises(ActivityInactiveException):
            await EnrollmentService(db_session).register_student(test_student.id, activity.id, admin_user)

    async def test_registration_window_closed(self, db_session, create_activity, test_student, admin_user):
        activity = await create_activity(
            registration_end=datetime.now(timezone.utc) - timedelta(days=1)
        )
        service = EnrollmentService(db_session)
        with pytest.raises(ActivityInactiveException):
            await service.register_student(test_student.id, activity.id, admin_user)

        result = await service.register_student(
            test_student.id, activity.id, admin_user, override_quota=True
        )
        assert result.enrolled

    async def test_unknown_activity_and_student(self, db_session, test_activity, test_student, admin_user):
        service = EnrollmentService(db_session)
        with pytest.raises(NotFoundException):
            await service.register_student(test_student.id, "missing", admin_user)
        with pytest.raises(NotFoundException):
            await service.register_student("missing", test_activity.id, admin_user)

    async def test_other_account_cannot_register(
        self, db_session, test_activity, test_student, other_parent
    ):
        with pytest.raises(ForbiddenException):
            await EnrollmentService(db_session).register_student(
                test_student.id, test_activity.id, other_parent
            )

    async def test_override_requires_admin(self, db_session, test_activity, test_student, parent_user):
        with pytest.raises(ForbiddenException):
            await EnrollmentService(db_session).register_student(
                test_student.id, test_activity.id, parent_user, override_quota=True
            )

    async def test_admin_override_exceeds_capacity(
        self, db_session, create_activity, create_student, admin_user
    ):
        activity = await create_activity(capacity=1)
        first = await create_student("First")
        second = await create_student("Second")
        service = EnrollmentService(db_session)

        await service.register_student(first.id, activity.id, admin_user)
        result = await service.register_student(second.id, activity.id, admin_user, override_quota=True)

        assert result.enrolled
        await db_session.refresh(activity)
        assert activity.current_enrollment == 2

    async def test_venue_double_booking_is_a_warning(
        self, db_session, create_activity, test_student, admin_user
    ):
        venue = Venue(name="Main Gymnasium")
        db_session.add(venue)
        await db_session.commit()

        await create_activity("Basketball", venue_id=venue.id)
        football = await create_activity("Football", venue_id=venue.id)

        result = await EnrollmentService(db_session).register_student(
            test_student.id, football.id, admin_user
        )
        assert result.enrolled
        assert len(result.warnings) == 1
        assert await count_rows(
            db_session,
            EnrollmentConflict,
            EnrollmentConflict.conflict_type == ConflictType.VENUE_CONFLICT,
        ) == 1


class TestRoundTrip:
    async def test_register_cancel_register(self, db_session, test_activity, test_student, parent_user):
        service = EnrollmentService(db_session)

        first = await service.register_student(test_student.id, test_activity.id, parent_user)
        await service.cancel_enrollment(first.enrollment.id, parent_user, reason="Changed mind")
        second = await service.register_student(test_student.id, test_activity.id, parent_user)

        assert second.enrolled
        assert second.enrollment.id != first.enrollment.id

        rows = await db_session.execute(
            select(Enrollment.status).where(Enrollment.student_id == test_student.id)
        )
        statuses = sorted(status.value for status in rows.scalars().all())
        assert statuses == ["active", "withdrawn"]

        await db_session.refresh(test_activity)
        assert test_activity.current_enrollment == 1
