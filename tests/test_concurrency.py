import asyncio
from datetime import time

from sqlalchemy import func, select

from app.models.activity import Activity, Weekday
from app.models.enrollment import Enrollment, OPEN_STATUSES
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.services.enrollment_service import EnrollmentService
from core.exceptions.base import ScheduleConflictException


async def _register(session_factory, student_id, activity_id, actor):
    async with session_factory() as session:
        return await EnrollmentService(session).register_student(student_id, activity_id, actor)


class TestConcurrentRegistration:
    """Every registration runs in its own session, as separate requests would."""

    async def test_capacity_never_exceeded(
        self, session_factory, create_activity, create_student, admin_user
    ):
        seats, applicants = 3, 8
        activity = await create_activity(capacity=seats)
        students = [await create_student(f"S{i}") for i in range(applicants)]

        results = await asyncio.gather(
            *(_register(session_factory, s.id, activity.id, admin_user) for s in students)
        )

        assert sum(1 for r in results if r.result == "enrolled") == seats
        assert sum(1 for r in results if r.result == "waitlisted") == applicants - seats

        async with session_factory() as session:
            open_count = await session.execute(
                select(func.count(Enrollment.id)).where(
                    Enrollment.activity_id == activity.id,
                    Enrollment.status.in_(OPEN_STATUSES),
                )
            )
            assert open_count.scalar() == seats

            refreshed = await Activity.get_by_id(session, activity.id)
            assert refreshed.current_enrollment == seats

            queue = await WaitlistEntry.get_queue(session, activity.id)
            assert sorted(e.position for e in queue) == list(range(1, applicants - seats + 1))

    async def test_same_student_twice_enrolls_once(
        self, session_factory, create_activity, test_student, admin_user
    ):
        activity = await create_activity(capacity=5)

        results = await asyncio.gather(
            _register(session_factory, test_student.id, activity.id, admin_user),
            _register(session_factory, test_student.id, activity.id, admin_user),
            return_exceptions=True,
        )

        enrolled = [r for r in results if not isinstance(r, Exception)]
        assert len(enrolled) == 1
        assert type(results[0]) is not type(results[1])

        async with session_factory() as session:
            count = await session.execute(
                select(func.count(Enrollment.id)).where(Enrollment.student_id == test_student.id)
            )
            assert count.scalar() == 1
            refreshed = await Activity.get_by_id(session, activity.id)
            assert refreshed.current_enrollment == 1

    async def test_concurrent_cancellations_promote_each_once(
        self, session_factory, db_session, create_activity, create_student, admin_user
    ):
        activity = await create_activity(capacity=2)
        holders = [await create_student(f"H{i}") for i in range(2)]
        waiting = [await create_student(f"W{i}") for i in range(3)]

        service = EnrollmentService(db_session)
        enrollments = [
            (await service.register_student(h.id, activity.id, admin_user)).enrollment
            for h in holders
        ]
        for student in waiting:
            await service.register_student(student.id, activity.id, admin_user)

        async def cancel(enrollment_id):
            async with session_factory() as session:
                return await EnrollmentService(session).cancel_enrollment(enrollment_id, admin_user)

        results = await asyncio.gather(*(cancel(e.id) for e in enrollments))
        promoted = {r.promoted_student_id for r in results}
        assert promoted == {waiting[0].id, waiting[1].id}

        async with session_factory() as session:
            entries = await WaitlistEntry.get_by_student_id(session, waiting[2].id)
            assert entries[0].status == WaitlistStatus.WAITING
            refreshed = await Activity.get_by_id(session, activity.id)
            assert refreshed.current_enrollment == 2


class TestConcurrentScheduleChecks:
    async def test_overlapping_activities_for_one_student(
        self, session_factory, create_activity, test_student, admin_user
    ):
        football = await create_activity(
            "Football", capacity=5, slots=[(Weekday.MONDAY, time(16, 0), time(17, 0))]
        )
        drama = await create_activity(
            "Drama", capacity=5, slots=[(Weekday.MONDAY, time(16, 30), time(17, 30))]
        )

        results = await asyncio.gather(
            _register(session_factory, test_student.id, football.id, admin_user),
            _register(session_factory, test_student.id, drama.id, admin_user),
            return_exceptions=True,
        )

        enrolled = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, ScheduleConflictException)]
        assert len(enrolled) == 1
        assert len(rejected) == 1

        async with session_factory() as session:
            count = await session.execute(
                select(func.count(Enrollment.id)).where(
                    Enrollment.student_id == test_student.id,
                    Enrollment.status.in_(OPEN_STATUSES),
                )
            )
            assert count.scalar() == 1
