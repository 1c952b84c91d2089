from datetime import time

import pytest
from httpx import AsyncClient

from app.models.activity import Weekday
from app.models.conflict import EnrollmentConflict
from app.services.enrollment_service import EnrollmentService

pytestmark = pytest.mark.asyncio


async def register(client: AsyncClient, headers: dict, student_id: str, activity_id: str, **extra):
    return await client.post(
        "/api/v1/enrollments/register",
        headers=headers,
        json={"student_id": student_id, "activity_id": activity_id, **extra},
    )


class TestRegisterEndpoint:
    async def test_register_enrolled(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        response = await register(client, parent_headers, test_student.id, test_activity.id)

        assert response.status_code == 201
        data = response.json()
        assert data["result"] == "enrolled"
        assert data["enrollment"]["status"] == "active"
        assert data["enrollment"]["student_name"] == "Alex Kumar"
        assert data["enrollment"]["activity_name"] == "Football Training"
        assert data["warnings"] == []

    async def test_register_waitlisted(
        self, client: AsyncClient, admin_headers, create_activity, create_student
    ):
        activity = await create_activity(capacity=1)
        first = await create_student("First")
        second = await create_student("Second")

        await register(client, admin_headers, first.id, activity.id)
        response = await register(client, admin_headers, second.id, activity.id)

        assert response.status_code == 201
        data = response.json()
        assert data["result"] == "waitlisted"
        assert data["position"] == 1
        assert data["waitlist_entry_id"]
        assert data["enrollment"] is None

    async def test_duplicate_is_conflict(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        await register(client, parent_headers, test_student.id, test_activity.id)
        response = await register(client, parent_headers, test_student.id, test_activity.id)

        assert response.status_code == 409
        assert response.json()["error_code"] == "ALREADY_ENROLLED"

    async def test_schedule_conflict_details(
        self, client: AsyncClient, parent_headers, create_activity, test_student
    ):
        football = await create_activity(
            "Football", slots=[(Weekday.MONDAY, time(16, 0), time(17, 0))]
        )
        drama = await create_activity(
            "Drama", slots=[(Weekday.MONDAY, time(16, 30), time(17, 30))]
        )
        await register(client, parent_headers, test_student.id, football.id)

        response = await register(client, parent_headers, test_student.id, drama.id)

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "SCHEDULE_CONFLICT"
        details = body["data"]["conflict_details"]
        assert details[0]["conflicting_activity_id"] == football.id
        assert details[0]["conflicting_activity_name"] == "Football"

    async def test_other_parent_forbidden(
        self, client: AsyncClient, other_parent_headers, test_student, test_activity
    ):
        response = await register(client, other_parent_headers, test_student.id, test_activity.id)
        assert response.status_code == 403

    async def test_grade_restriction_error_code(
        self, client: AsyncClient, parent_headers, create_activity, test_student
    ):
        activity = await create_activity(min_grade=9)
        response = await register(client, parent_headers, test_student.id, activity.id)

        assert response.status_code == 400
        assert response.json()["error_code"] == "GRADE_RESTRICTION"

    async def test_unauthenticated(self, client: AsyncClient, test_student, test_activity):
        response = await register(client, {}, test_student.id, test_activity.id)
        assert response.status_code == 401


class TestOverrideEndpoint:
    async def test_admin_override_past_capacity(
        self, client: AsyncClient, admin_headers, create_activity, create_student
    ):
        activity = await create_activity(capacity=1)
        first = await create_student("First")
        second = await create_student("Second")
        await register(client, admin_headers, first.id, activity.id)

        response = await client.post(
            "/api/v1/enrollments/override",
            headers=admin_headers,
            json={"student_id": second.id, "activity_id": activity.id},
        )

        assert response.status_code == 201
        assert response.json()["result"] == "enrolled"

        seats = await client.get(f"/api/v1/activities/{activity.id}/seats")
        assert seats.json()["active_count"] == 2
        assert seats.json()["has_room"] is False

    async def test_non_admin_forbidden(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        response = await client.post(
            "/api/v1/enrollments/override",
            headers=parent_headers,
            json={"student_id": test_student.id, "activity_id": test_activity.id},
        )
        assert response.status_code == 403


class TestCancelEndpoint:
    async def test_cancel_promotes_next(
        self, client: AsyncClient, admin_headers, parent_headers, create_activity, test_student, create_student
    ):
        activity = await create_activity(capacity=1)
        waiting = await create_student("Waiting")

        enrolled = await register(client, parent_headers, test_student.id, activity.id)
        await register(client, admin_headers, waiting.id, activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.post(
            f"/api/v1/enrollments/{enrollment_id}/cancel",
            headers=parent_headers,
            json={"reason": "Schedule change"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["enrollment"]["status"] == "withdrawn"
        assert data["enrollment"]["cancellation_reason"] == "Schedule change"
        assert data["promoted_student_id"] == waiting.id

    async def test_cancel_without_body(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.post(
            f"/api/v1/enrollments/{enrollment_id}/cancel", headers=parent_headers
        )
        assert response.status_code == 200
        assert response.json()["promoted_student_id"] is None

    async def test_cancel_twice(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        await client.post(f"/api/v1/enrollments/{enrollment_id}/cancel", headers=parent_headers)
        response = await client.post(
            f"/api/v1/enrollments/{enrollment_id}/cancel", headers=parent_headers
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATUS_TRANSITION"

    async def test_other_parent_cannot_cancel(
        self,
        client: AsyncClient,
        parent_headers,
        other_parent_headers,
        test_student,
        test_activity,
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.post(
            f"/api/v1/enrollments/{enrollment_id}/cancel", headers=other_parent_headers
        )
        assert response.status_code == 403


class TestStatusEndpoints:
    async def test_coach_approves(
        self, client: AsyncClient, parent_headers, coach_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.patch(
            f"/api/v1/enrollments/{enrollment_id}/status",
            headers=coach_headers,
            json={"status": "approved"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["changed"] is True
        assert data["enrollment"]["status"] == "approved"

    async def test_invalid_status(
        self, client: AsyncClient, parent_headers, coach_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.patch(
            f"/api/v1/enrollments/{enrollment_id}/status",
            headers=coach_headers,
            json={"status": "paused"},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_STATUS"

    async def test_parent_cannot_change_status(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.patch(
            f"/api/v1/enrollments/{enrollment_id}/status",
            headers=parent_headers,
            json={"status": "approved"},
        )
        assert response.status_code == 403

    async def test_remark(
        self, client: AsyncClient, parent_headers, coach_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.patch(
            f"/api/v1/enrollments/{enrollment_id}/remark",
            headers=coach_headers,
            json={"performance_remark": "Great first touch"},
        )
        assert response.status_code == 200
        assert response.json()["performance_remark"] == "Great first touch"


class TestReadEndpoints:
    async def test_get_enrollment_visibility(
        self,
        client: AsyncClient,
        parent_headers,
        other_parent_headers,
        coach_headers,
        test_student,
        test_activity,
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        own = await client.get(f"/api/v1/enrollments/{enrollment_id}", headers=parent_headers)
        assert own.status_code == 200
        assert own.json()["id"] == enrollment_id

        staff = await client.get(f"/api/v1/enrollments/{enrollment_id}", headers=coach_headers)
        assert staff.status_code == 200

        other = await client.get(
            f"/api/v1/enrollments/{enrollment_id}", headers=other_parent_headers
        )
        assert other.status_code == 403

    async def test_coach_of_other_activity_cannot_read(
        self,
        client: AsyncClient,
        parent_headers,
        other_coach_headers,
        test_student,
        test_activity,
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        enrollment_id = enrolled.json()["enrollment"]["id"]

        response = await client.get(
            f"/api/v1/enrollments/{enrollment_id}", headers=other_coach_headers
        )
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    async def test_get_missing(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/enrollments/missing", headers=admin_headers)
        assert response.status_code == 404

    async def test_list_filters_and_stats(
        self, client: AsyncClient, admin_headers, create_activity, create_student
    ):
        activity = await create_activity(capacity=1)
        first = await create_student("First")
        second = await create_student("Second")
        await register(client, admin_headers, first.id, activity.id)
        await register(client, admin_headers, second.id, activity.id)

        listing = await client.get(
            f"/api/v1/enrollments/?activity_id={activity.id}&status=active",
            headers=admin_headers,
        )
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["student_id"] == first.id

        stats = await client.get("/api/v1/enrollments/stats", headers=admin_headers)
        assert stats.status_code == 200
        data = stats.json()
        assert data["total_enrollments"] == 1
        assert data["by_status"]["active"] == 1
        assert data["waiting_entries"] == 1
        assert data["activities_full"] == 1

    async def test_list_requires_admin(self, client: AsyncClient, coach_headers):
        response = await client.get("/api/v1/enrollments/", headers=coach_headers)
        assert response.status_code == 403


class TestDeleteEndpoint:
    async def test_delete_promotes(
        self, client: AsyncClient, admin_headers, create_activity, create_student
    ):
        activity = await create_activity(capacity=1)
        holder = await create_student("Holder")
        waiting = await create_student("Waiting")
        enrolled = await register(client, admin_headers, holder.id, activity.id)
        await register(client, admin_headers, waiting.id, activity.id)

        response = await client.delete(
            f"/api/v1/enrollments/{enrolled.json()['enrollment']['id']}",
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["promoted_student_id"] == waiting.id

    async def test_delete_requires_admin(
        self, client: AsyncClient, parent_headers, test_student, test_activity
    ):
        enrolled = await register(client, parent_headers, test_student.id, test_activity.id)
        response = await client.delete(
            f"/api/v1/enrollments/{enrolled.json()['enrollment']['id']}",
            headers=parent_headers,
        )
        assert response.status_code == 403


class TestWaitlistEndpoints:
    async def test_queue_priority_and_cancel(
        self,
        client: AsyncClient,
        admin_headers,
        coach_headers,
        parent_headers,
        create_activity,
        create_student,
        test_student,
    ):
        activity = await create_activity(capacity=1)
        holder = await create_student("Holder")
        other = await create_student("Other")
        await register(client, admin_headers, holder.id, activity.id)
        await register(client, admin_headers, other.id, activity.id)
        mine = await register(client, parent_headers, test_student.id, activity.id)
        entry_id = mine.json()["waitlist_entry_id"]

        queue = await client.get(
            f"/api/v1/enrollments/waitlist/activity/{activity.id}", headers=coach_headers
        )
        assert queue.status_code == 200
        assert queue.json()["total_waiting"] == 2
        assert [e["student_id"] for e in queue.json()["entries"]] == [other.id, test_student.id]

        bumped = await client.patch(
            f"/api/v1/enrollments/waitlist/{entry_id}/priority",
            headers=admin_headers,
            json={"priority": 3},
        )
        assert bumped.status_code == 200
        assert bumped.json()["priority"] == 3
        assert bumped.json()["rank"] == 1

        left = await client.post(
            f"/api/v1/enrollments/waitlist/{entry_id}/cancel", headers=parent_headers
        )
        assert left.status_code == 200
        assert left.json()["status"] == "cancelled"

        queue = await client.get(
            f"/api/v1/enrollments/waitlist/activity/{activity.id}", headers=coach_headers
        )
        assert queue.json()["total_waiting"] == 1

    async def test_parent_cannot_view_queue(
        self, client: AsyncClient, parent_headers, test_activity
    ):
        response = await client.get(
            f"/api/v1/enrollments/waitlist/activity/{test_activity.id}", headers=parent_headers
        )
        assert response.status_code == 403

    async def test_manual_promote_without_free_seat(
        self, client: AsyncClient, admin_headers, create_activity, create_student
    ):
        activity = await create_activity(capacity=1)
        holder = await create_student("Holder")
        waiting = await create_student("Waiting")
        await register(client, admin_headers, holder.id, activity.id)
        await register(client, admin_headers, waiting.id, activity.id)

        response = await client.post(
            f"/api/v1/enrollments/waitlist/activity/{activity.id}/promote",
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["promoted"] is False


class TestConflictEndpoints:
    async def test_resolve_conflict(
        self, client: AsyncClient, db_session, admin_headers, create_activity, create_student, admin_user
    ):
        activity = await create_activity(capacity=1)
        holder = await create_student("Holder")
        waiting = await create_student("Waiting")
        service = EnrollmentService(db_session)
        await service.register_student(holder.id, activity.id, admin_user)
        await service.register_student(waiting.id, activity.id, admin_user)

        conflicts = await EnrollmentConflict.get_by_student_id(db_session, waiting.id)
        assert len(conflicts) == 1

        response = await client.post(
            f"/api/v1/enrollments/conflicts/{conflicts[0].id}/resolve",
            headers=admin_headers,
            json={"resolution_notes": "Parent informed"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["resolved"] is True
        assert data["conflict_type"] == "quota_full"
        assert data["resolution_notes"] == "Parent informed"

        listing = await client.get(
            f"/api/v1/students/{waiting.id}/conflicts?unresolved_only=true",
            headers=admin_headers,
        )
        assert listing.status_code == 200
        assert listing.json() == []
