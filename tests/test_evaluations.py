from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.models.badge import SkillBadge, StudentBadge

pytestmark = pytest.mark.asyncio


async def enroll(client: AsyncClient, headers: dict, student_id: str, activity_id: str) -> str:
    response = await client.post(
        "/api/v1/enrollments/register",
        headers=headers,
        json={"student_id": student_id, "activity_id": activity_id},
    )
    assert response.status_code == 201
    return response.json()["enrollment"]["id"]


async def draft(client: AsyncClient, headers: dict, enrollment_id: str, **extra):
    return await client.post(
        "/api/v1/evaluations/",
        headers=headers,
        json={"enrollment_id": enrollment_id, "term": "Fall 2026", **extra},
    )


@pytest.fixture
async def enrollment_id(client: AsyncClient, admin_headers, test_student, test_activity) -> str:
    return await enroll(client, admin_headers, test_student.id, test_activity.id)


@pytest.fixture
async def team_player(db_session) -> SkillBadge:
    badge = SkillBadge(name="Team Player", category="sports", points=10)
    db_session.add(badge)
    await db_session.commit()
    await db_session.refresh(badge)
    return badge


class TestCreateEvaluation:
    async def test_coach_drafts_evaluation(self, client: AsyncClient, coach_headers, enrollment_id):
        response = await draft(
            client,
            coach_headers,
            enrollment_id,
            overall_rating=4.5,
            skill_ratings={"passing": 4, "teamwork": 5},
            strengths="Reads the game well",
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "draft"
        assert data["published_at"] is None
        assert Decimal(str(data["overall_rating"])) == Decimal("4.5")
        assert data["skill_ratings"]["teamwork"] == 5
        assert data["evaluation_date"]

    async def test_other_coach_forbidden(self, client: AsyncClient, other_coach_headers, enrollment_id):
        response = await draft(client, other_coach_headers, enrollment_id)

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    async def test_parent_forbidden(self, client: AsyncClient, parent_headers, enrollment_id):
        response = await draft(client, parent_headers, enrollment_id)

        assert response.status_code == 403

    async def test_withdrawn_enrollment_rejected(
        self, client: AsyncClient, admin_headers, coach_headers, enrollment_id
    ):
        await client.post(f"/api/v1/enrollments/{enrollment_id}/cancel", headers=admin_headers)

        response = await draft(client, coach_headers, enrollment_id)

        assert response.status_code == 400
        assert "withdrawn" in response.json()["message"]

    async def test_unknown_enrollment(self, client: AsyncClient, coach_headers):
        response = await draft(client, coach_headers, "missing")

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "extra",
        [
            {"overall_rating": 5.5},
            {"overall_rating": -1},
            {"skill_ratings": {"dribbling": 6}},
        ],
    )
    async def test_rating_out_of_range(self, client: AsyncClient, coach_headers, enrollment_id, extra):
        response = await draft(client, coach_headers, enrollment_id, **extra)

        assert response.status_code == 422


class TestEvaluationLifecycle:
    async def test_draft_hidden_from_student_account_until_published(
        self, client: AsyncClient, coach_headers, parent_headers, test_student, enrollment_id
    ):
        evaluation_id = (await draft(client, coach_headers, enrollment_id)).json()["id"]

        listing = await client.get(
            f"/api/v1/evaluations/student/{test_student.id}", headers=parent_headers
        )
        assert listing.status_code == 200
        assert listing.json()["total"] == 0
        single = await client.get(f"/api/v1/evaluations/{evaluation_id}", headers=parent_headers)
        assert single.status_code == 404

        published = await client.put(
            f"/api/v1/evaluations/{evaluation_id}/publish", headers=coach_headers
        )
        assert published.status_code == 200
        assert published.json()["status"] == "published"
        assert published.json()["published_at"] is not None

        listing = await client.get(
            f"/api/v1/evaluations/student/{test_student.id}", headers=parent_headers
        )
        data = listing.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == evaluation_id
        assert data["items"][0]["activity_name"] == "Football Training"

    async def test_coach_sees_own_drafts_other_coach_does_not(
        self, client: AsyncClient, coach_headers, other_coach_headers, test_student, enrollment_id
    ):
        await draft(client, coach_headers, enrollment_id)

        own = await client.get(f"/api/v1/evaluations/student/{test_student.id}", headers=coach_headers)
        other = await client.get(
            f"/api/v1/evaluations/student/{test_student.id}", headers=other_coach_headers
        )

        assert own.json()["total"] == 1
        assert other.json()["total"] == 0

    async def test_other_parent_cannot_list(
        self, client: AsyncClient, other_parent_headers, test_student, enrollment_id
    ):
        response = await client.get(
            f"/api/v1/evaluations/student/{test_student.id}", headers=other_parent_headers
        )

        assert response.status_code == 403

    async def test_draft_editable(self, client: AsyncClient, coach_headers, enrollment_id):
        evaluation_id = (await draft(client, coach_headers, enrollment_id)).json()["id"]

        response = await client.patch(
            f"/api/v1/evaluations/{evaluation_id}",
            headers=coach_headers,
            json={"coach_notes": "Needs to work on stamina", "term": "Spring 2027"},
        )

        assert response.status_code == 200
        assert response.json()["coach_notes"] == "Needs to work on stamina"
        assert response.json()["term"] == "Spring 2027"

    async def test_published_evaluation_is_read_only(
        self, client: AsyncClient, coach_headers, enrollment_id
    ):
        evaluation_id = (await draft(client, coach_headers, enrollment_id)).json()["id"]
        await client.put(f"/api/v1/evaluations/{evaluation_id}/publish", headers=coach_headers)

        response = await client.patch(
            f"/api/v1/evaluations/{evaluation_id}",
            headers=coach_headers,
            json={"strengths": "Changed after the fact"},
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATUS_TRANSITION"

    async def test_publish_twice_is_noop(self, client: AsyncClient, coach_headers, enrollment_id):
        evaluation_id = (await draft(client, coach_headers, enrollment_id)).json()["id"]
        first = await client.put(f"/api/v1/evaluations/{evaluation_id}/publish", headers=coach_headers)
        second = await client.put(f"/api/v1/evaluations/{evaluation_id}/publish", headers=coach_headers)

        assert second.status_code == 200
        assert second.json()["published_at"] == first.json()["published_at"]

    async def test_archived_cannot_be_published(
        self, client: AsyncClient, coach_headers, enrollment_id
    ):
        evaluation_id = (await draft(client, coach_headers, enrollment_id)).json()["id"]
        archived = await client.put(f"/api/v1/evaluations/{evaluation_id}/archive", headers=coach_headers)
        assert archived.json()["status"] == "archived"

        response = await client.put(f"/api/v1/evaluations/{evaluation_id}/publish", headers=coach_headers)

        assert response.status_code == 409

    async def test_other_coach_cannot_publish(
        self, client: AsyncClient, coach_headers, other_coach_headers, enrollment_id
    ):
        evaluation_id = (await draft(client, coach_headers, enrollment_id)).json()["id"]

        response = await client.put(
            f"/api/v1/evaluations/{evaluation_id}/publish", headers=other_coach_headers
        )

        assert response.status_code == 403

    async def test_term_filter(
        self, client: AsyncClient, coach_headers, admin_headers, test_student, enrollment_id
    ):
        await draft(client, coach_headers, enrollment_id)
        await draft(client, coach_headers, enrollment_id, term="Spring 2027")

        response = await client.get(
            f"/api/v1/evaluations/student/{test_student.id}",
            headers=admin_headers,
            params={"term": "Spring 2027"},
        )

        assert response.json()["total"] == 1
        assert response.json()["items"][0]["term"] == "Spring 2027"


class TestBadges:
    async def test_admin_creates_badge(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/badges/",
            headers=admin_headers,
            json={"name": "Stage Performer", "category": "performing_arts", "points": 15},
        )

        assert response.status_code == 201
        assert response.json()["is_active"] is True

        duplicate = await client.post(
            "/api/v1/badges/", headers=admin_headers, json={"name": "Stage Performer"}
        )
        assert duplicate.status_code == 409

    async def test_coach_cannot_create_badge(self, client: AsyncClient, coach_headers):
        response = await client.post("/api/v1/badges/", headers=coach_headers, json={"name": "Mine"})

        assert response.status_code == 403

    async def test_public_listing_by_category(self, client: AsyncClient, team_player, db_session):
        db_session.add(SkillBadge(name="Creative Thinker", category="arts", points=15))
        await db_session.commit()

        everything = await client.get("/api/v1/badges/")
        sports = await client.get("/api/v1/badges/", params={"category": "sports"})

        assert everything.status_code == 200
        assert len(everything.json()) == 2
        assert [b["name"] for b in sports.json()] == ["Team Player"]

    async def test_coach_awards_through_enrollment(
        self, client: AsyncClient, coach_headers, parent_headers, test_student, team_player, enrollment_id
    ):
        response = await client.post(
            "/api/v1/badges/award",
            headers=coach_headers,
            json={
                "student_id": test_student.id,
                "badge_id": team_player.id,
                "enrollment_id": enrollment_id,
                "notes": "Great passing all term",
            },
        )

        assert response.status_code == 201
        assert response.json()["badge"]["name"] == "Team Player"

        earned = await client.get(f"/api/v1/badges/student/{test_student.id}", headers=parent_headers)
        data = earned.json()
        assert data["count"] == 1
        assert data["total_points"] == 10

    async def test_coach_without_enrollment_forbidden(
        self, client: AsyncClient, coach_headers, test_student, team_player
    ):
        response = await client.post(
            "/api/v1/badges/award",
            headers=coach_headers,
            json={"student_id": test_student.id, "badge_id": team_player.id},
        )

        assert response.status_code == 403

    async def test_other_coach_cannot_award(
        self, client: AsyncClient, other_coach_headers, test_student, team_player, enrollment_id
    ):
        response = await client.post(
            "/api/v1/badges/award",
            headers=other_coach_headers,
            json={"student_id": test_student.id, "badge_id": team_player.id, "enrollment_id": enrollment_id},
        )

        assert response.status_code == 403

    async def test_enrollment_of_another_student_rejected(
        self, client: AsyncClient, admin_headers, create_student, team_player, enrollment_id
    ):
        someone_else = await create_student("Sam", "Lee")

        response = await client.post(
            "/api/v1/badges/award",
            headers=admin_headers,
            json={"student_id": someone_else.id, "badge_id": team_player.id, "enrollment_id": enrollment_id},
        )

        assert response.status_code == 400

    async def test_reaward_refreshes_single_row(
        self, client: AsyncClient, admin_headers, test_student, team_player, db_session
    ):
        payload = {"student_id": test_student.id, "badge_id": team_player.id}
        first = await client.post("/api/v1/badges/award", headers=admin_headers, json=payload)
        second = await client.post(
            "/api/v1/badges/award", headers=admin_headers, json={**payload, "notes": "Again"}
        )

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["notes"] == "Again"
        awards = await StudentBadge.get_by_student_id(db_session, test_student.id)
        assert len(awards) == 1

    async def test_inactive_badge_not_awardable(
        self, client: AsyncClient, admin_headers, test_student, team_player, db_session
    ):
        team_player.is_active = False
        await db_session.commit()

        response = await client.post(
            "/api/v1/badges/award",
            headers=admin_headers,
            json={"student_id": test_student.id, "badge_id": team_player.id},
        )

        assert response.status_code == 404

    async def test_other_parent_cannot_read_badges(
        self, client: AsyncClient, other_parent_headers, test_student
    ):
        response = await client.get(
            f"/api/v1/badges/student/{test_student.id}", headers=other_parent_headers
        )

        assert response.status_code == 403
