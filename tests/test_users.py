import pytest
from httpx import AsyncClient

from app.utils.security import create_refresh_token

pytestmark = pytest.mark.asyncio


class TestCurrentUser:
    async def test_get_me(self, client: AsyncClient, parent_headers):
        response = await client.get("/api/v1/users/me", headers=parent_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "parent@example.com"
        assert data["role"] == "parent"

    async def test_no_token(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401

    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/users/me", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_refresh_token_rejected_as_access(self, client: AsyncClient, parent_user):
        response = await client.get(
            "/api/v1/users/me",
            headers={"Authorization": f"Bearer {create_refresh_token(parent_user.id)}"},
        )
        assert response.status_code == 401


class TestAdminUsers:
    async def test_admin_creates_coach(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/users/",
            headers=admin_headers,
            json={
                "email": "New.Coach@example.com",
                "first_name": "New",
                "last_name": "Coach",
                "role": "coach",
                "password": "CoachPass123",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.coach@example.com"
        assert data["role"] == "coach"

    async def test_duplicate_email(self, client: AsyncClient, admin_headers, parent_user):
        response = await client.post(
            "/api/v1/users/",
            headers=admin_headers,
            json={
                "email": "parent@example.com",
                "first_name": "Dup",
                "last_name": "User",
                "password": "DupPass1234",
            },
        )
        assert response.status_code == 400

    async def test_weak_password(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/users/",
            headers=admin_headers,
            json={
                "email": "weak@example.com",
                "first_name": "Weak",
                "last_name": "User",
                "password": "weakpass",
            },
        )
        assert response.status_code == 422

    async def test_non_admin_forbidden(self, client: AsyncClient, parent_headers):
        response = await client.get("/api/v1/users/", headers=parent_headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    async def test_list_filtered_by_role(
        self, client: AsyncClient, admin_headers, coach_user, parent_user
    ):
        response = await client.get("/api/v1/users/?role=coach", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["email"] == "coach@example.com"
