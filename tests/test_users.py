# ============================================================================
# Staff Authentication & User Management Tests
# ============================================================================
import pytest
from httpx import AsyncClient

from portal.models.user import UserRole, AccountStatus

STAFF_PASSWORD = "secret123"

API = "/api/v1"

class TestAuthEndpoints:
    """Tests for authentication endpoints"""

    async def test_register_admin_with_code(self, client: AsyncClient):
        response = await client.post(f"{API}/auth/register", json={
            "name": "Owner",
            "email": "owner@prepkart.in",
            "password": "supersecret",
            "registration_code": "let-me-in",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["user"]["role"] == "admin"
        assert body["token"]

    async def test_register_with_wrong_code(self, client: AsyncClient):
        response = await client.post(f"{API}/auth/register", json={
            "name": "Owner",
            "email": "owner@prepkart.in",
            "password": "supersecret",
            "registration_code": "guess",
        })

        assert response.status_code == 403

    async def test_login_and_me(self, client: AsyncClient, admin_user):
        response = await client.post(f"{API}/auth/login", json={"email": admin_user.email, "password": STAFF_PASSWORD})

        assert response.status_code == 200
        token = response.json()["token"]
        assert response.json()["user"]["last_login"] is not None

        me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == admin_user.email

    async def test_wrong_password(self, client: AsyncClient, admin_user):
        response = await client.post(f"{API}/auth/login", json={"email": admin_user.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTHENTICATION_FAILED"

    async def test_inactive_login(self, client: AsyncClient, create_staff):
        user = await create_staff(UserRole.EDITOR, status=AccountStatus.INACTIVE)

        response = await client.post(f"{API}/auth/login", json={"email": user.email, "password": STAFF_PASSWORD})

        assert response.status_code == 403

class TestUserManagement:
    async def test_admin_creates_user(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{API}/users", json={
            "name": "Content Editor",
            "email": "editor2@prepkart.in",
            "password": "editor123",
            "role": "editor",
        }, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["role"] == "editor"

        listing = (await client.get(f"{API}/users", params={"role": "editor"}, headers=admin_headers)).json()
        assert listing["total"] == 1

    async def test_short_password(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{API}/users", json={
            "name": "Short", "email": "short@prepkart.in", "password": "123",
        }, headers=admin_headers)

        assert response.status_code == 422

    async def test_duplicate_email(self, client: AsyncClient, admin_headers, admin_user):
        response = await client.post(f"{API}/users", json={
            "name": "Copy", "email": admin_user.email, "password": "copy1234",
        }, headers=admin_headers)

        assert response.status_code == 409

    async def test_non_admin_cannot_manage_users(self, client: AsyncClient, create_staff, headers_for):
        moderator = await create_staff(UserRole.SUPER_MODERATOR)

        response = await client.get(f"{API}/users", headers=headers_for(moderator))

        assert response.status_code == 403

    async def test_staff_updates_own_profile(self, client: AsyncClient, create_staff, headers_for):
        editor = await create_staff(UserRole.EDITOR)

        response = await client.put(f"{API}/users/{editor.id}", json={"name": "Renamed"}, headers=headers_for(editor))

        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"

    async def test_staff_cannot_promote_self(self, client: AsyncClient, create_staff, headers_for):
        editor = await create_staff(UserRole.EDITOR)

        response = await client.put(f"{API}/users/{editor.id}", json={"role": "admin"}, headers=headers_for(editor))

        assert response.status_code == 403

    async def test_staff_cannot_edit_others(self, client: AsyncClient, create_staff, headers_for, admin_user):
        editor = await create_staff(UserRole.EDITOR)

        response = await client.put(f"{API}/users/{admin_user.id}", json={"name": "Hacked"}, headers=headers_for(editor))

        assert response.status_code == 403

    async def test_admin_changes_role(self, client: AsyncClient, create_staff, admin_headers):
        viewer = await create_staff(UserRole.VIEWER)

        response = await client.put(f"{API}/users/{viewer.id}", json={"role": "moderator"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["role"] == "moderator"

    async def test_admin_cannot_delete_self(self, client: AsyncClient, admin_user, admin_headers):
        response = await client.delete(f"{API}/users/{admin_user.id}", headers=admin_headers)

        assert response.status_code == 400

    async def test_delete_user(self, client: AsyncClient, create_staff, admin_headers):
        viewer = await create_staff(UserRole.VIEWER)

        response = await client.delete(f"{API}/users/{viewer.id}", headers=admin_headers)

        assert response.status_code == 200
        assert (await client.get(f"{API}/users/{viewer.id}", headers=admin_headers)).status_code == 404
