# tests/test_auth.py — Authentication tests
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from models import Profile
from tests.conftest import get_auth_headers, TEST_PASSWORD


@pytest.mark.asyncio
class TestRegistration:
    async def test_register_success(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "newuser@test.com",
            "password": "SecurePass123!",
            "full_name": "New User",
        })
        assert res.status_code == 200
        data = res.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["user"]["email"] == "newuser@test.com"

    async def test_register_creates_profile(self, client: AsyncClient, db_session):
        res = await client.post("/api/v1/auth/register", json={
            "email": "profiled@test.com",
            "password": "SecurePass123!",
            "full_name": "  Pat Profile ",
        })
        user_id = res.json()["user"]["id"]
        profile = (await db_session.execute(
            select(Profile).where(Profile.id == user_id)
        )).scalar_one()
        assert profile.email == "profiled@test.com"
        assert profile.full_name == "Pat Profile"

    async def test_register_weak_password(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "weak@test.com",
            "password": "short",
        })
        assert res.status_code in (400, 422)

    async def test_register_duplicate_email(self, client: AsyncClient):
        await client.post("/api/v1/auth/register", json={
            "email": "dupe@test.com",
            "password": "SecurePass123!",
        })
        res = await client.post("/api/v1/auth/register", json={
            "email": "dupe@test.com",
            "password": "SecurePass123!",
        })
        assert res.status_code == 409

    async def test_register_invalid_email(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "email": "not-an-email",
            "password": "SecurePass123!",
        })
        assert res.status_code == 422


@pytest.mark.asyncio
class TestLogin:
    async def test_login_success(self, client: AsyncClient, owner_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": "owner@foresight.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 200
        data = res.json()
        assert "access_token" in data
        assert data["user"]["email"] == "owner@foresight.dev"

    async def test_login_wrong_password(self, client: AsyncClient, member_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": "member@foresight.dev",
            "password": "WrongPassword123!",
        })
        assert res.status_code == 401

    async def test_login_nonexistent_user(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/login", json={
            "email": "nobody@test.com",
            "password": "SomePassword123!",
        })
        assert res.status_code == 401


@pytest.mark.asyncio
class TestTokens:
    async def test_me_includes_profile(self, client: AsyncClient, owner_user):
        res = await client.get("/api/v1/auth/me", headers=get_auth_headers(owner_user))
        assert res.status_code == 200
        data = res.json()
        assert data["email"] == "owner@foresight.dev"
        assert data["full_name"] == "Olivia Owner"

    async def test_access_without_token(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me")
        assert res.status_code in (401, 403)

    async def test_access_with_invalid_token(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me", headers={
            "Authorization": "Bearer invalid.token.here"
        })
        assert res.status_code == 401

    async def test_refresh_token(self, client: AsyncClient):
        reg_res = await client.post("/api/v1/auth/register", json={
            "email": "refresh@test.com",
            "password": "SecurePass123!",
        })
        refresh_token = reg_res.json()["refresh_token"]

        res = await client.post("/api/v1/auth/refresh", json={
            "refresh_token": refresh_token,
        })
        assert res.status_code == 200
        assert "access_token" in res.json()

    async def test_refresh_rejects_access_token(self, client: AsyncClient):
        reg_res = await client.post("/api/v1/auth/register", json={
            "email": "wrongtype@test.com",
            "password": "SecurePass123!",
        })
        res = await client.post("/api/v1/auth/refresh", json={
            "refresh_token": reg_res.json()["access_token"],
        })
        assert res.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, owner_user):
        headers = get_auth_headers(owner_user)
        res = await client.post("/api/v1/auth/logout", headers=headers)
        assert res.status_code == 200

        res = await client.get("/api/v1/auth/me", headers=headers)
        assert res.status_code == 401


@pytest.mark.asyncio
class TestChangePassword:
    async def test_change_password(self, client: AsyncClient, admin_user):
        res = await client.post(
            "/api/v1/auth/change-password",
            headers=get_auth_headers(admin_user),
            json={"current_password": TEST_PASSWORD, "new_password": "BrandNewPass456!"},
        )
        assert res.status_code == 200

        res = await client.post("/api/v1/auth/login", json={
            "email": "admin@foresight.dev",
            "password": "BrandNewPass456!",
        })
        assert res.status_code == 200

    async def test_change_password_policy(self, client: AsyncClient, admin_user):
        res = await client.post(
            "/api/v1/auth/change-password",
            headers=get_auth_headers(admin_user),
            json={"current_password": TEST_PASSWORD, "new_password": "weak"},
        )
        assert res.status_code == 400
