from iaschool.core.config import settings
from iaschool.models import UserRole

from .factories import DEFAULT_PASSWORD, auth_headers, create_user


class TestLogin:
    async def test_login_returns_token_and_user(self, client, parent):
        response = await client.post("/api/v1/auth/login", json={"email": "PADRE@iaschool.mx", "password": DEFAULT_PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["email"] == "padre@iaschool.mx"
        assert data["user"]["school_code"] == "IAS01"

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["id"] == str(parent.id)

    async def test_unknown_email_is_unauthorized(self, client, school):
        response = await client.post("/api/v1/auth/login", json={"email": "nadie@iaschool.mx", "password": "whatever1"})
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_account_locks_after_repeated_failures(self, client, db, parent, monkeypatch):
        monkeypatch.setattr(settings, "login_rate_limit", 100)
        for _ in range(settings.max_failed_login_attempts):
            response = await client.post("/api/v1/auth/login", json={"email": parent.email, "password": "incorrecta"})
            assert response.status_code == 401

        response = await client.post("/api/v1/auth/login", json={"email": parent.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 423
        assert response.json()["detail"]["minutes_remaining"] == settings.lock_duration_minutes

        await db.refresh(parent)
        assert parent.failed_login_attempts == settings.max_failed_login_attempts
        assert parent.locked_until is not None

    async def test_successful_login_clears_failures(self, client, db, parent):
        await client.post("/api/v1/auth/login", json={"email": parent.email, "password": "incorrecta"})
        response = await client.post("/api/v1/auth/login", json={"email": parent.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 200

        await db.refresh(parent)
        assert parent.failed_login_attempts == 0
        assert parent.last_login_at is not None

    async def test_inactive_user_is_forbidden(self, client, db, school):
        user = await create_user(db, school, role=UserRole.PADRE, email="baja@iaschool.mx", is_active=False)
        response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 403

    async def test_login_is_rate_limited(self, client, parent, monkeypatch):
        monkeypatch.setattr(settings, "login_rate_limit", 2)
        for _ in range(2):
            await client.post("/api/v1/auth/login", json={"email": parent.email, "password": "incorrecta"})
        response = await client.post("/api/v1/auth/login", json={"email": parent.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 429
        assert "retry-after" in response.headers


class TestTokens:
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_role_gate(self, client, parent):
        response = await client.get("/api/v1/school_authority/tutors", headers=auth_headers(parent))
        assert response.status_code == 403


class TestChangePassword:
    async def test_change_password(self, client, parent):
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "NuevaClave2024"},
            headers=auth_headers(parent)
        )
        assert response.status_code == 200

        login = await client.post("/api/v1/auth/login", json={"email": parent.email, "password": "NuevaClave2024"})
        assert login.status_code == 200

    async def test_wrong_current_password(self, client, parent):
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "incorrecta", "new_password": "NuevaClave2024"},
            headers=auth_headers(parent)
        )
        assert response.status_code == 400
