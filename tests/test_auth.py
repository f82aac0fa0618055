from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from httpx import AsyncClient

from hims.core.config import settings
from hims.core.security import (
    create_access_token,
    generate_reset_token,
    get_password_hash,
    hash_reset_token,
    verify_password,
    verify_token,
)
from hims.domain.auth.models import User, UserRole
from hims.domain.auth.service import AuthenticationService
from tests.conftest import DEFAULT_PASSWORD, auth_headers


@pytest.mark.auth
@pytest.mark.integration
class TestAuthentication:
    """Test authentication endpoints and functionality."""

    async def test_register_user_success(self, admin_client: AsyncClient) -> None:
        user_data = {
            "email": "NewUser@Example.com",
            "password": "Password123",
            "first_name": "New",
            "last_name": "User",
            "phone": "+1234567890",
            "role": "doctor",
        }

        response = await admin_client.post("/api/v1/auth/register", json=user_data)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["email"] == "newuser@example.com"
        assert data["role"] == "doctor"
        assert "password" not in data
        assert "password_hash" not in data

    async def test_register_user_duplicate_email(self, admin_client: AsyncClient, admin_user: User) -> None:
        user_data = {
            "email": admin_user.email,
            "password": "Password123",
            "first_name": "Different",
            "last_name": "User",
            "role": "nurse",
        }

        response = await admin_client.post("/api/v1/auth/register", json=user_data)

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert "email already exists" in body["message"].lower()

    async def test_register_requires_user_admin(self, client: AsyncClient, make_user) -> None:
        nurse = await make_user(UserRole.NURSE)
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "x@example.com", "password": "Password123", "first_name": "X",
                  "last_name": "Y", "role": "nurse"},
            headers=auth_headers(nurse),
        )
        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTHORIZATION_ERROR"

    async def test_register_weak_password(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(
            "/api/v1/auth/register",
            json={"email": "weak@example.com", "password": "onlyletters", "first_name": "W",
                  "last_name": "P", "role": "nurse"},
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["errors"][0]["field"] == "password"

    async def test_login_success(self, client: AsyncClient, admin_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/login", json={"email": admin_user.email, "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == admin_user.id
        payload = verify_token(data["token"], "access")
        assert payload["sub"] == admin_user.id
        assert payload["role"] == "admin"
        assert "system:admin" in payload["permissions"]

    async def test_login_wrong_password(self, client: AsyncClient, admin_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/login", json={"email": admin_user.email, "password": "wrong-password"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    async def test_login_unknown_email(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": "x"})
        assert response.status_code == 401

    async def test_login_lockout(self, client: AsyncClient, admin_user: User) -> None:
        for _ in range(settings.MAX_LOGIN_ATTEMPTS - 1):
            response = await client.post(
                "/api/v1/auth/login", json={"email": admin_user.email, "password": "wrong-password"}
            )
            assert response.status_code == 401

        response = await client.post(
            "/api/v1/auth/login", json={"email": admin_user.email, "password": "wrong-password"}
        )
        assert response.json()["error_code"] == "ACCOUNT_LOCKED"

        # Correct password is refused while locked
        response = await client.post(
            "/api/v1/auth/login", json={"email": admin_user.email, "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 401
        assert response.json()["error_code"] == "ACCOUNT_LOCKED"

    async def test_login_inactive_user(self, client: AsyncClient, make_user) -> None:
        user = await make_user(UserRole.NURSE, is_active=False)
        response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        assert response.status_code == 403

    async def test_me(self, admin_client: AsyncClient, admin_user: User) -> None:
        response = await admin_client.get("/api/v1/auth/me")
        assert response.status_code == 200
        assert response.json()["data"]["email"] == admin_user.email

    async def test_me_without_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        body = response.json()
        assert body == {
            "success": False,
            "message": "Authentication required",
            "error_code": "AUTHENTICATION_ERROR",
        }

    async def test_invalid_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    async def test_change_password(self, admin_client: AsyncClient, admin_user: User) -> None:
        response = await admin_client.put(
            "/api/v1/auth/change-password",
            json={"current_password": "wrong", "new_password": "NewPassword1"},
        )
        assert response.status_code == 400

        response = await admin_client.put(
            "/api/v1/auth/change-password",
            json={"current_password": DEFAULT_PASSWORD, "new_password": "NewPassword1"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {}}

        login = await admin_client.post(
            "/api/v1/auth/login", json={"email": admin_user.email, "password": "NewPassword1"}
        )
        assert login.status_code == 200


@pytest.mark.auth
@pytest.mark.integration
class TestUserManagement:
    async def test_list_users_paginated(self, admin_client: AsyncClient, make_user) -> None:
        await make_user(UserRole.NURSE)
        await make_user(UserRole.CASHIER)

        response = await admin_client.get("/api/v1/users", params={"page": 1, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    async def test_cannot_toggle_own_account(self, admin_client: AsyncClient, admin_user: User) -> None:
        response = await admin_client.patch(f"/api/v1/users/{admin_user.id}/toggle-status")
        assert response.status_code == 400

    async def test_toggle_status(self, admin_client: AsyncClient, make_user) -> None:
        nurse = await make_user(UserRole.NURSE)
        response = await admin_client.patch(f"/api/v1/users/{nurse.id}/toggle-status")
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

    async def test_staff_pickers(self, admin_client: AsyncClient, doctor_user: User) -> None:
        response = await admin_client.get("/api/v1/doctors")
        assert response.status_code == 200
        doctors = response.json()["data"]
        assert [d["id"] for d in doctors] == [doctor_user.id]


@pytest.mark.auth
@pytest.mark.unit
class TestSecurity:
    def test_password_hashing(self) -> None:
        hashed = get_password_hash("Password123")
        assert hashed != "Password123"
        assert verify_password("Password123", hashed)
        assert not verify_password("wrong", hashed)

    def test_token_type_checked(self) -> None:
        token = create_access_token("user-1", {"role": "admin"})
        assert verify_token(token, "access")["sub"] == "user-1"
        assert verify_token(token, "refresh") is None

    def test_reset_token_digest(self) -> None:
        token, digest = generate_reset_token()
        assert token != digest
        assert digest == hash_reset_token(token)
        assert len(digest) == 64


@pytest.mark.auth
@pytest.mark.integration
class TestPasswordReset:
    """Forgot password issues a one-time token; reset consumes it."""

    FORGOT = "/api/v1/auth/forgotpassword"

    async def test_reset_flow(self, client: AsyncClient, make_user, db_session) -> None:
        nurse = await make_user(UserRole.NURSE)

        with patch("hims.domain.auth.service.generate_reset_token",
                   return_value=("reset-abc", hash_reset_token("reset-abc"))):
            response = await client.post(self.FORGOT, json={"email": nurse.email})

        assert response.status_code == 200
        assert "reset link" in response.json()["data"]["message"]
        await db_session.refresh(nurse)
        assert nurse.reset_token_hash == hash_reset_token("reset-abc")

        response = await client.put("/api/v1/auth/resetpassword/reset-abc", json={"password": "BrandNew123"})

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert verify_token(data["token"])["sub"] == nurse.id
        assert data["user"]["email"] == nurse.email

        login = await client.post("/api/v1/auth/login", json={"email": nurse.email, "password": "BrandNew123"})
        assert login.status_code == 200

        # Tokens are single use
        response = await client.put("/api/v1/auth/resetpassword/reset-abc", json={"password": "Another123"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_RESET_TOKEN"

    async def test_unknown_email_gets_same_reply(self, client: AsyncClient, make_user) -> None:
        nurse = await make_user(UserRole.NURSE)
        known = await client.post(self.FORGOT, json={"email": nurse.email})

        with patch("hims.domain.auth.service.generate_reset_token") as issue:
            unknown = await client.post(self.FORGOT, json={"email": "nobody@hospital.example.com"})

        issue.assert_not_called()
        assert unknown.status_code == 200
        assert unknown.json() == known.json()

    async def test_expired_token(self, client: AsyncClient, make_user, db_session) -> None:
        nurse = await make_user(UserRole.NURSE)
        token = await AuthenticationService(db_session).request_password_reset(nurse.email)

        nurse.reset_token_expires_at = datetime.utcnow() - timedelta(minutes=1)
        await db_session.commit()

        response = await client.put(f"/api/v1/auth/resetpassword/{token}", json={"password": "BrandNew123"})
        assert response.status_code == 400

        login = await client.post("/api/v1/auth/login", json={"email": nurse.email, "password": DEFAULT_PASSWORD})
        assert login.status_code == 200

    async def test_weak_password_rejected(self, client: AsyncClient, make_user, db_session) -> None:
        nurse = await make_user(UserRole.NURSE)
        token = await AuthenticationService(db_session).request_password_reset(nurse.email)

        response = await client.put(f"/api/v1/auth/resetpassword/{token}", json={"password": "lettersonly"})
        assert response.status_code == 422

    async def test_reset_clears_lockout(self, client: AsyncClient, make_user, db_session) -> None:
        nurse = await make_user(UserRole.NURSE, locked_until=datetime.utcnow() + timedelta(minutes=10))
        token = await AuthenticationService(db_session).request_password_reset(nurse.email)

        await client.put(f"/api/v1/auth/resetpassword/{token}", json={"password": "BrandNew123"})

        login = await client.post("/api/v1/auth/login", json={"email": nurse.email, "password": "BrandNew123"})
        assert login.status_code == 200


@pytest.mark.auth
@pytest.mark.integration
class TestProfile:
    async def test_update_own_profile(self, client: AsyncClient, make_user) -> None:
        nurse = await make_user(UserRole.NURSE)
        headers = auth_headers(nurse)

        response = await client.put(
            "/api/v1/users/profile",
            json={"first_name": "Grace", "phone": "+254711000111", "role": "admin"},
            headers=headers,
        )

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["first_name"] == "Grace"
        assert data["phone"] == "+254711000111"
        assert data["role"] == "nurse"

        response = await client.get("/api/v1/users/profile", headers=headers)
        assert response.json()["data"]["full_name"] == "Grace Tester"

    async def test_email_taken(self, client: AsyncClient, make_user, admin_user: User) -> None:
        nurse = await make_user(UserRole.NURSE)
        response = await client.put(
            "/api/v1/users/profile", json={"email": admin_user.email.upper()}, headers=auth_headers(nurse)
        )
        assert response.status_code == 409

    async def test_required_field_null(self, client: AsyncClient, make_user) -> None:
        nurse = await make_user(UserRole.NURSE)
        response = await client.put(
            "/api/v1/users/profile", json={"last_name": None}, headers=auth_headers(nurse)
        )
        assert response.status_code == 422

    async def test_requires_session(self, client: AsyncClient) -> None:
        response = await client.put("/api/v1/users/profile", json={"first_name": "X"})
        assert response.status_code == 401
