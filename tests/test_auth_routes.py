"""Tests for /api/auth routes and the customer auth dependencies."""

from __future__ import annotations

import time
from unittest.mock import patch

from fastapi_users.jwt import decode_jwt

from certissuer.auth import get_jwt_strategy


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestRegister:
    def test_register_returns_credentials_once(self, client, account):
        customer = account["customer"]
        assert account["message"] == "Customer registered successfully"
        assert customer["companyName"] == "Acme"
        assert customer["email"] == "ops@acme.com"
        assert len(customer["apiKey"]) == 64
        assert len(customer["apiSecret"]) == 128
        assert account["token"]

        profile = client.get("/api/auth/profile", headers=_bearer(account["token"]))
        assert "apiSecret" not in profile.json()["customer"]
        assert "hashedApiSecret" not in profile.json()["customer"]

    def test_token_carries_identity_claims(self, account):
        strategy = get_jwt_strategy()
        claims = decode_jwt(
            account["token"],
            strategy.decode_key,
            strategy.token_audience,
            algorithms=[strategy.algorithm],
        )
        assert claims["sub"] == account["customer"]["id"]
        assert claims["email"] == "ops@acme.com"
        # seven-day lifetime
        assert abs(claims["exp"] - (time.time() + 7 * 24 * 3600)) < 60

    def test_duplicate_email(self, client, register):
        register()
        resp = client.post(
            "/api/auth/register",
            json={
                "companyName": "Other Co",
                "email": "ops@acme.com",
                "password": "pw",
            },
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Customer with this email already exists"

    def test_duplicate_company_name(self, client, register):
        register()
        resp = client.post(
            "/api/auth/register",
            json={"companyName": "Acme", "email": "new@acme.com", "password": "pw"},
        )
        assert resp.status_code == 400
        assert "company name" in resp.json()["detail"]

    def test_validation_errors(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"companyName": "   ", "email": "a@b.com", "password": "pw"},
        )
        assert resp.status_code == 422
        resp = client.post(
            "/api/auth/register",
            json={"companyName": "X", "email": "not-an-email", "password": "pw"},
        )
        assert resp.status_code == 422


class TestLogin:
    def test_login_success(self, client, account):
        resp = client.post(
            "/api/auth/login",
            json={"email": "ops@acme.com", "password": "s3cret!"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["customer"]["id"] == account["customer"]["id"]
        assert "apiSecret" not in body["customer"]

        profile = client.get("/api/auth/profile", headers=_bearer(body["token"]))
        assert profile.status_code == 200
        assert profile.json()["customer"]["companyName"] == "Acme"

    def test_wrong_password_and_unknown_email_look_alike(self, client, account):
        wrong = client.post(
            "/api/auth/login", json={"email": "ops@acme.com", "password": "nope"}
        )
        unknown = client.post(
            "/api/auth/login", json={"email": "ghost@acme.com", "password": "nope"}
        )
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"detail": "Invalid credentials"}

    def test_unknown_email_still_hashes(self, client):
        with patch("fastapi_users.password.PasswordHelper.hash") as hash_:
            client.post(
                "/api/auth/login", json={"email": "ghost@acme.com", "password": "pw"}
            )
        hash_.assert_called_once_with("pw")


class TestSessionToken:
    def test_missing_token(self, client):
        resp = client.get("/api/auth/profile")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid authentication token"

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/profile", headers=_bearer("garbage"))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid authentication token"

    def test_deactivated_customer(self, client, register, promote):
        admin = register("Admin Co", "admin@example.com")
        promote("admin@example.com")
        victim = register("Victim Co", "victim@example.com")

        resp = client.put(
            f"/api/customers/{victim['customer']['id']}",
            json={"isActive": False},
            headers=_bearer(admin["token"]),
        )
        assert resp.status_code == 200
        assert resp.json()["customer"]["isActive"] is False

        # a token minted before deactivation stops working immediately
        profile = client.get("/api/auth/profile", headers=_bearer(victim["token"]))
        assert profile.status_code == 401

        login = client.post(
            "/api/auth/login",
            json={"email": "victim@example.com", "password": "s3cret!"},
        )
        assert login.status_code == 403
        assert login.json()["detail"] == "Account is deactivated"
