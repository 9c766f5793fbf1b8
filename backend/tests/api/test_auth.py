"""Tests for sign-up and sign-in endpoints."""
from httpx import AsyncClient

from tests.api.conftest import ALICE, register


class TestSignUp:
    """Tests for POST /sign-up and POST /users."""

    async def test__sign_up__returns_201_without_password(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/sign-up", json=ALICE)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["email"] == "a@example.com"
        assert body["data"]["username"] == "alice"
        assert body["data"]["role"] == "user"
        assert "password" not in body["data"]
        assert "createdAt" in body["data"]
        assert "error" not in body

    async def test__post_users__same_contract(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/users", json=ALICE)

        assert response.status_code == 201
        assert response.json()["data"]["email"] == "a@example.com"
        assert "password" not in response.json()["data"]

    async def test__sign_up__normalizes_username_and_email(self, client: AsyncClient) -> None:
        data = await register(client, username="  Alice ", email=" A@Example.COM ")

        assert data["username"] == "alice"
        assert data["email"] == "a@example.com"

    async def test__duplicate_email__409(self, client: AsyncClient) -> None:
        await register(client)

        response = await client.post("/api/v1/sign-up", json={**ALICE, "username": "other"})

        assert response.status_code == 409
        assert response.json()["success"] is False
        assert response.json()["error"]

    async def test__invalid_input__400_with_details(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/sign-up",
            json={"username": "al", "email": "nope", "password": "short"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert {d["field"] for d in body["details"]} == {"username", "email", "password"}

    async def test__non_object_body__400(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/sign-up", json=["not", "an", "object"])

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestSignIn:
    """Tests for POST /sign-in."""

    async def test__alice_scenario(self, client: AsyncClient) -> None:
        """Register then sign in: two distinct non-empty tokens."""
        register_response = await client.post("/api/v1/sign-up", json=ALICE)
        assert register_response.status_code == 201
        assert register_response.json()["data"]["email"] == "a@example.com"
        assert "password" not in register_response.json()["data"]

        response = await client.post(
            "/api/v1/sign-in",
            json={"email": "a@example.com", "password": "password123"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["accessToken"]
        assert data["refreshToken"]
        assert data["accessToken"] != data["refreshToken"]

    async def test__wrong_password_and_unknown_email__same_401(
        self, client: AsyncClient,
    ) -> None:
        await register(client)

        wrong_password = await client.post(
            "/api/v1/sign-in", json={"email": "a@example.com", "password": "password999"},
        )
        unknown_email = await client.post(
            "/api/v1/sign-in", json={"email": "b@example.com", "password": "password123"},
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert wrong_password.json()["error"] == "Invalid credentials"


class TestAuthRateLimit:
    """Tests for the strict limiter on credential endpoints."""

    async def test__sixth_sign_in__403_with_retry_after(self, client: AsyncClient) -> None:
        payload = {"email": "a@example.com", "password": "password123"}
        for _ in range(5):
            response = await client.post("/api/v1/sign-in", json=payload)
            assert response.status_code == 401

        response = await client.post("/api/v1/sign-in", json=payload)

        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["retryAfter"] > 0
        assert int(response.headers["Retry-After"]) == body["retryAfter"]
        assert response.headers["X-RateLimit-Remaining"] == "0"

    async def test__limit__is_per_route(self, client: AsyncClient) -> None:
        """Exhausting sign-in does not block sign-up."""
        payload = {"email": "a@example.com", "password": "password123"}
        for _ in range(6):
            await client.post("/api/v1/sign-in", json=payload)

        response = await client.post("/api/v1/sign-up", json=ALICE)

        assert response.status_code == 201

    async def test__limit__is_per_client_ip(self, client: AsyncClient) -> None:
        payload = {"email": "a@example.com", "password": "password123"}
        for _ in range(6):
            await client.post("/api/v1/sign-in", json=payload)

        response = await client.post(
            "/api/v1/sign-in", json=payload, headers={"X-Forwarded-For": "203.0.113.9"},
        )

        assert response.status_code == 401
