"""Shared fixtures for API tests."""
import pytest
from httpx import AsyncClient

ALICE = {"username": "alice", "email": "a@example.com", "password": "password123"}


async def register(client: AsyncClient, **overrides: str) -> dict:
    """Register a user through the API and return the response data."""
    response = await client.post("/api/v1/sign-up", json={**ALICE, **overrides})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def sign_in(client: AsyncClient, email: str, password: str) -> dict:
    response = await client.post(
        "/api/v1/sign-in", json={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


@pytest.fixture
async def alice_token(client: AsyncClient) -> str:
    """Access token for a freshly registered user."""
    await register(client)
    tokens = await sign_in(client, ALICE["email"], ALICE["password"])
    return tokens["accessToken"]


@pytest.fixture
def auth_headers(alice_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {alice_token}"}
