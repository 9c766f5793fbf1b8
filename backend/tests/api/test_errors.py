"""Tests for the error envelope produced by the exception handlers."""
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from core.config import Environment, Settings
from tests.api.conftest import ALICE


@pytest.fixture
async def lenient_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Client that returns 500 responses instead of re-raising server errors."""
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as test_client:
        yield test_client


async def test__unexpected_error__generic_message_outside_development(
    lenient_client: AsyncClient, app: FastAPI,
) -> None:
    with patch.object(
        app.state.container.users, "list",
        new_callable=AsyncMock,
        side_effect=RuntimeError("secret internals"),
    ), patch.object(
        app.state.container.auth, "decode_token",
    ) as mock_decode:
        mock_decode.return_value.token_type = "access"
        mock_decode.return_value.subject_id = "00000000-0000-0000-0000-000000000000"
        response = await lenient_client.get(
            "/api/v1/users", headers={"Authorization": "Bearer anything"},
        )

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


async def test__unexpected_error__message_exposed_in_development(
    settings: Settings, app: FastAPI,
) -> None:
    from api.main import create_app

    dev_app = create_app(settings.model_copy(update={"environment": Environment.DEVELOPMENT}))
    dev_app.state.container = app.state.container

    transport = ASGITransport(app=dev_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as dev_client:
        with patch.object(
            dev_app.state.container.register_user, "execute",
            new_callable=AsyncMock,
            side_effect=RuntimeError("boom"),
        ):
            response = await dev_client.post("/api/v1/sign-up", json=ALICE)

    assert response.status_code == 500
    assert response.json()["error"] == "boom"


async def test__unknown_route__404_envelope(client: AsyncClient) -> None:
    response = await client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    assert response.json()["success"] is False
