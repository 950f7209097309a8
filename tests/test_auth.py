from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from jose import jwt

from roastlog.auth.jwt import AuthError, create_access_token, decode_token
from roastlog.config import get_settings
from roastlog.schemas.roast import Identity
from roastlog.services.workspace import RoastWorkspace

OPERATOR_EMAIL = "roaster@test.local"
OPERATOR_PASSWORD = "first-crack"


@pytest.mark.asyncio
async def test_missing_jwt_rejected_on_protected_endpoint(client: AsyncClient, signed_in: Identity) -> None:
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "auth_required"


def test_jwt_create_decode_roundtrip() -> None:
    token = create_access_token("uid-roaster", "Station Roaster", expires_minutes=5)
    payload = decode_token(token)
    assert payload["sub"] == "uid-roaster"
    assert payload["name"] == "Station Roaster"
    assert payload["typ"] == "access"


def test_decode_invalid_token_raises_auth_error() -> None:
    with pytest.raises(AuthError) as exc_info:
        decode_token("invalid.token.payload")
    assert exc_info.value.code == "token_invalid"


def test_decode_rejects_wrong_token_type() -> None:
    settings = get_settings()
    now = datetime.now(UTC)
    token = jwt.encode(
        {"sub": "uid-roaster", "typ": "refresh", "exp": int((now + timedelta(minutes=5)).timestamp())},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(AuthError) as exc_info:
        decode_token(token)
    assert exc_info.value.code == "token_type_invalid"


def test_decode_rejects_expired_token() -> None:
    settings = get_settings()
    token = jwt.encode(
        {"sub": "uid-roaster", "typ": "access", "exp": int(datetime(2020, 1, 1, tzinfo=UTC).timestamp())},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(AuthError):
        decode_token(token)


@pytest.mark.asyncio
async def test_sign_in_returns_token_and_opens_feed(client: AsyncClient, workspace: RoastWorkspace) -> None:
    response = await client.post(
        "/api/v1/auth/sign-in",
        json={"email": OPERATOR_EMAIL, "password": OPERATOR_PASSWORD},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["identity"]["display_name"] == "Station Roaster"
    assert decode_token(body["access_token"])["sub"] == body["identity"]["uid"]
    assert workspace.store.subscribed is True

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["uid"] == body["identity"]["uid"]


@pytest.mark.asyncio
async def test_sign_in_with_wrong_password_is_rejected(client: AsyncClient, workspace: RoastWorkspace) -> None:
    response = await client.post(
        "/api/v1/auth/sign-in",
        json={"email": OPERATOR_EMAIL, "password": "wrong"},
    )
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "invalid_credentials"
    assert workspace.identity is None
    assert workspace.store.subscribed is False


@pytest.mark.asyncio
async def test_sign_out_closes_feed_and_invalidates_token(auth_client: AsyncClient, workspace: RoastWorkspace) -> None:
    response = await auth_client.post("/api/v1/auth/sign-out")
    assert response.status_code == 204
    assert workspace.identity is None
    assert workspace.store.subscribed is False
    assert workspace.store.profiles == ()

    after = await auth_client.get("/api/v1/auth/me")
    assert after.status_code == 401
    assert after.json()["detail"]["error"] == "signed_out"


@pytest.mark.asyncio
async def test_token_for_previous_identity_is_refused(auth_client: AsyncClient, workspace: RoastWorkspace) -> None:
    await workspace.provider.directory.register("second@test.local", "medium-roast", "Second Roaster")  # type: ignore[attr-defined]
    await workspace.gate.sign_in("second@test.local", "medium-roast")

    response = await auth_client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "identity_mismatch"


@pytest.mark.asyncio
async def test_health_is_public(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"x-request-id": "req-42"})
    assert response.status_code == 200
    assert response.headers["x-request-id"] == "req-42"
    assert response.json()["service"] == "roastlog"


@pytest.mark.asyncio
async def test_request_id_is_generated_when_absent(client: AsyncClient) -> None:
    first = await client.post("/api/v1/auth/sign-in", json={"email": OPERATOR_EMAIL, "password": "wrong"})
    second = await client.get("/health")

    assert len(first.headers["x-request-id"]) == 32
    assert len(second.headers["x-request-id"]) == 32
    assert first.headers["x-request-id"] != second.headers["x-request-id"]
