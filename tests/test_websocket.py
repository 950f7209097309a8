from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import asynccontextmanager
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from roastlog.auth.jwt import create_access_token
from roastlog.main import app
from roastlog.services.document_store import InMemoryDocumentStore
from roastlog.services.identity import InMemoryUserDirectory, PasswordIdentityProvider
from roastlog.services.workspace import RoastWorkspace

EMAIL = "ws-roaster@test.local"
PASSWORD = "development"


@asynccontextmanager
async def _noop_lifespan(_: Any):
    yield


@pytest.fixture
def live_client() -> Iterator[tuple[TestClient, RoastWorkspace]]:
    directory = InMemoryUserDirectory()
    workspace = RoastWorkspace(InMemoryDocumentStore(), PasswordIdentityProvider(directory), tick_interval=3600)
    app.state.workspace = workspace

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        client.portal.call(directory.register, EMAIL, PASSWORD, "Websocket Roaster")
        yield client, workspace
        client.portal.call(workspace.aclose)
    app.router.lifespan_context = original_lifespan
    app.state.workspace = None


def _sign_in(client: TestClient) -> str:
    response = client.post("/api/v1/auth/sign-in", json={"email": EMAIL, "password": PASSWORD})
    assert response.status_code == 200
    return response.json()["access_token"]


def _receive_until(websocket: Any, predicate: Callable[[dict[str, Any]], bool], limit: int = 10) -> dict[str, Any]:
    for _ in range(limit):
        event = websocket.receive_json()
        if predicate(event):
            return event
    raise AssertionError("expected event never arrived")


def test_websocket_sends_session_and_snapshot_first(live_client: tuple[TestClient, RoastWorkspace]) -> None:
    client, _workspace = live_client
    token = _sign_in(client)

    with client.websocket_connect(f"/ws/live?token={token}") as websocket:
        session = websocket.receive_json()
        snapshot = websocket.receive_json()

    assert session["type"] == "session"
    assert session["session"]["state"] == "idle"
    assert snapshot["type"] == "snapshot"
    assert snapshot["profiles"] == []


def test_websocket_forwards_notices_and_new_profiles(live_client: tuple[TestClient, RoastWorkspace]) -> None:
    client, workspace = live_client
    token = _sign_in(client)
    headers = {"Authorization": f"Bearer {token}"}

    with client.websocket_connect(f"/ws/live?token={token}") as websocket:
        websocket.receive_json()
        websocket.receive_json()

        client.patch("/api/v1/profiles/missing", json={"notes": "x"}, headers=headers)
        notice = _receive_until(websocket, lambda event: event["type"] == "notice")
        assert notice["code"] == "profile_not_found"

        client.put(
            "/api/v1/session/template",
            json={
                "name": "Brazil Cerrado",
                "bean": "Arabica",
                "roast_level": "Medium-Dark",
                "weight": {"green": 500, "roasted": 420},
            },
            headers=headers,
        )
        client.post("/api/v1/session/start", headers=headers)
        client.post("/api/v1/session/samples", json={"temperature": 205.5, "time": 480}, headers=headers)
        stopped = client.post("/api/v1/session/stop", headers=headers)
        assert stopped.status_code == 201

        snapshot = _receive_until(websocket, lambda event: event["type"] == "snapshot" and bool(event["profiles"]))
        assert snapshot["uid"] == workspace.identity.uid
        assert snapshot["profiles"][0]["id"] == stopped.json()["profile_id"]
        assert snapshot["profiles"][0]["roast_level"] == "Medium-Dark"


def test_websocket_closes_when_identity_signs_out(live_client: tuple[TestClient, RoastWorkspace]) -> None:
    client, _workspace = live_client
    token = _sign_in(client)

    with client.websocket_connect(f"/ws/live?token={token}") as websocket:
        websocket.receive_json()
        websocket.receive_json()

        response = client.post("/api/v1/auth/sign-out", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 204

        cleared = _receive_until(websocket, lambda event: event["type"] == "snapshot" and event["uid"] is None)
        assert cleared["profiles"] == []
        with pytest.raises(WebSocketDisconnect) as closed:
            websocket.receive_json()
        assert closed.value.code == 1008


def test_websocket_missing_token_rejected(live_client: tuple[TestClient, RoastWorkspace]) -> None:
    client, _workspace = live_client

    with client.websocket_connect("/ws/live") as websocket:
        payload = websocket.receive_json()
        assert payload["error"] == "auth_required"


def test_websocket_invalid_token_rejected(live_client: tuple[TestClient, RoastWorkspace]) -> None:
    client, _workspace = live_client
    _sign_in(client)

    with client.websocket_connect("/ws/live?token=not-a-jwt") as websocket:
        payload = websocket.receive_json()
        assert payload["error"] == "token_invalid"


def test_websocket_token_for_other_identity_rejected(live_client: tuple[TestClient, RoastWorkspace]) -> None:
    client, _workspace = live_client
    _sign_in(client)
    foreign = create_access_token("someone-else", expires_minutes=5)

    with client.websocket_connect(f"/ws/live?token={foreign}") as websocket:
        payload = websocket.receive_json()
        assert payload["error"] == "identity_mismatch"


def test_websocket_without_workspace_returns_error() -> None:
    app.state.workspace = None

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _noop_lifespan
    with TestClient(app) as client:
        with client.websocket_connect("/ws/live?token=test-token") as websocket:
            payload = websocket.receive_json()
            assert payload["error"] == "workspace_unavailable"
    app.router.lifespan_context = original_lifespan
