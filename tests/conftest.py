"""Shared pytest fixtures: fake remote store, fake Redis, workspace, async client."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from roastlog.auth.jwt import create_access_token
from roastlog.main import app
from roastlog.models.enums import RoastLevelEnum
from roastlog.schemas.roast import (
	Identity,
	ProfileTemplate,
	RoastProfile,
	RoastProfileDraft,
	TemperaturePoint,
	Weight,
)
from roastlog.services.document_store import DocumentStoreError, InMemoryDocumentStore
from roastlog.services.identity import InMemoryUserDirectory, PasswordIdentityProvider
from roastlog.services.workspace import RoastWorkspace

OPERATOR_EMAIL = "roaster@test.local"
OPERATOR_PASSWORD = "first-crack"
START = datetime(2026, 10, 1, 8, 0, tzinfo=UTC)


class FakeSubscription:
	def __init__(self, uid: str, on_snapshot: Callable[..., None], on_error: Callable[[Exception], None]) -> None:
		self.uid = uid
		self.on_snapshot = on_snapshot
		self.on_error = on_error
		self.cancel_calls = 0

	@property
	def cancelled(self) -> bool:
		return self.cancel_calls > 0

	def cancel(self) -> None:
		self.cancel_calls += 1


class FakeDocumentStore:
	"""Records every call; snapshots and errors are pushed by the test."""

	def __init__(self) -> None:
		self.subscriptions: list[FakeSubscription] = []
		self.inserted: list[tuple[str, RoastProfileDraft]] = []
		self.patched: list[tuple[str, str, dict[str, Any]]] = []
		self.removed: list[tuple[str, str]] = []
		self.insert = AsyncMock(side_effect=self._insert)
		self.patch = AsyncMock(side_effect=self._patch)
		self.remove = AsyncMock(side_effect=self._remove)
		self.aclose = AsyncMock()

	def subscribe(self, uid: str, on_snapshot: Callable[..., None], on_error: Callable[[Exception], None]) -> FakeSubscription:
		subscription = FakeSubscription(uid, on_snapshot, on_error)
		self.subscriptions.append(subscription)
		return subscription

	@property
	def active(self) -> list[FakeSubscription]:
		return [sub for sub in self.subscriptions if not sub.cancelled]

	def fail_with(self, exc: Exception) -> None:
		for mock in (self.insert, self.patch, self.remove):
			mock.side_effect = exc

	async def _insert(self, uid: str, draft: RoastProfileDraft) -> str:
		self.inserted.append((uid, draft))
		return f"profile-{len(self.inserted)}"

	async def _patch(self, uid: str, profile_id: str, changes: dict[str, Any]) -> None:
		self.patched.append((uid, profile_id, changes))

	async def _remove(self, uid: str, profile_id: str) -> None:
		self.removed.append((uid, profile_id))


class FakePubSub:
	def __init__(self, payloads: list[dict[str, Any]]) -> None:
		self.payloads = payloads
		self.index = 0
		self.subscribed_channel: str | None = None
		self.unsubscribed_channel: str | None = None
		self.closed = False

	async def subscribe(self, channel: str) -> None:
		self.subscribed_channel = channel

	async def get_message(self, ignore_subscribe_messages: bool, timeout: float) -> dict[str, Any] | None:
		if self.index >= len(self.payloads):
			return None
		message = self.payloads[self.index]
		self.index += 1
		return message

	async def unsubscribe(self, channel: str) -> None:
		self.unsubscribed_channel = channel

	async def close(self) -> None:
		self.closed = True


class FakeRedis:
	def __init__(self, payloads: list[dict[str, Any]] | None = None) -> None:
		self.payloads = payloads or []
		self.publish = AsyncMock(return_value=1)
		self.last_pubsub: FakePubSub | None = None

	def pubsub(self) -> FakePubSub:
		self.last_pubsub = FakePubSub(self.payloads)
		return self.last_pubsub


@pytest.fixture
def fake_remote() -> FakeDocumentStore:
	return FakeDocumentStore()


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Reusable fake Redis client with async publish and pubsub behavior."""
	return FakeRedis()


@pytest.fixture
async def memory_remote() -> AsyncGenerator[InMemoryDocumentStore, None]:
	remote = InMemoryDocumentStore()
	yield remote
	await remote.aclose()


@pytest.fixture
def template() -> ProfileTemplate:
	return ProfileTemplate(
		name="Ethiopia Yirgacheffe",
		bean="Arabica",
		roast_level=RoastLevelEnum.medium,
		notes="washed, floral",
		weight=Weight(green=100, roasted=85),
	)


@pytest.fixture
def make_draft(template: ProfileTemplate) -> Callable[..., RoastProfileDraft]:
	def _make(start_time: datetime = START, duration: int = 600, **overrides: Any) -> RoastProfileDraft:
		fields: dict[str, Any] = {
			**template.model_dump(),
			"start_time": start_time,
			"end_time": start_time + timedelta(seconds=duration),
			"duration": duration,
			"temperature_log": (
				TemperaturePoint(time=60, temperature=180.0, timestamp=start_time + timedelta(seconds=60)),
			),
		}
		fields.update(overrides)
		return RoastProfileDraft(**fields)

	return _make


@pytest.fixture
def make_profile(make_draft: Callable[..., RoastProfileDraft]) -> Callable[..., RoastProfile]:
	def _make(profile_id: str, start_time: datetime = START, **overrides: Any) -> RoastProfile:
		draft = make_draft(start_time=start_time, **overrides)
		return RoastProfile(id=profile_id, **draft.model_dump())

	return _make


@pytest.fixture
def identity_a() -> Identity:
	return Identity(uid="uid-a", display_name="Roaster A")


@pytest.fixture
def identity_b() -> Identity:
	return Identity(uid="uid-b", display_name="Roaster B")


@pytest.fixture
async def directory() -> InMemoryUserDirectory:
	users = InMemoryUserDirectory()
	await users.register(OPERATOR_EMAIL, OPERATOR_PASSWORD, "Station Roaster")
	return users


@pytest.fixture
async def workspace(
	memory_remote: InMemoryDocumentStore,
	directory: InMemoryUserDirectory,
) -> AsyncGenerator[RoastWorkspace, None]:
	"""Workspace over the in-memory store; the stopwatch is driven by ``tick()``."""
	ws = RoastWorkspace(memory_remote, PasswordIdentityProvider(directory), tick_interval=3600)
	yield ws
	await ws.aclose()


@pytest.fixture
async def signed_in(workspace: RoastWorkspace) -> Identity:
	identity = await workspace.gate.sign_in(OPERATOR_EMAIL, OPERATOR_PASSWORD)
	await workspace.remote.drain()  # type: ignore[attr-defined]
	return identity


@pytest.fixture
def access_token(signed_in: Identity) -> str:
	return create_access_token(signed_in.uid, signed_in.display_name, expires_minutes=30)


@pytest.fixture
async def client(workspace: RoastWorkspace) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and the workspace injected."""
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan
	app.state.workspace = workspace

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.state.workspace = None
	app.router.lifespan_context = original_lifespan


@pytest.fixture
async def auth_client(client: AsyncClient, access_token: str) -> AsyncClient:
	client.headers["Authorization"] = f"Bearer {access_token}"
	return client


@pytest.fixture
def remote_failure() -> DocumentStoreError:
	return DocumentStoreError("connection reset by peer")

