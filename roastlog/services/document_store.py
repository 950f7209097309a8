"""Remote document store boundary and its in-memory implementation.

A document store keeps one collection of roast documents per identity uid.
Readers never query it directly: they subscribe and receive full, ordered
snapshots every time that identity's collection changes.  Writers insert,
patch and remove documents and rely on the subscription to see the result.

Documents are kept in the provider's own representation (JSON-compatible
dicts with ISO-8601 strings for instants); :func:`encode_document` and
:func:`decode_document` are the only places that cross that line.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog
from pydantic import TypeAdapter

from roastlog.schemas.roast import RoastProfile, RoastProfileDraft

logger = structlog.get_logger("roastlog.document_store")

Profiles = tuple[RoastProfile, ...]
SnapshotCallback = Callable[[Profiles], None]
ErrorCallback = Callable[[Exception], None]

_json_fields = TypeAdapter(dict[str, Any])


class DocumentStoreError(Exception):
	"""Base error for failures reported by the remote document store."""


class ProfileNotFoundError(DocumentStoreError, LookupError):
	"""The document does not exist or belongs to another identity."""


class Subscription(Protocol):
	@property
	def cancelled(self) -> bool: ...

	def cancel(self) -> None: ...


class DocumentStore(Protocol):
	def subscribe(self, uid: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription: ...

	async def insert(self, uid: str, draft: RoastProfileDraft) -> str: ...

	async def patch(self, uid: str, profile_id: str, changes: dict[str, Any]) -> None: ...

	async def remove(self, uid: str, profile_id: str) -> None: ...

	async def aclose(self) -> None: ...


def encode_document(fields: dict[str, Any]) -> dict[str, Any]:
	"""Python values → provider representation (JSON types, ISO instants)."""
	return _json_fields.dump_python(fields, mode="json")


def decode_document(profile_id: str, document: dict[str, Any]) -> RoastProfile:
	"""Provider representation → RoastProfile with UTC datetimes.

	Bookkeeping keys (``owner_uid``, ``created_at``, ``updated_at``) are dropped.
	"""
	return RoastProfile.model_validate({**document, "id": profile_id})


def order_profiles(profiles: Iterable[RoastProfile]) -> Profiles:
	"""De-duplicate by id (first wins) and order by start_time, newest first."""
	unique: dict[str, RoastProfile] = {}
	for profile in profiles:
		unique.setdefault(profile.id, profile)
	by_id = sorted(unique.values(), key=lambda profile: profile.id)
	return tuple(sorted(by_id, key=lambda profile: profile.start_time, reverse=True))


class QueuedSubscription:
	"""Delivers snapshots one at a time, in order, from a dedicated task."""

	def __init__(self, uid: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback):
		self.uid = uid
		self._on_snapshot = on_snapshot
		self._on_error = on_error
		self._queue: asyncio.Queue[Profiles | Exception] = asyncio.Queue()
		self._cancelled = False
		self._task = asyncio.get_running_loop().create_task(self._pump(), name=f"roastlog-feed-{uid}")

	@property
	def cancelled(self) -> bool:
		return self._cancelled

	def push(self, item: Profiles | Exception) -> None:
		if self._cancelled:
			return
		self._queue.put_nowait(item)

	def cancel(self) -> None:
		if self._cancelled:
			return
		self._cancelled = True
		self._task.cancel()

	@property
	def closed(self) -> bool:
		return self._task.done()

	async def aclose(self) -> None:
		self.cancel()
		with contextlib.suppress(asyncio.CancelledError):
			await self._task

	async def drain(self) -> None:
		if self._cancelled:
			return
		await self._queue.join()

	async def _pump(self) -> None:
		while True:
			item = await self._queue.get()
			try:
				if isinstance(item, Exception):
					self._on_error(item)
				else:
					self._on_snapshot(item)
			except Exception:
				logger.exception("snapshot_delivery_failed", uid=self.uid)
			finally:
				self._queue.task_done()


class InMemoryDocumentStore:
	"""Process-local document store with the same semantics as the SQL one.

	Used for the ``memory`` backend and in tests.  Call :meth:`drain` to wait
	until every pending snapshot has been delivered.
	"""

	def __init__(self) -> None:
		self._documents: dict[str, dict[str, Any]] = {}
		self._subscriptions: list[QueuedSubscription] = []

	def subscribe(self, uid: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> QueuedSubscription:
		subscription = QueuedSubscription(uid, on_snapshot, on_error)
		self._subscriptions.append(subscription)
		subscription.push(self._snapshot(uid))
		return subscription

	async def insert(self, uid: str, draft: RoastProfileDraft) -> str:
		profile_id = uuid.uuid4().hex
		now = datetime.now(UTC)
		document = encode_document(
			{**draft.model_dump(), "owner_uid": uid, "created_at": now, "updated_at": now}
		)
		self._documents[profile_id] = document
		self._notify(uid)
		return profile_id

	async def patch(self, uid: str, profile_id: str, changes: dict[str, Any]) -> None:
		document = self._require_owned(uid, profile_id)
		document.update(encode_document({**changes, "updated_at": datetime.now(UTC)}))
		self._notify(uid)

	async def remove(self, uid: str, profile_id: str) -> None:
		self._require_owned(uid, profile_id)
		del self._documents[profile_id]
		self._notify(uid)

	async def drain(self) -> None:
		for subscription in list(self._subscriptions):
			await subscription.drain()

	async def aclose(self) -> None:
		subscriptions, self._subscriptions = self._subscriptions, []
		for subscription in subscriptions:
			subscription.cancel()
		for subscription in subscriptions:
			await subscription.aclose()

	def _require_owned(self, uid: str, profile_id: str) -> dict[str, Any]:
		document = self._documents.get(profile_id)
		if document is None or document.get("owner_uid") != uid:
			raise ProfileNotFoundError(f"Roast profile {profile_id} not found")
		return document

	def _snapshot(self, uid: str) -> Profiles:
		return order_profiles(
			decode_document(profile_id, document)
			for profile_id, document in self._documents.items()
			if document.get("owner_uid") == uid
		)

	def _notify(self, uid: str) -> None:
		self._subscriptions = [sub for sub in self._subscriptions if not sub.closed]
		for subscription in self._subscriptions:
			if subscription.uid == uid:
				subscription.push(self._snapshot(uid))
