"""Roast profile store: local mirror of one identity's remote collection.

The collection is written in exactly one place: the snapshot callback of the
current subscription.  ``create``/``update``/``delete`` only talk to the
remote store and then wait, like every other reader, for the change to come
back through the feed.  Because nothing is patched locally there is nothing
to roll back when a remote call fails, and an in-flight mutation can never
race an incoming snapshot into a mixed state.

None of the public operations raise.  Missing identity and remote failures
are logged and published as :class:`Notice` objects; the return value only
tells the caller whether the request was accepted by the remote store.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from roastlog.schemas.roast import (
	Identity,
	ProfileSnapshot,
	RoastProfile,
	RoastProfileDraft,
	RoastProfileUpdate,
)
from roastlog.services.document_store import DocumentStore, Profiles, ProfileNotFoundError, Subscription, order_profiles
from roastlog.services.notifications import Notifier

logger = structlog.get_logger("roastlog.profile_store")

SnapshotListener = Callable[[ProfileSnapshot | None], None]


class RoastProfileStore:
	def __init__(self, remote: DocumentStore, notifier: Notifier):
		self._remote = remote
		self._notifier = notifier
		self._identity: Identity | None = None
		self._subscription: Subscription | None = None
		self._generation = 0
		self._snapshot: ProfileSnapshot | None = None
		self._listeners: list[SnapshotListener] = []

	@property
	def identity(self) -> Identity | None:
		return self._identity

	@property
	def snapshot(self) -> ProfileSnapshot | None:
		return self._snapshot

	@property
	def profiles(self) -> Profiles:
		return self._snapshot.profiles if self._snapshot is not None else ()

	@property
	def subscribed(self) -> bool:
		return self._subscription is not None and not self._subscription.cancelled

	def get(self, profile_id: str) -> RoastProfile | None:
		for profile in self.profiles:
			if profile.id == profile_id:
				return profile
		return None

	def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _remove() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _remove

	# ── Subscription lifecycle ──────────────────────────────────────────────

	def subscribe(self, identity: Identity | None) -> None:
		"""Point the store at ``identity``'s collection.

		The previous subscription is always cancelled first, so at most one
		feed is live.  With no identity the collection is cleared and no new
		feed is opened.  The collection is cleared on every switch so records
		from the old identity are never shown next to the new one.
		"""
		self._cancel_subscription()
		self._identity = identity
		self._replace(None)

		if identity is None:
			logger.info("profile_feed_closed")
			return

		uid = identity.uid
		generation = self._generation

		def on_snapshot(profiles: Profiles) -> None:
			if generation != self._generation:
				logger.debug("stale_snapshot_dropped", uid=uid)
				return
			self._replace(ProfileSnapshot(uid=uid, profiles=order_profiles(profiles)))

		def on_error(exc: Exception) -> None:
			if generation != self._generation:
				return
			logger.error("profile_feed_error", uid=uid, error=str(exc))
			self._notifier.error("subscription_failed", "Live roast list stopped updating. Please reload.")

		try:
			subscription = self._remote.subscribe(uid, on_snapshot, on_error)
		except Exception as exc:
			logger.exception("profile_feed_open_failed", uid=uid, error=str(exc))
			self._notifier.error("subscription_failed", "Could not load your roast profiles.")
			return
		self._subscription = subscription
		logger.info("profile_feed_opened", uid=uid)

	async def aclose(self) -> None:
		self._cancel_subscription()

	# ── Mutations ───────────────────────────────────────────────────────────

	async def create(self, draft: RoastProfileDraft) -> str | None:
		identity = self._require_identity()
		if identity is None:
			return None
		try:
			profile_id = await self._remote.insert(identity.uid, draft)
		except Exception as exc:
			self._remote_failure("create", exc, None, "Could not save the roast profile.")
			return None
		logger.info("profile_created", uid=identity.uid, profile_id=profile_id)
		return profile_id

	async def update(self, profile_id: str, fields: RoastProfileUpdate | Mapping[str, Any]) -> bool:
		"""Patch the given fields of a profile.

		Date fields are normalized to UTC instants before transmission.
		Nested structures are replaced wholesale, not merged: to change one
		weight, send the complete ``weight`` with both ``green`` and
		``roasted``, otherwise the sibling value is lost.
		"""
		identity = self._require_identity()
		if identity is None:
			return False
		if not isinstance(fields, RoastProfileUpdate):
			try:
				fields = RoastProfileUpdate.model_validate(dict(fields))
			except ValidationError as exc:
				logger.warning("profile_update_invalid", profile_id=profile_id, error=str(exc))
				self._notifier.error("invalid_update", "Some of the edited fields are not valid.")
				return False
		changes = fields.changes()
		if not changes:
			return True
		try:
			await self._remote.patch(identity.uid, profile_id, changes)
		except Exception as exc:
			self._remote_failure("update", exc, profile_id, "Could not update the roast profile.")
			return False
		logger.info("profile_updated", uid=identity.uid, profile_id=profile_id, fields=sorted(changes))
		return True

	async def delete(self, profile_id: str) -> bool:
		"""Remove a profile permanently; callers confirm with the user first."""
		identity = self._require_identity()
		if identity is None:
			return False
		try:
			await self._remote.remove(identity.uid, profile_id)
		except Exception as exc:
			self._remote_failure("delete", exc, profile_id, "Could not delete the roast profile.")
			return False
		logger.info("profile_deleted", uid=identity.uid, profile_id=profile_id)
		return True

	async def toggle_favorite(self, profile_id: str, current: bool) -> bool:
		return await self.update(profile_id, RoastProfileUpdate(is_favorite=not current))

	# ── Internals ───────────────────────────────────────────────────────────

	def _require_identity(self) -> Identity | None:
		if self._identity is None:
			logger.warning("profile_write_without_identity")
			self._notifier.error("identity_required", "Please sign in first.")
		return self._identity

	def _remote_failure(self, operation: str, exc: Exception, profile_id: str | None, message: str) -> None:
		logger.error(
			"profile_remote_failure",
			operation=operation,
			profile_id=profile_id,
			error=str(exc),
			error_type=type(exc).__name__,
		)
		if isinstance(exc, ProfileNotFoundError):
			self._notifier.error("profile_not_found", f"{message} It no longer exists.")
		else:
			self._notifier.error("remote_failure", message)

	def _cancel_subscription(self) -> None:
		self._generation += 1
		if self._subscription is None:
			return
		self._subscription.cancel()
		self._subscription = None

	def _replace(self, snapshot: ProfileSnapshot | None) -> None:
		if snapshot is None and self._snapshot is None:
			return
		self._snapshot = snapshot
		for listener in list(self._listeners):
			try:
				listener(snapshot)
			except Exception:
				logger.exception("snapshot_listener_failed")
