"""The roasting-station workspace: one object owning all client-side state.

Routes receive the workspace through a dependency instead of reaching for
module-level singletons, which keeps the subscribe/unsubscribe lifecycle in
one place and lets tests build a workspace around fakes.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from roastlog.core.session import ActiveRoastSession
from roastlog.core.stopwatch import Stopwatch
from roastlog.schemas.roast import Identity, ProfileSnapshot
from roastlog.services.document_store import DocumentStore
from roastlog.services.identity import IdentityGate, IdentityProvider
from roastlog.services.notifications import Notice, Notifier
from roastlog.services.profile_store import RoastProfileStore

logger = structlog.get_logger("roastlog.workspace")

LiveEvent = dict[str, Any]
EventListener = Callable[[LiveEvent], None]


def _utcnow() -> datetime:
	return datetime.now(UTC)


class RoastWorkspace:
	def __init__(
		self,
		remote: DocumentStore,
		provider: IdentityProvider,
		tick_interval: float = 1.0,
		clock: Callable[[], datetime] = _utcnow,
	):
		self.remote = remote
		self.provider = provider
		self.notifier = Notifier()
		self.store = RoastProfileStore(remote, self.notifier)
		self.gate = IdentityGate(provider, self.store)
		self.session = ActiveRoastSession(
			self.store,
			Stopwatch(tick_interval=tick_interval, on_tick=self._on_tick),
			clock=clock,
		)
		self._listeners: list[EventListener] = []
		self.store.add_listener(self._on_snapshot)
		self.notifier.add_listener(self._on_notice)
		self.gate.attach()
		self._detach_identity = provider.on_identity_change(self._on_identity)

	@property
	def identity(self) -> Identity | None:
		return self.gate.identity

	def add_event_listener(self, listener: EventListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _remove() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _remove

	async def aclose(self) -> None:
		self._detach_identity()
		self.gate.detach()
		await self.session.aclose()
		await self.store.aclose()
		await self.remote.aclose()
		self._listeners.clear()
		logger.info("workspace_closed")

	def _emit(self, event: LiveEvent) -> None:
		for listener in list(self._listeners):
			try:
				listener(event)
			except Exception:
				logger.exception("live_event_listener_failed", event_type=event.get("type"))

	def _on_identity(self, identity: Identity | None) -> None:
		"""Drop a staged roast that belongs to a uid no longer signed in."""
		owner_uid = self.session.owner_uid
		if owner_uid is None or (identity is not None and identity.uid == owner_uid):
			return
		if self.session.discard():
			logger.info("session_discarded_on_identity_change", owner_uid=owner_uid)
			self.notifier.info(
				"session_discarded",
				"The roast in progress was discarded because the signed-in roaster changed.",
			)

	def _on_tick(self, elapsed: int) -> None:
		self._emit({"type": "tick", "elapsed": elapsed})

	def _on_snapshot(self, snapshot: ProfileSnapshot | None) -> None:
		profiles = [] if snapshot is None else [profile.model_dump(mode="json") for profile in snapshot.profiles]
		self._emit({"type": "snapshot", "uid": None if snapshot is None else snapshot.uid, "profiles": profiles})

	def _on_notice(self, notice: Notice) -> None:
		self._emit({"type": "notice", **notice.model_dump(mode="json")})
