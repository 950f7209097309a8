"""Active roast session: the staged, not-yet-persisted roast.

States::

    idle ──prepare──▶ ready ──start──▶ running ──stop (≥1 sample)──▶ idle
                        ▲  │                │
                        └──┘ prepare        └─ pause / resume (stopwatch only)

The session owns its :class:`Stopwatch` and :class:`TemperatureLog`; nothing
else mutates them.  Requests that do not fit the current state are ignored
and reported back as ``False``/``None``; they never raise.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

import structlog

from roastlog.core.stopwatch import Stopwatch
from roastlog.core.temperature_log import InvalidSampleError, TemperatureLog
from roastlog.schemas.roast import (
	Identity,
	ProfileTemplate,
	RoastProfileDraft,
	TemperaturePoint,
	is_finite_temperature,
)

logger = structlog.get_logger("roastlog.session")


class SessionState(StrEnum):
	idle = "idle"
	ready = "ready"
	running = "running"


class ProfileCreator(Protocol):
	@property
	def identity(self) -> Identity | None: ...

	async def create(self, draft: RoastProfileDraft) -> str | None: ...


@dataclass(frozen=True, slots=True)
class SessionView:
	state: SessionState
	template: ProfileTemplate | None
	start_time: datetime | None
	elapsed: int
	stopwatch_running: bool
	samples: tuple[TemperaturePoint, ...]
	committing: bool
	owner_uid: str | None = None

	@property
	def can_start(self) -> bool:
		return self.state is SessionState.ready

	@property
	def can_stop(self) -> bool:
		return self.state is SessionState.running and bool(self.samples) and not self.committing


def _utcnow() -> datetime:
	return datetime.now(UTC)


class ActiveRoastSession:
	def __init__(
		self,
		store: ProfileCreator,
		stopwatch: Stopwatch | None = None,
		clock: Callable[[], datetime] = _utcnow,
	):
		self._store = store
		self._stopwatch = stopwatch or Stopwatch()
		self._log = TemperatureLog()
		self._clock = clock
		self._state = SessionState.idle
		self._template: ProfileTemplate | None = None
		self._start_time: datetime | None = None
		self._owner_uid: str | None = None
		self._committing = False

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def owner_uid(self) -> str | None:
		"""Uid signed in when the roast started; the profile is created for it."""
		return self._owner_uid

	@property
	def stopwatch(self) -> Stopwatch:
		return self._stopwatch

	@property
	def samples(self) -> tuple[TemperaturePoint, ...]:
		return self._log.points

	def view(self) -> SessionView:
		return SessionView(
			state=self._state,
			template=self._template,
			start_time=self._start_time,
			elapsed=self._stopwatch.elapsed,
			stopwatch_running=self._stopwatch.running,
			samples=self._log.points,
			committing=self._committing,
			owner_uid=self._owner_uid,
		)

	def prepare(self, template: ProfileTemplate) -> bool:
		"""Select the metadata for the next roast (idle/ready → ready)."""
		if self._state is SessionState.running:
			logger.debug("session_prepare_ignored", state=self._state.value)
			return False
		self._template = template
		self._state = SessionState.ready
		logger.info("session_ready", name=template.name, bean=template.bean)
		return True

	def start(self) -> bool:
		if self._state is not SessionState.ready or self._template is None:
			logger.debug("session_start_ignored", state=self._state.value)
			return False
		self._log.clear()
		self._stopwatch.reset()
		self._start_time = self._clock()
		identity = self._store.identity
		self._owner_uid = None if identity is None else identity.uid
		self._stopwatch.start()
		self._state = SessionState.running
		logger.info("session_started", name=self._template.name, start_time=self._start_time.isoformat())
		return True

	def pause(self) -> bool:
		if not self._accepts_input() or not self._stopwatch.running:
			return False
		self._stopwatch.pause()
		return True

	def resume(self) -> bool:
		if not self._accepts_input() or self._stopwatch.running:
			return False
		self._stopwatch.start()
		return True

	def record(self, temperature: float, time: int | None = None) -> TemperaturePoint | None:
		"""Log a reading taken now; ``time`` defaults to the stopwatch reading."""
		if not self._accepts_input():
			return None
		if not is_finite_temperature(temperature):
			raise InvalidSampleError(f"temperature must be a finite number, got {temperature!r}")
		point = TemperaturePoint(
			time=self._stopwatch.elapsed if time is None else time,
			temperature=temperature,
			timestamp=self._clock(),
		)
		self._log.append(point)
		return point

	def append(self, point: TemperaturePoint) -> bool:
		if not self._accepts_input():
			return False
		self._log.append(point)
		return True

	async def stop(self) -> str | None:
		"""Persist the roast and return to idle.

		Needs a running session with at least one sample.  The stopwatch is
		paused first so ``duration`` is frozen while the create request is in
		flight.  When the store reports failure the session stays staged
		(paused) so the operator can retry instead of losing the roast.
		A roast started by one identity is never created under another: if
		the signed-in uid changed since :meth:`start`, the stop is refused.
		"""
		if not self._accepts_input() or not self._log:
			logger.debug("session_stop_ignored", state=self._state.value, samples=len(self._log))
			return None
		current = self._store.identity
		if self._owner_uid is not None and (current is None or current.uid != self._owner_uid):
			logger.warning(
				"session_stop_refused",
				owner_uid=self._owner_uid,
				uid=None if current is None else current.uid,
			)
			return None

		assert self._template is not None and self._start_time is not None
		self._stopwatch.pause()
		draft = RoastProfileDraft(
			**self._template.model_dump(),
			start_time=self._start_time,
			end_time=self._clock(),
			duration=self._stopwatch.elapsed,
			temperature_log=self._log.points,
		)

		self._committing = True
		try:
			profile_id = await self._store.create(draft)
		finally:
			self._committing = False

		if profile_id is None:
			logger.warning("session_commit_failed", name=draft.name, duration=draft.duration)
			return None

		logger.info(
			"session_committed",
			profile_id=profile_id,
			duration=draft.duration,
			samples=len(draft.temperature_log),
		)
		self._reset()
		return profile_id

	def discard(self) -> bool:
		"""Drop the staged roast without persisting anything."""
		if self._committing or self._state is SessionState.idle:
			return False
		self._reset()
		logger.info("session_discarded")
		return True

	async def aclose(self) -> None:
		await self._stopwatch.aclose()

	def _accepts_input(self) -> bool:
		return self._state is SessionState.running and not self._committing

	def _reset(self) -> None:
		self._stopwatch.reset()
		self._log.clear()
		self._template = None
		self._start_time = None
		self._owner_uid = None
		self._state = SessionState.idle
