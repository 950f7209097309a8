"""Whole-second roast stopwatch driven by a single asyncio tick task."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable

import structlog

logger = structlog.get_logger("roastlog.stopwatch")

TickCallback = Callable[[int], None]


class Stopwatch:
	"""Counts whole seconds while running.

	At most one tick task exists at a time.  ``elapsed`` only grows while the
	stopwatch is running and only drops back to zero through :meth:`reset`.
	The tick task must be created from inside a running event loop.
	"""

	def __init__(self, tick_interval: float = 1.0, on_tick: TickCallback | None = None):
		if tick_interval <= 0:
			raise ValueError("tick_interval must be positive")
		self.tick_interval = tick_interval
		self.on_tick = on_tick
		self._elapsed = 0
		self._task: asyncio.Task[None] | None = None

	@property
	def elapsed(self) -> int:
		return self._elapsed

	@property
	def running(self) -> bool:
		return self._task is not None

	def start(self) -> None:
		if self._task is not None:
			return
		self._task = asyncio.get_running_loop().create_task(self._run(), name="roastlog-stopwatch")

	def pause(self) -> None:
		self._cancel()

	def reset(self) -> None:
		self._cancel()
		self._elapsed = 0

	def tick(self) -> None:
		"""Advance by one second; ignored unless running."""
		if self._task is None:
			return
		self._elapsed += 1
		if self.on_tick is not None:
			try:
				self.on_tick(self._elapsed)
			except Exception:
				logger.exception("stopwatch_tick_listener_failed", elapsed=self._elapsed)

	async def aclose(self) -> None:
		task = self._task
		self._cancel()
		if task is not None:
			with contextlib.suppress(asyncio.CancelledError):
				await task

	async def _run(self) -> None:
		while True:
			await asyncio.sleep(self.tick_interval)
			self.tick()

	def _cancel(self) -> None:
		if self._task is None:
			return
		self._task.cancel()
		self._task = None
