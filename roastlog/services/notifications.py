"""User-facing notices: the non-fatal error channel of the workspace."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger("roastlog.notices")


class NoticeLevel(StrEnum):
	info = "info"
	warning = "warning"
	error = "error"


class Notice(BaseModel):
	model_config = ConfigDict(frozen=True)

	level: NoticeLevel
	code: str
	message: str
	created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


NoticeListener = Callable[[Notice], None]


class Notifier:
	"""Keeps the most recent notices and fans them out to live listeners."""

	def __init__(self, history: int = 50):
		self._recent: deque[Notice] = deque(maxlen=history)
		self._listeners: list[NoticeListener] = []

	@property
	def recent(self) -> tuple[Notice, ...]:
		return tuple(self._recent)

	@property
	def last(self) -> Notice | None:
		return self._recent[-1] if self._recent else None

	def add_listener(self, listener: NoticeListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _remove() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _remove

	def info(self, code: str, message: str) -> Notice:
		return self.publish(Notice(level=NoticeLevel.info, code=code, message=message))

	def error(self, code: str, message: str) -> Notice:
		return self.publish(Notice(level=NoticeLevel.error, code=code, message=message))

	def publish(self, notice: Notice) -> Notice:
		self._recent.append(notice)
		for listener in list(self._listeners):
			try:
				listener(notice)
			except Exception:
				logger.exception("notice_listener_failed", code=notice.code)
		return notice
