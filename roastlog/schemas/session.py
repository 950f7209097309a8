"""Request/response schemas for the active roast session routes."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from roastlog.core.session import SessionState, SessionView
from roastlog.schemas.roast import ProfileTemplate, TemperaturePoint


class SampleIn(BaseModel):
	temperature: float = Field(allow_inf_nan=False)
	time: int | None = Field(default=None, ge=0, description="Defaults to the stopwatch reading")


class SessionRead(BaseModel):
	state: SessionState
	template: ProfileTemplate | None = None
	start_time: datetime | None = None
	elapsed: int
	stopwatch_running: bool
	samples: list[TemperaturePoint] = Field(default_factory=list)
	committing: bool = False
	owner_uid: str | None = None
	can_start: bool
	can_stop: bool

	@classmethod
	def from_view(cls, view: SessionView) -> SessionRead:
		return cls(
			state=view.state,
			template=view.template,
			start_time=view.start_time,
			elapsed=view.elapsed,
			stopwatch_running=view.stopwatch_running,
			samples=list(view.samples),
			committing=view.committing,
			owner_uid=view.owner_uid,
			can_start=view.can_start,
			can_stop=view.can_stop,
		)


class SessionCommitRead(BaseModel):
	profile_id: str
	session: SessionRead
