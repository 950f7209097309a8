"""Pydantic schemas for roast templates, profiles, samples and snapshots."""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from roastlog.models.enums import RoastLevelEnum


def to_utc(value: datetime) -> datetime:
	"""Canonical instant: timezone-aware UTC. Naive values are taken as UTC."""
	if value.tzinfo is None:
		return value.replace(tzinfo=UTC)
	return value.astimezone(UTC)


class TemperaturePoint(BaseModel):
	model_config = ConfigDict(frozen=True)

	time: int = Field(ge=0, description="Seconds since the roast started")
	temperature: float = Field(allow_inf_nan=False, description="Degrees Celsius")
	timestamp: datetime

	@field_validator("timestamp")
	@classmethod
	def _utc_timestamp(cls, value: datetime) -> datetime:
		return to_utc(value)


class Weight(BaseModel):
	model_config = ConfigDict(frozen=True)

	green: float = Field(ge=0, allow_inf_nan=False)
	roasted: float = Field(ge=0, allow_inf_nan=False)


class ProfileTemplate(BaseModel):
	"""Metadata chosen before the stopwatch starts."""

	model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

	name: str = Field(min_length=1, max_length=255)
	bean: str = Field(min_length=1, max_length=255)
	roast_level: RoastLevelEnum
	notes: str = ""
	weight: Weight


class RoastProfileDraft(ProfileTemplate):
	"""A finished roast that has not been assigned an id yet (the create request)."""

	start_time: datetime
	end_time: datetime | None = None
	duration: int = Field(ge=0)
	temperature_log: tuple[TemperaturePoint, ...] = Field(min_length=1)
	flavor_notes: str | None = None
	is_favorite: bool = False

	@field_validator("start_time", "end_time")
	@classmethod
	def _utc_instants(cls, value: datetime | None) -> datetime | None:
		return None if value is None else to_utc(value)


class RoastProfile(RoastProfileDraft):
	"""A persisted roast as delivered by the document store."""

	id: str = Field(min_length=1)


_NULLABLE_FIELDS = frozenset({"end_time", "flavor_notes"})


class RoastProfileUpdate(BaseModel):
	"""Partial update of a persisted profile.

	Only the fields explicitly set are transmitted.  Nested structures are
	replaced wholesale: ``weight`` must always carry both ``green`` and
	``roasted``, and ``temperature_log`` replaces the entire log.  Sending
	``weight={"green": 120}`` alone is rejected rather than silently dropping
	the roasted weight.
	"""

	model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

	name: str | None = Field(default=None, min_length=1, max_length=255)
	bean: str | None = Field(default=None, min_length=1, max_length=255)
	roast_level: RoastLevelEnum | None = None
	notes: str | None = None
	start_time: datetime | None = None
	end_time: datetime | None = None
	duration: int | None = Field(default=None, ge=0)
	temperature_log: tuple[TemperaturePoint, ...] | None = Field(default=None, min_length=1)
	flavor_notes: str | None = None
	is_favorite: bool | None = None
	weight: Weight | None = None

	@field_validator("start_time", "end_time")
	@classmethod
	def _utc_instants(cls, value: datetime | None) -> datetime | None:
		return None if value is None else to_utc(value)

	@model_validator(mode="after")
	def _reject_null_required(self) -> RoastProfileUpdate:
		for field_name in self.model_fields_set - _NULLABLE_FIELDS:
			if getattr(self, field_name) is None:
				raise ValueError(f"{field_name} cannot be null")
		return self

	def changes(self) -> dict[str, Any]:
		"""Fields to transmit, with nested models flattened to plain dicts."""
		return self.model_dump(exclude_unset=True)


class Identity(BaseModel):
	model_config = ConfigDict(frozen=True)

	uid: str = Field(min_length=1)
	display_name: str = ""


class ProfileSnapshot(BaseModel):
	"""Full ordered copy of one identity's collection, as delivered by a subscription."""

	model_config = ConfigDict(frozen=True)

	uid: str
	profiles: tuple[RoastProfile, ...] = ()
	received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def is_finite_temperature(value: Any) -> bool:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return False
	return math.isfinite(value)
