"""Append-only temperature sample log for one active roast."""

from __future__ import annotations

from collections.abc import Iterator

from roastlog.schemas.roast import TemperaturePoint, is_finite_temperature


class InvalidSampleError(ValueError):
	"""Raised when a sample's temperature is not a finite number."""


class TemperatureLog:
	"""Insertion-ordered samples.  No dedup, no overwrite, no reordering."""

	def __init__(self) -> None:
		self._points: list[TemperaturePoint] = []

	def append(self, point: TemperaturePoint) -> None:
		if not is_finite_temperature(point.temperature):
			raise InvalidSampleError(f"temperature must be a finite number, got {point.temperature!r}")
		self._points.append(point)

	def clear(self) -> None:
		self._points.clear()

	@property
	def points(self) -> tuple[TemperaturePoint, ...]:
		return tuple(self._points)

	def __len__(self) -> int:
		return len(self._points)

	def __iter__(self) -> Iterator[TemperaturePoint]:
		return iter(self.points)

	def __bool__(self) -> bool:
		return bool(self._points)
