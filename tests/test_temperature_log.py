from __future__ import annotations

from datetime import UTC, datetime

import pytest

from roastlog.core.temperature_log import InvalidSampleError, TemperatureLog
from roastlog.schemas.roast import TemperaturePoint

NOW = datetime(2026, 10, 1, 8, 0, tzinfo=UTC)


def _point(time: int, temperature: float) -> TemperaturePoint:
	return TemperaturePoint(time=time, temperature=temperature, timestamp=NOW)


def test_append_keeps_insertion_order_and_duplicates() -> None:
	log = TemperatureLog()
	points = [_point(60, 180.0), _point(60, 180.0), _point(30, 150.0)]
	for point in points:
		log.append(point)

	assert len(log) == 3
	assert log.points == tuple(points)


def test_clear_empties_the_log() -> None:
	log = TemperatureLog()
	log.append(_point(1, 100.0))
	log.clear()
	assert len(log) == 0
	assert not log


def test_points_view_cannot_mutate_history() -> None:
	log = TemperatureLog()
	log.append(_point(1, 100.0))
	view = log.points
	assert isinstance(view, tuple)
	assert list(view) + [_point(2, 110.0)] != list(log.points)
	assert len(log) == 1


def test_non_finite_temperature_is_rejected() -> None:
	log = TemperatureLog()
	bad = TemperaturePoint.model_construct(time=5, temperature=float("nan"), timestamp=NOW)
	with pytest.raises(InvalidSampleError):
		log.append(bad)
	assert len(log) == 0


def test_temperature_point_model_refuses_infinity() -> None:
	with pytest.raises(ValueError):
		TemperaturePoint(time=5, temperature=float("inf"), timestamp=NOW)


def test_naive_timestamps_are_taken_as_utc() -> None:
	point = TemperaturePoint(time=0, temperature=20.0, timestamp=datetime(2026, 10, 1, 8, 0))
	assert point.timestamp == NOW
