"""structlog setup and the per-request access log of the roastlog API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from roastlog.config import LogFormat, Settings, get_settings

_configured = False
_QUIET_PATHS = frozenset({"/health"})


def _renderer(log_format: LogFormat) -> Any:
	if log_format == LogFormat.console:
		return structlog.dev.ConsoleRenderer()
	return structlog.processors.JSONRenderer()


def configure_structured_logging(settings: Settings | None = None) -> None:
	"""Route stdlib and structlog output through one renderer; runs once."""
	global _configured
	if _configured:
		return

	settings = settings or get_settings()
	level = logging.getLevelName(settings.log_level.upper())
	if not isinstance(level, int):
		level = logging.INFO
	logging.basicConfig(level=level, format="%(message)s")

	structlog.configure(
		processors=[
			structlog.contextvars.merge_contextvars,
			structlog.processors.add_log_level,
			structlog.processors.TimeStamper(fmt="iso", utc=True),
			structlog.processors.format_exc_info,
			_renderer(settings.log_format),
		],
		wrapper_class=structlog.make_filtering_bound_logger(level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


def _signed_in_uid(request: Request) -> str | None:
	workspace = getattr(request.app.state, "workspace", None)
	identity = None if workspace is None else workspace.identity
	return None if identity is None else identity.uid


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Echo ``x-request-id`` and log one ``http_request`` event per call.

	The uid bound before the call is whoever was signed in when the request
	arrived; sign-in and sign-out requests also log the uid they left behind.
	"""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
		uid_before = _signed_in_uid(request)
		structlog.contextvars.clear_contextvars()
		structlog.contextvars.bind_contextvars(request_id=request_id, uid=uid_before)

		logger = structlog.get_logger("roastlog.request")
		started = time.perf_counter()
		fields: dict[str, Any] = {"method": request.method, "path": request.url.path}

		try:
			response = await call_next(request)
		except Exception:
			logger.exception("http_request_failed", duration_ms=_elapsed_ms(started), **fields)
			raise

		response.headers["x-request-id"] = request_id
		if request.url.path in _QUIET_PATHS:
			return response

		uid_after = _signed_in_uid(request)
		if uid_after != uid_before:
			fields["uid_after"] = uid_after
		logger.info(
			"http_request",
			status_code=response.status_code,
			duration_ms=_elapsed_ms(started),
			**fields,
		)
		return response


def _elapsed_ms(started: float) -> float:
	return round((time.perf_counter() - started) * 1000.0, 2)
