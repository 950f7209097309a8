"""WebSocket live feed: collection snapshots, notices and stopwatch ticks."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from roastlog.auth.dependencies import identity_for_token
from roastlog.auth.jwt import AuthError
from roastlog.schemas.session import SessionRead
from roastlog.services.workspace import LiveEvent, RoastWorkspace

router = APIRouter(tags=["websocket"])
logger = structlog.get_logger("roastlog.ws")


def _initial_events(workspace: RoastWorkspace) -> list[dict[str, Any]]:
	snapshot = workspace.store.snapshot
	return [
		{
			"type": "session",
			"session": SessionRead.from_view(workspace.session.view()).model_dump(mode="json"),
		},
		{
			"type": "snapshot",
			"uid": None if snapshot is None else snapshot.uid,
			"profiles": [profile.model_dump(mode="json") for profile in workspace.store.profiles],
		},
	]


@router.websocket("/ws/live")
async def ws_live_feed(websocket: WebSocket) -> None:
	await websocket.accept()

	workspace: RoastWorkspace | None = getattr(websocket.app.state, "workspace", None)
	if workspace is None:
		await websocket.send_json({"error": "workspace_unavailable"})
		await websocket.close(code=1011)
		return

	token = websocket.query_params.get("token")
	if token is None or not token.strip():
		await websocket.send_json({"error": "auth_required"})
		await websocket.close(code=1008)
		return
	try:
		identity = identity_for_token(workspace, token.strip())
	except AuthError as exc:
		await websocket.send_json({"error": exc.code})
		await websocket.close(code=1008)
		return

	queue: asyncio.Queue[LiveEvent] = asyncio.Queue()
	remove_listener = workspace.add_event_listener(queue.put_nowait)
	logger.info("live_feed_opened", uid=identity.uid)

	try:
		for event in _initial_events(workspace):
			await websocket.send_json(event)
		while True:
			try:
				event = await asyncio.wait_for(queue.get(), timeout=1.0)
			except TimeoutError:
				continue
			await websocket.send_json(event)
			if event.get("type") == "snapshot" and event.get("uid") != identity.uid:
				# The station switched identity; this socket's token is stale.
				await websocket.close(code=1008)
				return
	except WebSocketDisconnect:
		return
	finally:
		remove_listener()
		logger.info("live_feed_closed", uid=identity.uid)
