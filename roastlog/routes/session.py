"""Active roast session routes: template, stopwatch, samples, stop.

Requests the session cannot honour in its current state are not errors in
the session itself; the routes answer ``409`` with the unchanged session so
the UI can show why the control was unavailable.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from roastlog.auth.dependencies import get_workspace, require_identity
from roastlog.core.session import SessionState
from roastlog.core.temperature_log import InvalidSampleError
from roastlog.routes.profiles import map_failure
from roastlog.schemas.roast import ProfileTemplate
from roastlog.schemas.session import SampleIn, SessionCommitRead, SessionRead
from roastlog.services.workspace import RoastWorkspace

router = APIRouter(
	prefix="/session",
	tags=["session"],
	dependencies=[Depends(require_identity)],
)


def _current(workspace: RoastWorkspace) -> SessionRead:
	return SessionRead.from_view(workspace.session.view())


def _conflict(workspace: RoastWorkspace, message: str) -> HTTPException:
	return HTTPException(
		status_code=status.HTTP_409_CONFLICT,
		detail={
			"error": "session_state",
			"message": message,
			"session": _current(workspace).model_dump(mode="json"),
		},
	)


@router.get("", response_model=SessionRead)
async def get_session(workspace: RoastWorkspace = Depends(get_workspace)) -> SessionRead:
	return _current(workspace)


@router.put("/template", response_model=SessionRead)
async def prepare(
	payload: ProfileTemplate,
	workspace: RoastWorkspace = Depends(get_workspace),
) -> SessionRead:
	if not workspace.session.prepare(payload):
		raise _conflict(workspace, "A roast is in progress; stop or discard it first")
	return _current(workspace)


@router.post("/start", response_model=SessionRead)
async def start(workspace: RoastWorkspace = Depends(get_workspace)) -> SessionRead:
	if not workspace.session.start():
		raise _conflict(workspace, "Choose a roast template before starting")
	return _current(workspace)


@router.post("/pause", response_model=SessionRead)
async def pause(workspace: RoastWorkspace = Depends(get_workspace)) -> SessionRead:
	if not workspace.session.pause():
		raise _conflict(workspace, "The stopwatch is not running")
	return _current(workspace)


@router.post("/resume", response_model=SessionRead)
async def resume(workspace: RoastWorkspace = Depends(get_workspace)) -> SessionRead:
	if not workspace.session.resume():
		raise _conflict(workspace, "The stopwatch is already running or no roast is in progress")
	return _current(workspace)


@router.post("/samples", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def add_sample(
	payload: SampleIn,
	workspace: RoastWorkspace = Depends(get_workspace),
) -> SessionRead:
	try:
		point = workspace.session.record(payload.temperature, time=payload.time)
	except InvalidSampleError as exc:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
	if point is None:
		raise _conflict(workspace, "Start the roast before logging temperatures")
	return _current(workspace)


@router.post("/stop", response_model=SessionCommitRead, status_code=status.HTTP_201_CREATED)
async def stop(workspace: RoastWorkspace = Depends(get_workspace)) -> SessionCommitRead:
	view = workspace.session.view()
	if not view.can_stop:
		raise _conflict(workspace, "Log at least one temperature before stopping")
	profile_id = await workspace.session.stop()
	if profile_id is None:
		if workspace.session.state is SessionState.running:
			raise map_failure(workspace)
		raise _conflict(workspace, "The roast could not be stopped")
	return SessionCommitRead(profile_id=profile_id, session=_current(workspace))


@router.post("/discard", response_model=SessionRead)
async def discard(workspace: RoastWorkspace = Depends(get_workspace)) -> SessionRead:
	if not workspace.session.discard():
		raise _conflict(workspace, "There is no staged roast to discard")
	return _current(workspace)
