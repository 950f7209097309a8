"""Roast profile routes: list, edit, favorite, delete, export, share.

Mutations answer ``202 Accepted``: the remote store took the change, and the
collection (``GET /profiles`` or the live feed) shows it once the next
snapshot arrives.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from roastlog.auth.dependencies import get_workspace, require_identity
from roastlog.config import get_settings
from roastlog.schemas.profiles import FavoriteToggle, MutationAccepted, ProfileListRead, ShareLinkRead
from roastlog.schemas.roast import Identity, RoastProfile, RoastProfileUpdate
from roastlog.services.export import export_filename, export_profiles, share_link
from roastlog.services.workspace import RoastWorkspace

router = APIRouter(prefix="/profiles", tags=["profiles"])

_NOTICE_STATUS = {
	"identity_required": status.HTTP_401_UNAUTHORIZED,
	"profile_not_found": status.HTTP_404_NOT_FOUND,
	"invalid_update": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def map_failure(workspace: RoastWorkspace) -> HTTPException:
	notice = workspace.notifier.last
	if notice is None:
		return HTTPException(
			status_code=status.HTTP_502_BAD_GATEWAY,
			detail={"error": "remote_failure", "message": "Remote store failure"},
		)
	return HTTPException(
		status_code=_NOTICE_STATUS.get(notice.code, status.HTTP_502_BAD_GATEWAY),
		detail={"error": notice.code, "message": notice.message},
	)


def _require_profile(workspace: RoastWorkspace, profile_id: str) -> RoastProfile:
	profile = workspace.store.get(profile_id)
	if profile is None:
		raise HTTPException(
			status_code=status.HTTP_404_NOT_FOUND,
			detail={"error": "profile_not_found", "message": f"Roast profile {profile_id} not found"},
		)
	return profile


@router.get("", response_model=ProfileListRead)
async def list_profiles(
	workspace: RoastWorkspace = Depends(get_workspace),
	identity: Identity = Depends(require_identity),
) -> ProfileListRead:
	return ProfileListRead(
		uid=identity.uid,
		subscribed=workspace.store.subscribed,
		items=list(workspace.store.profiles),
	)


@router.get("/export")
async def export_all(
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> Response:
	filename = export_filename(get_settings().export_filename_prefix)
	return Response(
		content=export_profiles(workspace.store.profiles).encode("utf-8"),
		media_type="application/json; charset=utf-8",
		headers={"Content-Disposition": f'attachment; filename="{filename}"'},
	)


@router.get("/{profile_id}", response_model=RoastProfile)
async def get_profile(
	profile_id: str,
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> RoastProfile:
	return _require_profile(workspace, profile_id)


@router.patch("/{profile_id}", response_model=MutationAccepted, status_code=status.HTTP_202_ACCEPTED)
async def update_profile(
	profile_id: str,
	payload: RoastProfileUpdate,
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> MutationAccepted:
	if not await workspace.store.update(profile_id, payload):
		raise map_failure(workspace)
	return MutationAccepted(profile_id=profile_id)


@router.delete("/{profile_id}", response_model=MutationAccepted, status_code=status.HTTP_202_ACCEPTED)
async def delete_profile(
	profile_id: str,
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> MutationAccepted:
	if not await workspace.store.delete(profile_id):
		raise map_failure(workspace)
	return MutationAccepted(profile_id=profile_id)


@router.post("/{profile_id}/favorite", response_model=MutationAccepted, status_code=status.HTTP_202_ACCEPTED)
async def toggle_favorite(
	profile_id: str,
	payload: FavoriteToggle,
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> MutationAccepted:
	if not await workspace.store.toggle_favorite(profile_id, payload.current):
		raise map_failure(workspace)
	return MutationAccepted(profile_id=profile_id)


@router.get("/{profile_id}/share", response_model=ShareLinkRead)
async def get_share_link(
	profile_id: str,
	request: Request,
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> ShareLinkRead:
	profile = _require_profile(workspace, profile_id)
	origin = get_settings().public_origin or str(request.base_url)
	return ShareLinkRead(profile_id=profile.id, url=share_link(origin, profile.id))
