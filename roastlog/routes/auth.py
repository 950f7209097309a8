"""Sign-in / sign-out routes for the roasting station."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from roastlog.auth.dependencies import get_workspace, require_identity
from roastlog.auth.jwt import AuthError, create_access_token
from roastlog.schemas.auth import SignInRequest, TokenResponse
from roastlog.schemas.roast import Identity
from roastlog.services.workspace import RoastWorkspace

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-in", response_model=TokenResponse)
async def sign_in(
	payload: SignInRequest,
	workspace: RoastWorkspace = Depends(get_workspace),
) -> TokenResponse:
	try:
		identity = await workspace.gate.sign_in(payload.email, payload.password)
	except AuthError as exc:
		raise HTTPException(
			status_code=exc.status_code,
			detail={"error": exc.code, "message": exc.detail},
		) from exc
	token = create_access_token(identity.uid, identity.display_name)
	return TokenResponse(access_token=token, identity=identity)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
	workspace: RoastWorkspace = Depends(get_workspace),
	_identity: Identity = Depends(require_identity),
) -> Response:
	await workspace.gate.sign_out()
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=Identity)
async def me(identity: Identity = Depends(require_identity)) -> Identity:
	return identity
