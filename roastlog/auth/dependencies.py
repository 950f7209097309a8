"""Request dependencies for workspace lookup and signed-in identity checks."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer

from roastlog.auth.jwt import AuthError, decode_token
from roastlog.schemas.roast import Identity
from roastlog.services.workspace import RoastWorkspace

bearer_scheme = HTTPBearer(auto_error=False)


def _raise_auth(exc: AuthError) -> HTTPException:
	return HTTPException(
		status_code=exc.status_code,
		detail={"error": exc.code, "message": exc.detail},
	)


def get_workspace(request: Request) -> RoastWorkspace:
	workspace = getattr(request.app.state, "workspace", None)
	if workspace is None:
		raise HTTPException(
			status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
			detail={"error": "workspace_unavailable", "message": "Roast workspace is not ready"},
		)
	return workspace


def identity_for_token(workspace: RoastWorkspace, token: str) -> Identity:
	"""Accept a token only if it belongs to the identity signed in right now."""
	payload = decode_token(token)
	identity = workspace.identity
	if identity is None:
		raise AuthError(code="signed_out", detail="No one is signed in")
	if identity.uid != payload["sub"]:
		raise AuthError(code="identity_mismatch", detail="Token belongs to a different identity")
	return identity


async def require_identity(
	request: Request,
	workspace: RoastWorkspace = Depends(get_workspace),
) -> Identity:
	credentials = await bearer_scheme(request)
	if credentials is None or credentials.scheme.lower() != "bearer":
		raise _raise_auth(AuthError(code="auth_required", detail="Bearer token is required"))
	try:
		return identity_for_token(workspace, credentials.credentials)
	except AuthError as exc:
		raise _raise_auth(exc) from exc
