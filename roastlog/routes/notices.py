"""Recent user-facing notices (failed saves, sign-in required, feed errors)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from roastlog.auth.dependencies import get_workspace, require_identity
from roastlog.services.notifications import Notice
from roastlog.services.workspace import RoastWorkspace

router = APIRouter(prefix="/notices", tags=["notices"], dependencies=[Depends(require_identity)])


@router.get("", response_model=list[Notice])
async def list_notices(workspace: RoastWorkspace = Depends(get_workspace)) -> list[Notice]:
	return list(workspace.notifier.recent)
