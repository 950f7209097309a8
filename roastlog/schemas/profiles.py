"""Response schemas for the roast profile routes."""

from __future__ import annotations

from pydantic import BaseModel, Field

from roastlog.schemas.roast import RoastProfile


class ProfileListRead(BaseModel):
	uid: str | None
	subscribed: bool
	items: list[RoastProfile] = Field(default_factory=list)


class FavoriteToggle(BaseModel):
	current: bool


class MutationAccepted(BaseModel):
	profile_id: str
	accepted: bool = True


class ShareLinkRead(BaseModel):
	profile_id: str
	url: str
