"""Sign-in request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from roastlog.schemas.roast import Identity


class SignInRequest(BaseModel):
	email: str = Field(min_length=3, max_length=320)
	password: str = Field(min_length=1, max_length=256)


class TokenResponse(BaseModel):
	access_token: str
	token_type: str = "bearer"
	identity: Identity
