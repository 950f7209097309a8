"""Identity provider and the identity gate that drives the profile feed."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import structlog
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roastlog.auth.jwt import AuthError
from roastlog.models import User
from roastlog.schemas.roast import Identity
from roastlog.services.profile_store import RoastProfileStore

logger = structlog.get_logger("roastlog.identity")
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

IdentityCallback = Callable[[Identity | None], None]


@dataclass(slots=True)
class UserCredentials:
	uid: str
	email: str
	hashed_password: str
	display_name: str = ""
	is_active: bool = True


class UserDirectory(Protocol):
	async def find_by_email(self, email: str) -> UserCredentials | None: ...

	async def register(self, email: str, password: str, display_name: str = "") -> UserCredentials: ...


def _normalize_email(email: str) -> str:
	return email.strip().lower()


class InMemoryUserDirectory:
	def __init__(self) -> None:
		self._users: dict[str, UserCredentials] = {}

	async def find_by_email(self, email: str) -> UserCredentials | None:
		return self._users.get(_normalize_email(email))

	async def register(self, email: str, password: str, display_name: str = "") -> UserCredentials:
		key = _normalize_email(email)
		if key in self._users:
			raise ValueError(f"user {key} already exists")
		user = UserCredentials(
			uid=uuid.uuid4().hex,
			email=key,
			hashed_password=pwd_context.hash(password),
			display_name=display_name,
		)
		self._users[key] = user
		return user


class SqlUserDirectory:
	def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
		self.session_factory = session_factory

	async def find_by_email(self, email: str) -> UserCredentials | None:
		async with self.session_factory() as session:
			row = await session.execute(select(User).where(User.email == _normalize_email(email)))
			user = row.scalar_one_or_none()
		if user is None:
			return None
		return self._to_credentials(user)

	async def register(self, email: str, password: str, display_name: str = "") -> UserCredentials:
		user = User(
			email=_normalize_email(email),
			hashed_password=pwd_context.hash(password),
			display_name=display_name,
		)
		async with self.session_factory() as session:
			session.add(user)
			await session.flush()
			await session.refresh(user)
			await session.commit()
		return self._to_credentials(user)

	@staticmethod
	def _to_credentials(user: User) -> UserCredentials:
		return UserCredentials(
			uid=str(user.id),
			email=user.email,
			hashed_password=user.hashed_password,
			display_name=user.display_name,
			is_active=user.is_active,
		)


class PasswordIdentityProvider:
	"""Email/password sign-in with change notifications.

	``on_identity_change`` calls the new listener right away with the current
	identity, then again on every sign-in or sign-out that changes it.
	"""

	def __init__(self, directory: UserDirectory):
		self.directory = directory
		self._current: Identity | None = None
		self._listeners: list[IdentityCallback] = []

	@property
	def current(self) -> Identity | None:
		return self._current

	async def sign_in(self, email: str, password: str) -> Identity:
		user = await self.directory.find_by_email(email)
		if user is None or not user.is_active or not self._verify(password, user.hashed_password):
			logger.warning("sign_in_rejected", email=_normalize_email(email))
			raise AuthError(code="invalid_credentials", detail="Email or password is incorrect")
		identity = Identity(uid=user.uid, display_name=user.display_name or user.email)
		self._set(identity)
		return identity

	async def sign_out(self) -> None:
		self._set(None)

	def on_identity_change(self, callback: IdentityCallback) -> Callable[[], None]:
		self._listeners.append(callback)
		callback(self._current)

		def _remove() -> None:
			if callback in self._listeners:
				self._listeners.remove(callback)

		return _remove

	@staticmethod
	def _verify(password: str, hashed: str) -> bool:
		try:
			return pwd_context.verify(password, hashed)
		except ValueError:
			return False

	def _set(self, identity: Identity | None) -> None:
		if identity == self._current:
			return
		self._current = identity
		for listener in list(self._listeners):
			listener(identity)


class IdentityProvider(Protocol):
	async def sign_in(self, email: str, password: str) -> Identity: ...

	async def sign_out(self) -> None: ...

	def on_identity_change(self, callback: IdentityCallback) -> Callable[[], None]: ...


class IdentityGate:
	"""Re-points the profile store whenever the signed-in identity changes.

	A transition is a change of ``uid`` (none → A, A → none, A → B).  Each
	transition calls :meth:`RoastProfileStore.subscribe` exactly once, which
	cancels the old feed before opening the new one.  Repeated notifications
	for the same uid only refresh the display label.
	"""

	def __init__(self, provider: IdentityProvider, store: RoastProfileStore):
		self._provider = provider
		self._store = store
		self._identity: Identity | None = None
		self._detach: Callable[[], None] | None = None

	@property
	def identity(self) -> Identity | None:
		return self._identity

	def attach(self) -> None:
		if self._detach is None:
			self._detach = self._provider.on_identity_change(self._on_identity)

	def detach(self) -> None:
		if self._detach is not None:
			self._detach()
			self._detach = None

	async def sign_in(self, email: str, password: str) -> Identity:
		return await self._provider.sign_in(email, password)

	async def sign_out(self) -> None:
		await self._provider.sign_out()

	def _on_identity(self, identity: Identity | None) -> None:
		previous_uid = self._identity.uid if self._identity is not None else None
		next_uid = identity.uid if identity is not None else None
		self._identity = identity
		if previous_uid == next_uid:
			return
		logger.info("identity_changed", previous_uid=previous_uid, uid=next_uid)
		self._store.subscribe(identity)
