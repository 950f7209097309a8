"""PostgreSQL-backed document store with a Redis change feed.

Writes go to the ``roast_profiles`` table and then publish a small change
event on ``roasts:{uid}:changed``.  Each subscription listens on its uid's
channel and answers every event by re-reading the whole collection, so the
subscriber always receives a complete, ordered snapshot rather than a diff.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roastlog.models.enums import RoastLevelEnum
from roastlog.models.roast import RoastProfileRecord
from roastlog.schemas.roast import RoastProfile, RoastProfileDraft
from roastlog.services.document_store import (
	DocumentStoreError,
	ErrorCallback,
	Profiles,
	ProfileNotFoundError,
	SnapshotCallback,
	encode_document,
	order_profiles,
)

logger = structlog.get_logger("roastlog.sql_document_store")

_JSON_COLUMNS = frozenset({"temperature_log", "weight"})


def change_channel(uid: str) -> str:
	return f"roasts:{uid}:changed"


def record_to_profile(record: RoastProfileRecord) -> RoastProfile:
	return RoastProfile.model_validate(
		{
			"id": str(record.id),
			"name": record.name,
			"bean": record.bean,
			"roast_level": record.roast_level,
			"notes": record.notes,
			"start_time": record.start_time,
			"end_time": record.end_time,
			"duration": record.duration,
			"temperature_log": record.temperature_log,
			"flavor_notes": record.flavor_notes,
			"is_favorite": record.is_favorite,
			"weight": record.weight,
		}
	)


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
	values: dict[str, Any] = {}
	for key, value in fields.items():
		if key in _JSON_COLUMNS:
			values[key] = encode_document({key: value})[key]
		elif key == "roast_level":
			values[key] = RoastLevelEnum(value)
		else:
			values[key] = value
	return values


def _parse_id(profile_id: str) -> uuid.UUID:
	try:
		return uuid.UUID(profile_id)
	except ValueError as exc:
		raise ProfileNotFoundError(f"Roast profile {profile_id} not found") from exc


class ChangeFeedSubscription:
	def __init__(
		self,
		store: SqlDocumentStore,
		uid: str,
		on_snapshot: SnapshotCallback,
		on_error: ErrorCallback,
	):
		self.uid = uid
		self._store = store
		self._on_snapshot = on_snapshot
		self._on_error = on_error
		self._cancelled = False
		self._task = asyncio.get_running_loop().create_task(self._run(), name=f"roastlog-feed-{uid}")

	@property
	def cancelled(self) -> bool:
		return self._cancelled

	def cancel(self) -> None:
		if self._cancelled:
			return
		self._cancelled = True
		self._task.cancel()

	@property
	def closed(self) -> bool:
		return self._task.done()

	async def aclose(self) -> None:
		"""Cancel and wait until the pub/sub connection has been released."""
		self.cancel()
		with contextlib.suppress(asyncio.CancelledError):
			await self._task

	async def _run(self) -> None:
		channel = change_channel(self.uid)
		pubsub = self._store.redis.pubsub()
		try:
			await pubsub.subscribe(channel)
			await self._deliver()
			while True:
				message = await pubsub.get_message(
					ignore_subscribe_messages=True,
					timeout=self._store.poll_seconds,
				)
				if message is not None and message.get("type") == "message":
					await self._deliver()
				await asyncio.sleep(0.05)
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			logger.exception("change_feed_failed", uid=self.uid, error=str(exc))
			if not self._cancelled:
				self._on_error(exc)
		finally:
			try:
				await pubsub.unsubscribe(channel)
				await pubsub.close()
			except RedisError:
				logger.warning("change_feed_close_failed", uid=self.uid)

	async def _deliver(self) -> None:
		profiles = await self._store.load(self.uid)
		if not self._cancelled:
			self._on_snapshot(profiles)


class SqlDocumentStore:
	def __init__(
		self,
		session_factory: async_sessionmaker[AsyncSession],
		redis_client: Redis,
		poll_seconds: float = 1.0,
	):
		self.session_factory = session_factory
		self.redis = redis_client
		self.poll_seconds = poll_seconds
		self._subscriptions: list[ChangeFeedSubscription] = []

	def subscribe(self, uid: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> ChangeFeedSubscription:
		self._subscriptions = [sub for sub in self._subscriptions if not sub.closed]
		subscription = ChangeFeedSubscription(self, uid, on_snapshot, on_error)
		self._subscriptions.append(subscription)
		return subscription

	async def load(self, uid: str) -> Profiles:
		stmt = (
			select(RoastProfileRecord)
			.where(RoastProfileRecord.owner_uid == uid)
			.order_by(RoastProfileRecord.start_time.desc())
		)
		async with self.session_factory() as session:
			rows = await session.execute(stmt)
			return order_profiles(record_to_profile(record) for record in rows.scalars().all())

	async def insert(self, uid: str, draft: RoastProfileDraft) -> str:
		record = RoastProfileRecord(owner_uid=uid, **_column_values(draft.model_dump()))
		try:
			async with self.session_factory() as session:
				session.add(record)
				await session.flush()
				profile_id = str(record.id)
				await session.commit()
			await self._publish(uid, "insert", profile_id)
		except (SQLAlchemyError, RedisError) as exc:
			raise DocumentStoreError(f"insert failed: {exc}") from exc
		return profile_id

	async def patch(self, uid: str, profile_id: str, changes: dict[str, Any]) -> None:
		record_id = _parse_id(profile_id)
		try:
			async with self.session_factory() as session:
				record = await self._require_owned(session, uid, record_id)
				for key, value in _column_values(changes).items():
					setattr(record, key, value)
				record.updated_at = datetime.now(UTC)
				await session.commit()
			await self._publish(uid, "patch", profile_id)
		except (SQLAlchemyError, RedisError) as exc:
			raise DocumentStoreError(f"patch failed: {exc}") from exc

	async def remove(self, uid: str, profile_id: str) -> None:
		record_id = _parse_id(profile_id)
		try:
			async with self.session_factory() as session:
				record = await self._require_owned(session, uid, record_id)
				await session.delete(record)
				await session.commit()
			await self._publish(uid, "remove", profile_id)
		except (SQLAlchemyError, RedisError) as exc:
			raise DocumentStoreError(f"remove failed: {exc}") from exc

	async def aclose(self) -> None:
		subscriptions, self._subscriptions = self._subscriptions, []
		for subscription in subscriptions:
			subscription.cancel()
		for subscription in subscriptions:
			await subscription.aclose()

	@staticmethod
	async def _require_owned(session: AsyncSession, uid: str, record_id: uuid.UUID) -> RoastProfileRecord:
		row = await session.execute(
			select(RoastProfileRecord).where(
				RoastProfileRecord.id == record_id,
				RoastProfileRecord.owner_uid == uid,
			)
		)
		record = row.scalar_one_or_none()
		if record is None:
			raise ProfileNotFoundError(f"Roast profile {record_id} not found")
		return record

	async def _publish(self, uid: str, event_type: str, profile_id: str) -> None:
		payload = {
			"event_type": event_type,
			"profile_id": profile_id,
			"changed_at": datetime.now(UTC).isoformat(),
		}
		await self.redis.publish(change_channel(uid), json.dumps(payload))
