"""ORM base class and mixins shared by the roastlog tables."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base — shared MetaData registry for all models."""

    pass


class TimestampMixin:
    """Adds created_at / updated_at audit columns.

    ``updated_at`` is refreshed by the database on every UPDATE, which is
    how a patched roast document records its last write.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDPrimaryKeyMixin:
    """Adds a UUID primary key with both Python and server-side defaults."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.uuid_generate_v4(),
    )


class OwnedMixin:
    """Scopes a row to the identity-provider uid that created it.

    Every read and write against an owned table filters on ``owner_uid``;
    rows belonging to another identity behave as if they did not exist.
    """

    owner_uid: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
    )
