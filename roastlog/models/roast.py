"""RoastProfileRecord ORM model — one row per persisted roast.

The row is the SQL rendition of a roast document.  Nested structures
(``weight`` and ``temperature_log``) live in JSONB columns and are always
written whole, matching how the document store replaces a nested field
on patch instead of merging into it.  Timestamps inside ``temperature_log``
are ISO-8601 strings; the store converts them back to UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from roastlog.models.base import Base, OwnedMixin, TimestampMixin, UUIDPrimaryKeyMixin
from roastlog.models.enums import RoastLevelEnum


class RoastProfileRecord(Base, UUIDPrimaryKeyMixin, OwnedMixin, TimestampMixin):
    """A finished roast, created once when the session is stopped."""

    __tablename__ = "roast_profiles"
    __table_args__ = (
        Index("ix_roast_profiles_owner_start", "owner_uid", text("start_time DESC")),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    bean: Mapped[str] = mapped_column(String(255), nullable=False)
    roast_level: Mapped[RoastLevelEnum] = mapped_column(
        Enum(
            RoastLevelEnum,
            name="roast_level",
            create_constraint=False,
            native_enum=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    temperature_log: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    flavor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_favorite: Mapped[bool] = mapped_column(
        default=False,
        server_default=text("false"),
        nullable=False,
    )
    weight: Mapped[dict[str, float]] = mapped_column(JSONB, nullable=False)

    def __repr__(self) -> str:
        return f"<RoastProfileRecord id={self.id} owner={self.owner_uid!r} name={self.name!r}>"
