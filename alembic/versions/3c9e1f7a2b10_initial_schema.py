"""initial_schema — users and roast_profiles

Revision ID: 3c9e1f7a2b10
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3c9e1f7a2b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_ROAST_LEVEL = postgresql.ENUM(
	"Light",
	"Medium-Light",
	"Medium",
	"Medium-Dark",
	"Dark",
	name="roast_level",
	create_type=False,
)


def _audit_columns() -> list[sa.Column]:
	return [
		sa.Column(
			"created_at",
			sa.DateTime(timezone=True),
			server_default=sa.text("now()"),
			nullable=False,
		),
		sa.Column(
			"updated_at",
			sa.DateTime(timezone=True),
			server_default=sa.text("now()"),
			nullable=False,
		),
	]


def upgrade() -> None:
	op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
	ENUM_ROAST_LEVEL.create(op.get_bind(), checkfirst=True)

	op.create_table(
		"users",
		sa.Column(
			"id",
			postgresql.UUID(as_uuid=True),
			server_default=sa.text("uuid_generate_v4()"),
			nullable=False,
		),
		sa.Column("email", sa.String(length=320), nullable=False),
		sa.Column("hashed_password", sa.String(length=128), nullable=False),
		sa.Column("display_name", sa.String(length=255), server_default="", nullable=False),
		sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
		*_audit_columns(),
		sa.PrimaryKeyConstraint("id"),
	)
	op.create_index("ix_users_email", "users", ["email"], unique=True)

	op.create_table(
		"roast_profiles",
		sa.Column(
			"id",
			postgresql.UUID(as_uuid=True),
			server_default=sa.text("uuid_generate_v4()"),
			nullable=False,
		),
		sa.Column("owner_uid", sa.String(length=128), nullable=False),
		sa.Column("name", sa.String(length=255), nullable=False),
		sa.Column("bean", sa.String(length=255), nullable=False),
		sa.Column("roast_level", ENUM_ROAST_LEVEL, nullable=False),
		sa.Column("notes", sa.Text(), server_default="", nullable=False),
		sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
		sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
		sa.Column("duration", sa.Integer(), nullable=False),
		sa.Column("temperature_log", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
		sa.Column("flavor_notes", sa.Text(), nullable=True),
		sa.Column("is_favorite", sa.Boolean(), server_default=sa.text("false"), nullable=False),
		sa.Column("weight", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
		*_audit_columns(),
		sa.PrimaryKeyConstraint("id"),
	)
	op.create_index("ix_roast_profiles_owner_uid", "roast_profiles", ["owner_uid"])
	op.create_index(
		"ix_roast_profiles_owner_start",
		"roast_profiles",
		["owner_uid", sa.text("start_time DESC")],
	)


def downgrade() -> None:
	op.drop_index("ix_roast_profiles_owner_start", table_name="roast_profiles")
	op.drop_index("ix_roast_profiles_owner_uid", table_name="roast_profiles")
	op.drop_table("roast_profiles")
	op.drop_index("ix_users_email", table_name="users")
	op.drop_table("users")
	ENUM_ROAST_LEVEL.drop(op.get_bind(), checkfirst=True)
