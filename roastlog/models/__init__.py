"""ORM model registry — importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.
"""

# ── Auth models ─────────────────────────────────────────────────────────────
from roastlog.auth.models import User

# ── Base & Mixins ───────────────────────────────────────────────────────────
from roastlog.models.base import (
    Base,
    OwnedMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

# ── Enums ───────────────────────────────────────────────────────────────────
from roastlog.models.enums import RoastLevelEnum

# ── Roast documents ─────────────────────────────────────────────────────────
from roastlog.models.roast import RoastProfileRecord

__all__ = [
    "Base",
    "OwnedMixin",
    "RoastLevelEnum",
    "RoastProfileRecord",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
]
