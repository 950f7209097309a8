"""JSON export of the roast collection and share links for single profiles."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from urllib.parse import quote

from roastlog.schemas.roast import RoastProfile


def export_profiles(profiles: Iterable[RoastProfile], exported_at: datetime | None = None) -> str:
	"""Pretty-printed JSON document holding the whole collection, in order."""
	items = [profile.model_dump(mode="json") for profile in profiles]
	document = {
		"exported_at": (exported_at or datetime.now(UTC)).isoformat(),
		"count": len(items),
		"profiles": items,
	}
	return json.dumps(document, indent=2, ensure_ascii=False)


def export_filename(prefix: str, exported_at: datetime | None = None) -> str:
	return f"{prefix}-{(exported_at or datetime.now(UTC)):%Y%m%d}.json"


def share_link(origin: str, profile_id: str) -> str:
	# Informational only: nothing resolves this URL server-side.
	return f"{origin.rstrip('/')}/profiles/{quote(profile_id, safe='')}"
