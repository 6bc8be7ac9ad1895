"""Watermark formatting.

Watermarks are stored as ISO-8601 UTC strings with millisecond precision and a
``Z`` suffix (``1970-01-01T00:00:00.000Z``). With a fixed width, lexical order
equals chronological order, so stored values can be compared as strings.
"""

from __future__ import annotations

from datetime import datetime, timezone

EPOCH = "1970-01-01T00:00:00.000Z"


def to_iso(value: datetime) -> str:
    """Format *value* as a watermark. Naive datetimes are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(watermark: str) -> datetime:
    """Parse a watermark into a naive UTC datetime, as MySQL DATETIME expects.

    Raises:
        ValueError: If *watermark* is not an ISO-8601 timestamp.
    """
    parsed = datetime.fromisoformat(watermark.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def latest(*watermarks: str | None) -> str:
    """Return the newest of *watermarks*, ignoring ``None``; ``EPOCH`` if none given."""
    present = [w for w in watermarks if w is not None]
    if not present:
        return EPOCH
    return max(present, key=parse_iso)
