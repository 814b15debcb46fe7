"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now. Patched in tests to pin delivery_time."""
    return datetime.now(timezone.utc)
