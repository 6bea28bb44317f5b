# File: signlink/core/timeutil.py
# DESCRIPTION: UTC timestamp helpers shared by the store, service and janitor.

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time truncated to milliseconds so it survives an ISO round-trip."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def ensure_utc(value: datetime) -> datetime:
    # SQLite hands DateTime(timezone=True) columns back naive; they are stored as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    if value is None:
        return ""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value) -> datetime:
    """Parse an ISO-8601 datetime string; returns None when it is not one."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None
