"""Conversions between aware datetimes, epoch seconds and GitHub's ISO-8601 strings"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_timestamp(dt: datetime | None) -> int | None:
    if dt is None:
        return None
    return int(dt.timestamp())


def from_timestamp(ts: int | None) -> datetime | None:
    """Non-positive values are the 'never' sentinel"""
    if ts is None or ts <= 0:
        return None
    return datetime.fromtimestamp(ts, UTC)


def parse_github_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_github_datetime(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
