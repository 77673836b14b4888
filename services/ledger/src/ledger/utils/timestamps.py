"""Timestamp utilities for snapshot buckets (UTC with timezone)."""

from datetime import datetime, timezone

from services.ledger.src.ledger.domain.units import DEFAULT_UNITS


def to_datetime(ts: int) -> datetime:
    """Unix seconds to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def bucket_start(bucket_id: int, bucket_seconds: int) -> datetime:
    """Start of a bucket, where bucket_id = floor(timestamp / bucket_seconds)."""
    return to_datetime(bucket_id * bucket_seconds)


def hour_start(hour_id: int) -> datetime:
    return bucket_start(hour_id, DEFAULT_UNITS.seconds_per_hour)


def day_start(day_id: int) -> datetime:
    return bucket_start(day_id, DEFAULT_UNITS.seconds_per_day)
