"""Utility modules."""

from services.ledger.src.ledger.utils.timestamps import (
    bucket_start,
    day_start,
    hour_start,
    to_datetime,
)

__all__ = [
    "to_datetime",
    "bucket_start",
    "hour_start",
    "day_start",
]
