"""
Base utilities for database models.

Helpers shared by the analytics tables.
"""

import time
import uuid
from datetime import datetime, timezone


def generate_uuid() -> str:
    """
    Generate a UUID string.

    Returns:
        str: UUID string
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return datetime.utcnow()


def from_epoch_ms(timestamp_ms: float) -> datetime:
    """
    Convert a client epoch-milliseconds timestamp to a naive UTC datetime.

    Args:
        timestamp_ms: Milliseconds since the Unix epoch

    Returns:
        datetime: Naive UTC datetime
    """
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc).replace(tzinfo=None)


def now_ms() -> float:
    """Wall-clock epoch milliseconds, the unit of client event timestamps."""
    return time.time() * 1000
