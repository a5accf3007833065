"""Utility functions for the intake service."""

import math
from datetime import datetime, timezone


def format_timestamp(epoch_seconds: float) -> str:
    """Render an epoch timestamp as an ISO 8601 UTC string.

    Examples:
        >>> format_timestamp(0)
        '1970-01-01T00:00:00.000Z'
    """
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def seconds_until(deadline: float, now: float) -> int:
    """Whole seconds a caller should wait until ``deadline``, never negative."""
    return max(0, math.ceil(deadline - now))
