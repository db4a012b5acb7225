import math
import datetime
from typing import Iterable

import numpy as np


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def volume(sets: Iterable[tuple[float, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += (reps or 0) * (weight or 0)
        return vol

    @staticmethod
    def mean(values: Iterable[float], default: float = 0.0) -> float:
        """Arithmetic mean of ``values`` or ``default`` when empty."""
        data = list(values)
        if not data:
            return default
        return float(np.mean(np.array(data, dtype=float)))

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round halves away from zero for positive inputs (2.5 -> 3)."""
        return int(math.floor(value + 0.5))

    @staticmethod
    def relative_change(recent_avg: float, prev_avg: float) -> float:
        """Compute the relative change between recent and previous averages."""
        if prev_avg == 0:
            raise ValueError("prev_avg must not be zero")
        return (recent_avg - prev_avg) / prev_avg

    @staticmethod
    def parse_timestamp(ts: str) -> datetime.datetime:
        """Return ``ts`` as timezone-aware datetime in UTC."""
        dt = datetime.datetime.fromisoformat(ts.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt.astimezone(datetime.timezone.utc)

    @classmethod
    def to_day(cls, ts: str) -> datetime.date:
        """UTC calendar day of an ISO-8601 timestamp."""
        return cls.parse_timestamp(ts).date()

    @staticmethod
    def as_utc(now: datetime.datetime | None) -> datetime.datetime:
        """Normalize an optional reference time to an aware UTC datetime."""
        if now is None:
            return datetime.datetime.now(datetime.timezone.utc)
        if now.tzinfo is None:
            return now.replace(tzinfo=datetime.timezone.utc)
        return now.astimezone(datetime.timezone.utc)
