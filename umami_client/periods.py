"""Conversion of symbolic time periods into absolute millisecond ranges.

Every analytics query sends a ``[startAt, endAt]`` pair. Callers name the
window with a short token such as ``"24h"`` or ``"1week"`` and this module
anchors it at the current instant.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Literal, NamedTuple

from umami_client.errors import ValidationError

TimePeriod = Literal[
    "1h",
    "1hour",
    "60min",
    "60minutes",
    "1d",
    "1day",
    "24h",
    "24hours",
    "7d",
    "7days",
    "1w",
    "1week",
    "31d",
    "31days",
    "1m",
    "1month",
]

HOUR_PERIODS: tuple[str, ...] = ("1h", "1hour", "60min", "60minutes")
DAY_PERIODS: tuple[str, ...] = ("1d", "1day", "24h", "24hours")
WEEK_PERIODS: tuple[str, ...] = ("7d", "7days", "1w", "1week")
MONTH_PERIODS: tuple[str, ...] = ("31d", "31days", "1m", "1month")

ACCEPTED_PERIODS: tuple[str, ...] = HOUR_PERIODS + DAY_PERIODS + WEEK_PERIODS + MONTH_PERIODS

DEFAULT_PERIOD: TimePeriod = "24h"

_HOUR_MS = 60 * 60 * 1000


class PeriodClass(Enum):
    """Duration class of a period token, valued in milliseconds."""

    HOUR = _HOUR_MS
    DAY = 24 * _HOUR_MS
    WEEK = 7 * 24 * _HOUR_MS
    MONTH = 31 * 24 * _HOUR_MS

    @property
    def duration_ms(self) -> int:
        return self.value


_CLASSES: tuple[tuple[tuple[str, ...], PeriodClass], ...] = (
    (HOUR_PERIODS, PeriodClass.HOUR),
    (DAY_PERIODS, PeriodClass.DAY),
    (WEEK_PERIODS, PeriodClass.WEEK),
    (MONTH_PERIODS, PeriodClass.MONTH),
)


class TimeRange(NamedTuple):
    """Absolute window in milliseconds since the epoch."""

    start_at: int
    end_at: int

    def as_params(self, legacy: bool = False) -> dict[str, int]:
        """Query parameters for an analytics endpoint.

        Older Umami servers expect snake_case ``start_at``/``end_at``.
        """
        if legacy:
            return {"start_at": self.start_at, "end_at": self.end_at}
        return {"startAt": self.start_at, "endAt": self.end_at}


def classify_period(period: str) -> PeriodClass:
    """Return the duration class of *period*.

    Raises:
        ValidationError: If *period* is not one of the accepted tokens.
    """
    for spellings, period_class in _CLASSES:
        if period in spellings:
            return period_class
    raise ValidationError(
        f"Unexpected period {period!r}. Accepted values are: {', '.join(ACCEPTED_PERIODS)}"
    )


def convert_period_to_time(
    period: str = DEFAULT_PERIOD,
    *,
    now_ms: int | None = None,
) -> TimeRange:
    """Convert a period token into a range ending now.

    Args:
        period: One of :data:`ACCEPTED_PERIODS`. Defaults to ``"24h"``.
        now_ms: Pin the end of the range instead of reading the clock.

    Returns:
        A TimeRange whose width is exactly the class duration.
    """
    duration = classify_period(period).duration_ms
    end_at = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    return TimeRange(start_at=end_at - duration, end_at=end_at)
