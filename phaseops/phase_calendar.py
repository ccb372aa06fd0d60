"""Phase calendar: maps wall-clock time onto the 18-day phase horizon."""

import math
from datetime import date, datetime

from phaseops.config import HORIZON_DAYS

# Last day of each week; days after the final boundary belong to week 3
WEEK_BOUNDARIES = (7, 12)


def round_half_up(value: float) -> int:
    """Round halves away from zero for positive values (2.5 -> 3).

    Python's round() uses banker's rounding, which would make report values
    drift from the dashboard's arithmetic.
    """
    return math.floor(value + 0.5)


def clamp_day(day: int, horizon: int = HORIZON_DAYS) -> int:
    return min(max(day, 1), horizon)


def phase_day(
    now: datetime | date, phase_start: date, horizon: int = HORIZON_DAYS
) -> int:
    """Return the 1-based phase day for ``now``.

    Dates before the phase start map to day 1 and dates past the horizon map
    to the last day; this never raises.

    Args:
        now: Current time (or date)
        phase_start: First calendar day of the phase
        horizon: Number of days in the phase

    Returns:
        Day index in [1, horizon]
    """
    today = now.date() if isinstance(now, datetime) else now
    days_since_start = (today - phase_start).days
    return clamp_day(days_since_start + 1, horizon)


def week_for_day(day: int) -> int:
    """Week number for a phase day: 1-7 -> 1, 8-12 -> 2, 13-18 -> 3."""
    for week, last_day in enumerate(WEEK_BOUNDARIES, start=1):
        if day <= last_day:
            return week
    return len(WEEK_BOUNDARIES) + 1


def next_day(day: int, horizon: int = HORIZON_DAYS) -> int:
    return clamp_day(day + 1, horizon)


def phase_progress(day: int, horizon: int = HORIZON_DAYS) -> tuple[int, int]:
    """Return (days_remaining, percent_complete) for a phase day."""
    return horizon - day, round_half_up(day / horizon * 100)
