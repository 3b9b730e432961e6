"""Recurrence projection — pure business logic.

Turns a schedule's recurrence description into concrete calendar dates and
applies the weekend-skip policy to each of them.

Open-ended recurrences (``endMode == "never"``) are bounded by an occurrence
count heuristic. The divisors (7, 30, 365) are deliberate approximations,
not calendar-exact month or year lengths.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from itertools import islice
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule

from src.core.errors import InvalidConfigurationError
from src.data.models import RecurrenceDescription

logger = logging.getLogger(__name__)

_FREQUENCIES = {
    "yearly": YEARLY,
    "monthly": MONTHLY,
    "weekly": WEEKLY,
    "daily": DAILY,
}

_PERIODS = {
    "daily": "days",
    "weekly": "weeks",
    "monthly": "months",
    "yearly": "years",
}

# Occurrences to emit when next_date is still in the future.
_FUTURE_COUNTS = {"daily": 30, "weekly": 4, "monthly": 12, "yearly": 2}

# Approximate period length in days when next_date is today or in the past.
_PAST_DIVISORS = {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}

_SATURDAY = 5
_SUNDAY = 6


def resolve_frequency(frequency: str) -> int:
    """Map a frequency name to its dateutil.rrule constant.

    Raises InvalidConfigurationError for anything but daily/weekly/monthly/yearly.
    """
    try:
        return _FREQUENCIES[frequency]
    except (KeyError, TypeError):
        raise InvalidConfigurationError(f"Invalid frequency: {frequency}") from None


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidConfigurationError(f"Invalid timezone: {name}") from None


def start_boundary(description: RecurrenceDescription, next_date: date) -> date:
    """Open-ended rules start at next_date, bounded ones at their own start."""
    if description.end_mode == "never" or description.start is None:
        return next_date
    return description.start


def end_boundary(description: RecurrenceDescription) -> date | None:
    """Return the last date the rule may produce, or None when unbounded."""
    if description.end_mode == "never":
        return None

    if description.end_mode == "after_n_occurrences":
        resolve_frequency(description.frequency)
        period = _PERIODS[description.frequency]
        return description.start + relativedelta(**{period: description.end_occurrences})

    return description.end_date


def occurrence_count(
    description: RecurrenceDescription, next_date: date, today: date
) -> int | None:
    """Return the occurrence cap for a rule, or None when it has none.

    For open-ended rules this is the heuristic window: a fixed look-ahead when
    next_date is in the future, otherwise roughly the number of periods
    elapsed since next_date.
    """
    if description.end_mode == "after_n_occurrences":
        return description.end_occurrences

    if description.end_mode != "never":
        return None

    resolve_frequency(description.frequency)
    days_since_next = (today - next_date).days

    if days_since_next < 0:
        return _FUTURE_COUNTS[description.frequency]

    return math.ceil(days_since_next / _PAST_DIVISORS[description.frequency])


def project_occurrences(
    description: RecurrenceDescription,
    next_date: date,
    *,
    today: date,
    timezone: str = "UTC",
) -> list[date]:
    """Expand a recurrence into dates on or after next_date, in order.

    Raises InvalidConfigurationError for one-shot descriptions and unknown
    frequencies.
    """
    if not description.is_recurring:
        raise InvalidConfigurationError("Cannot project a non-recurring schedule")

    freq = resolve_frequency(description.frequency)
    tz = resolve_timezone(timezone)

    start = start_boundary(description, next_date)
    until = end_boundary(description)
    count = occurrence_count(description, next_date, today)
    if count is not None and description.end_mode == "never":
        # A rule due today would otherwise produce nothing at all.
        count = max(count, 1)

    rule = rrule(
        freq,
        interval=1,
        dtstart=datetime(start.year, start.month, start.day, tzinfo=tz),
        until=datetime(until.year, until.month, until.day, tzinfo=tz) if until else None,
    )

    if count is None and until is None:
        # on_date without an end date: fall back to the open-ended window.
        count = _FUTURE_COUNTS[description.frequency]

    dates = [occurrence.date() for occurrence in islice(rule, count)]
    kept = [d for d in dates if d >= next_date]

    logger.debug(
        "Projected %d of %d occurrence(s) from %s (until=%s, count=%s)",
        len(kept), len(dates), start, until, count,
    )
    return kept


def adjust_for_weekend(day: date, description: RecurrenceDescription) -> date:
    """Move a weekend date to the adjacent weekday per the schedule's policy.

    Saturday moves to Monday (+2) or Friday (-1); Sunday moves to Monday (+1)
    or Friday (-2). Weekdays pass through unchanged.
    """
    if not description.skip_weekend:
        return day

    weekday = day.weekday()
    if weekday not in (_SATURDAY, _SUNDAY):
        return day

    if description.weekend_solve_mode == "after":
        return day + relativedelta(days=2 if weekday == _SATURDAY else 1)

    if description.weekend_solve_mode == "before":
        return day + relativedelta(days=-1 if weekday == _SATURDAY else -2)

    raise InvalidConfigurationError(
        f"Invalid weekendSolveMode: {description.weekend_solve_mode}"
    )
