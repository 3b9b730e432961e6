"""
Actual iCal — Calendar feed assembly.

Builds the iCalendar document served to calendar clients: one all-day event
per projected schedule occurrence, or a single placeholder event when the
budget has no schedules.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone as dt_timezone

from icalendar import Calendar, Event

from src.core.errors import ErrorCategory, FeedError, FetchFailure
from src.core.recurrence import (
    adjust_for_weekend,
    project_occurrences,
    resolve_timezone,
)
from src.core.schedule_fetcher import ScheduleFetcher
from src.data.models import AmountRange, CalendarOccurrence, FeedResult, Schedule

logger = logging.getLogger(__name__)

CALENDAR_NAME = "Actual Balance iCal"
_PRODID = "-//Actual iCal//EN"

_PLACEHOLDER_SUMMARY = "No scheduled transactions found"
_PLACEHOLDER_DESCRIPTION = (
    "You don't have any active scheduled transactions in Actual. "
    "Add some schedules in Actual to see them here."
)


def new_calendar() -> Calendar:
    """Create an empty calendar document.

    METHOD:REQUEST makes clients such as Outlook show entries as invitations.
    """
    cal = Calendar()
    cal.add("prodid", _PRODID)
    cal.add("version", "2.0")
    cal.add("method", "REQUEST")
    cal.add("x-wr-calname", CALENDAR_NAME)
    return cal


def add_occurrence(
    cal: Calendar,
    summary: str,
    start: date,
    timezone: str,
    all_day: bool = True,
    description: str | None = None,
) -> Event:
    """Append one event to the calendar and return it."""
    event = Event()
    event.add("uid", str(uuid.uuid4()))
    event.add("dtstamp", datetime.now(dt_timezone.utc))
    event.add("summary", summary)

    if all_day:
        event.add("dtstart", start)
        event.add("dtend", start + timedelta(days=1))
    else:
        start_dt = datetime.combine(start, time.min, tzinfo=resolve_timezone(timezone))
        event.add("dtstart", start_dt)
        event.add("dtend", start_dt + timedelta(hours=1))

    if description:
        event.add("description", description)

    cal.add_component(event)
    return event


def serialize(cal: Calendar) -> str:
    return cal.to_ical().decode("utf-8")


def format_currency(amount: int) -> str:
    """Format integer minor units, e.g. -123456 → "-1,234.56"."""
    return f"{amount / 100:,.2f}"


def format_amount(amount: int | AmountRange) -> str:
    if isinstance(amount, AmountRange):
        return f"{format_currency(amount.low)} ~ {format_currency(amount.high)}"
    return format_currency(amount)


def build_occurrences(
    schedule: Schedule, *, today: date, timezone: str
) -> list[CalendarOccurrence]:
    """Resolve a schedule into its calendar occurrences, in date order.

    One-shot schedules yield a single occurrence at next_date. Recurring ones
    are projected, weekend-adjusted, and never dated before next_date.
    """
    summary = f"{schedule.name} ({format_amount(schedule.amount)})"

    if not schedule.is_recurring:
        logger.debug("Generating single event for %s", schedule.name)
        return [CalendarOccurrence(start=schedule.next_date, summary=summary, timezone=timezone)]

    description = schedule.recurrence
    occurrences = []
    for day in project_occurrences(
        description, schedule.next_date, today=today, timezone=timezone
    ):
        effective = adjust_for_weekend(day, description)
        if effective < schedule.next_date:
            logger.debug(
                "Dropping %s occurrence %s: weekend adjustment moved it to %s, before next_date %s",
                schedule.name,
                day,
                effective,
                schedule.next_date,
            )
            continue
        occurrences.append(CalendarOccurrence(start=effective, summary=summary, timezone=timezone))

    logger.debug("Generating events for %s. %d events", schedule.name, len(occurrences))
    return occurrences


def assemble_calendar(
    schedules: list[Schedule], *, today: date, timezone: str
) -> Calendar:
    """Build the calendar for a list of schedules, preserving their order."""
    cal = new_calendar()

    if not schedules:
        add_occurrence(
            cal,
            _PLACEHOLDER_SUMMARY,
            today,
            timezone,
            description=_PLACEHOLDER_DESCRIPTION,
        )
        return cal

    for schedule in schedules:
        for occurrence in build_occurrences(schedule, today=today, timezone=timezone):
            add_occurrence(
                cal,
                occurrence.summary,
                occurrence.start,
                occurrence.timezone,
                all_day=occurrence.all_day,
            )
    return cal


async def generate_feed(
    fetcher: ScheduleFetcher | None = None,
    *,
    today: date | None = None,
    timezone: str | None = None,
    timeout: float | None = None,
) -> FeedResult:
    """Fetch schedules and render them as an iCalendar document.

    Raises FeedError (never a raw exception) when the feed cannot be built.
    """
    if fetcher is None or timezone is None or timeout is None:
        from src.config import settings

        if fetcher is None:
            from src.core.schedule_fetcher import create_schedule_fetcher

            fetcher = create_schedule_fetcher()
        timezone = timezone or settings.TZ
        timeout = timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS

    try:
        schedules = await asyncio.wait_for(fetcher.fetch(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Timed out after %ss waiting for the budget server", timeout)
        raise FetchFailure(
            ErrorCategory.NETWORK,
            f"Timed out after {timeout:g}s waiting for the Actual Budget server.",
        ) from exc
    except FeedError:
        raise
    except Exception as exc:
        logger.exception("Unexpected error fetching schedules")
        raise FeedError(ErrorCategory.UNKNOWN, f"Failed to fetch schedules: {exc}") from exc

    if today is None:
        today = datetime.now(resolve_timezone(timezone)).date()

    logger.debug("Found %d schedules", len(schedules))

    try:
        cal = assemble_calendar(schedules, today=today, timezone=timezone)
        document = serialize(cal)
    except FeedError:
        raise
    except Exception as exc:
        logger.exception("Failed to build calendar")
        raise FeedError(ErrorCategory.UNKNOWN, f"Failed to generate calendar: {exc}") from exc

    return FeedResult(document=document, schedule_count=len(schedules))
