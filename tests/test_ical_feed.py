"""Tests for src.core.ical_feed — calendar assembly and feed generation."""

import asyncio
import logging
from datetime import date

import pytest
from icalendar import Calendar
from unittest.mock import AsyncMock, MagicMock

from src.core.errors import ErrorCategory, FeedError, FetchFailure, InvalidConfigurationError
from src.core.ical_feed import (
    add_occurrence,
    build_occurrences,
    format_amount,
    generate_feed,
    new_calendar,
    serialize,
)
from src.data.models import AmountRange, RecurrenceDescription, Schedule

TODAY = date(2026, 10, 17)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fetcher(schedules=None, side_effect=None):
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=schedules or [], side_effect=side_effect)
    return fetcher


def _events(document):
    return list(Calendar.from_ical(document).walk("VEVENT"))


def _starts(document):
    return [ev.get("dtstart").dt for ev in _events(document)]


async def _generate(schedules=None, **kwargs):
    return await generate_feed(
        _fetcher(schedules, **kwargs), today=TODAY, timezone="UTC", timeout=5
    )


def _one_shot(name="Car tax", next_date=date(2026, 12, 1), amount=-20000):
    return Schedule(
        id="s-one",
        name=name,
        next_date=next_date,
        amount=amount,
        recurrence=RecurrenceDescription(start=next_date),
    )


def _recurring(name="Rent", next_date=date(2026, 11, 1), amount=-150000, **recurrence):
    recurrence.setdefault("frequency", "monthly")
    recurrence.setdefault("start", date(2026, 1, 1))
    return Schedule(
        id="s-rec",
        name=name,
        next_date=next_date,
        amount=amount,
        recurrence=RecurrenceDescription(**recurrence),
    )


# ---------------------------------------------------------------------------
# Formatting and document primitives
# ---------------------------------------------------------------------------


class TestFormatAmount:
    def test_single_amount(self):
        assert format_amount(-150000) == "-1,500.00"

    def test_positive_amount(self):
        assert format_amount(1234) == "12.34"

    def test_range(self):
        assert format_amount(AmountRange(low=-5000, high=-7000)) == "-50.00 ~ -70.00"


class TestDocument:
    def test_new_calendar_is_a_request(self):
        text = serialize(new_calendar())
        assert "METHOD:REQUEST" in text
        assert "VERSION:2.0" in text

    def test_all_day_event(self):
        cal = new_calendar()
        add_occurrence(cal, "Rent (-1,500.00)", date(2026, 11, 2), "UTC")
        text = serialize(cal)
        assert "DTSTART;VALUE=DATE:20261102" in text
        assert "DTEND;VALUE=DATE:20261103" in text
        assert "SUMMARY:Rent (-1\\,500.00)" in text

    def test_timed_event_carries_timezone(self):
        cal = new_calendar()
        add_occurrence(cal, "Call", date(2026, 11, 2), "Europe/Berlin", all_day=False)
        assert "TZID=Europe/Berlin" in serialize(cal)


# ---------------------------------------------------------------------------
# build_occurrences
# ---------------------------------------------------------------------------


class TestBuildOccurrences:
    def test_one_shot_yields_single_occurrence(self):
        occurrences = build_occurrences(_one_shot(), today=TODAY, timezone="UTC")
        assert len(occurrences) == 1
        assert occurrences[0].start == date(2026, 12, 1)
        assert occurrences[0].summary == "Car tax (-200.00)"
        assert occurrences[0].all_day is True

    def test_schedule_without_recurrence_is_one_shot(self):
        schedule = Schedule(id="x", name="Gift", next_date=date(2026, 12, 24), amount=-3000)
        occurrences = build_occurrences(schedule, today=TODAY, timezone="UTC")
        assert [o.start for o in occurrences] == [date(2026, 12, 24)]

    def test_weekend_after_moves_to_monday(self):
        schedule = _recurring(
            next_date=date(2026, 10, 17),
            start=date(2026, 10, 17),
            end_mode="on_date",
            end_date=date(2026, 12, 31),
            skip_weekend=True,
            weekend_solve_mode="after",
        )
        occurrences = build_occurrences(schedule, today=TODAY, timezone="UTC")
        assert [o.start for o in occurrences] == [
            date(2026, 10, 19),
            date(2026, 11, 17),
            date(2026, 12, 17),
        ]

    def test_adjusted_dates_never_precede_next_date(self):
        schedule = _recurring(
            next_date=date(2026, 10, 17),
            start=date(2026, 10, 17),
            end_mode="on_date",
            end_date=date(2026, 12, 31),
            skip_weekend=True,
            weekend_solve_mode="before",
        )
        occurrences = build_occurrences(schedule, today=TODAY, timezone="UTC")
        assert [o.start for o in occurrences] == [date(2026, 11, 17), date(2026, 12, 17)]

    def test_dropped_adjusted_occurrence_is_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="src.core.ical_feed")
        schedule = _recurring(
            name="Allowance",
            next_date=TODAY,
            start=TODAY,
            frequency="weekly",
            end_mode="never",
            skip_weekend=True,
            weekend_solve_mode="before",
        )
        assert build_occurrences(schedule, today=TODAY, timezone="UTC") == []
        assert "Dropping Allowance occurrence 2026-10-17" in caplog.text
        assert "moved it to 2026-10-16" in caplog.text

    def test_invalid_weekend_mode_propagates(self):
        schedule = _recurring(
            next_date=date(2026, 10, 17),
            start=date(2026, 10, 17),
            end_mode="never",
            skip_weekend=True,
            weekend_solve_mode="nearest",
        )
        with pytest.raises(InvalidConfigurationError):
            build_occurrences(schedule, today=TODAY, timezone="UTC")


# ---------------------------------------------------------------------------
# generate_feed
# ---------------------------------------------------------------------------


class TestGenerateFeed:
    @pytest.mark.asyncio
    async def test_no_schedules_adds_placeholder(self):
        result = await _generate([])
        events = _events(result.document)
        assert result.schedule_count == 0
        assert len(events) == 1
        assert str(events[0].get("summary")) == "No scheduled transactions found"
        assert events[0].get("dtstart").dt == TODAY

    @pytest.mark.asyncio
    async def test_one_shot_schedule(self):
        result = await _generate([_one_shot()])
        assert result.schedule_count == 1
        assert _starts(result.document) == [date(2026, 12, 1)]

    @pytest.mark.asyncio
    async def test_open_ended_weekly_future_gets_four_events(self):
        schedule = _recurring(
            name="Groceries",
            next_date=date(2026, 10, 20),
            frequency="weekly",
            end_mode="never",
        )
        result = await _generate([schedule])
        assert _starts(result.document) == [
            date(2026, 10, 20),
            date(2026, 10, 27),
            date(2026, 11, 3),
            date(2026, 11, 10),
        ]

    @pytest.mark.asyncio
    async def test_schedules_keep_query_order(self):
        first = _one_shot(name="Later", next_date=date(2027, 1, 1))
        second = _one_shot(name="Sooner", next_date=date(2026, 11, 1))
        result = await _generate([first, second])
        summaries = [str(ev.get("summary")) for ev in _events(result.document)]
        assert summaries == ["Later (-200.00)", "Sooner (-200.00)"]

    @pytest.mark.asyncio
    async def test_round_trip_event_count(self):
        schedules = [
            _one_shot(),
            _recurring(
                name="Gym",
                next_date=date(2026, 11, 5),
                amount=AmountRange(low=-2000, high=-2500),
                start=date(2026, 1, 5),
                end_mode="after_n_occurrences",
                end_occurrences=12,
            ),
        ]
        result = await _generate(schedules)
        starts = _starts(result.document)
        assert starts == [date(2026, 12, 1), date(2026, 11, 5), date(2026, 12, 5)]
        assert "Gym (-20.00 ~ -25.00)" in [str(ev.get("summary")) for ev in _events(result.document)]

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self):
        failure = FetchFailure(ErrorCategory.NETWORK, "Network connection failed.")
        with pytest.raises(FetchFailure) as exc_info:
            await _generate(side_effect=failure)
        assert exc_info.value is failure

    @pytest.mark.asyncio
    async def test_timeout_is_a_network_failure(self):
        async def _hang():
            await asyncio.sleep(10)

        fetcher = MagicMock()
        fetcher.fetch = _hang
        with pytest.raises(FetchFailure) as exc_info:
            await generate_feed(fetcher, today=TODAY, timezone="UTC", timeout=0.01)
        assert exc_info.value.category is ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self):
        with pytest.raises(FeedError) as exc_info:
            await _generate(side_effect=KeyError("next_date"))
        assert exc_info.value.category is ErrorCategory.UNKNOWN
        assert "next_date" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_configuration_is_not_wrapped(self):
        schedule = _recurring(frequency="fortnightly", end_mode="never")
        with pytest.raises(InvalidConfigurationError, match="Invalid frequency: fortnightly"):
            await _generate([schedule])
