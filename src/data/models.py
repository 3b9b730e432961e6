"""
Actual iCal — Data Models.

Schedules are read fresh from the budget on every feed request and never
cached in-process. Amounts are integer minor units (cents), exactly as the
budget stores them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from src.core.errors import InvalidConfigurationError

END_MODES = ("never", "after_n_occurrences", "on_date")


@dataclass
class AmountRange:
    """An approximate amount, stored by the budget as ``{num1, num2}``."""

    low: int
    high: int


@dataclass
class RecurrenceDescription:
    """The rule set governing how a schedule repeats.

    A description without ``frequency`` describes a one-shot schedule.
    """

    frequency: str | None = None           # daily | weekly | monthly | yearly
    start: date | None = None
    end_mode: str = "never"                # never | after_n_occurrences | on_date
    end_occurrences: int | None = None     # only for after_n_occurrences
    end_date: date | None = None           # only for on_date
    skip_weekend: bool = False
    weekend_solve_mode: str | None = None  # before | after

    @property
    def is_recurring(self) -> bool:
        return bool(self.frequency)

    @classmethod
    def from_record(cls, raw: dict | str | None) -> RecurrenceDescription | None:
        """Parse the ``_date`` field of a schedule record.

        The budget stores a plain ISO date for one-shot schedules and a
        recurrence config object for repeating ones.
        """
        if raw is None:
            return None
        if isinstance(raw, str):
            return cls(start=_parse_date(raw, "start"))
        if not isinstance(raw, dict):
            raise InvalidConfigurationError(f"Invalid recurrence config: {raw!r}")

        end_mode = raw.get("endMode") or "never"
        if end_mode not in END_MODES:
            raise InvalidConfigurationError(f"Invalid endMode: {end_mode}")

        end_occurrences = None
        if end_mode == "after_n_occurrences":
            try:
                end_occurrences = int(raw.get("endOccurrences"))
            except (TypeError, ValueError) as exc:
                raise InvalidConfigurationError(
                    f"Invalid endOccurrences: {raw.get('endOccurrences')!r}"
                ) from exc
            if end_occurrences <= 0:
                raise InvalidConfigurationError(
                    f"endOccurrences must be positive, got {end_occurrences}"
                )

        end_date = None
        if end_mode == "on_date" and raw.get("endDate"):
            end_date = _parse_date(raw["endDate"], "endDate")

        start = _parse_date(raw["start"], "start") if raw.get("start") else None
        frequency = raw.get("frequency") or None
        if frequency and start is None:
            raise InvalidConfigurationError("Recurring schedule has no start date")

        return cls(
            frequency=frequency,
            start=start,
            end_mode=end_mode,
            end_occurrences=end_occurrences,
            end_date=end_date,
            skip_weekend=bool(raw.get("skipWeekend", False)),
            weekend_solve_mode=raw.get("weekendSolveMode"),
        )


@dataclass
class Schedule:
    """A recurring or one-shot planned transaction tracked by the budget."""

    id: str
    name: str
    next_date: date
    amount: int | AmountRange
    recurrence: RecurrenceDescription | None = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None and self.recurrence.is_recurring

    @classmethod
    def from_record(cls, record: dict) -> Schedule:
        """Build a Schedule from a backend query row."""
        if not record.get("next_date"):
            raise InvalidConfigurationError(
                f"Schedule {record.get('name') or record.get('id')!r} has no next_date"
            )
        return cls(
            id=str(record.get("id", "")),
            name=record.get("name") or "(unnamed schedule)",
            next_date=_parse_date(record["next_date"], "next_date"),
            amount=_parse_amount(record.get("_amount", 0)),
            recurrence=RecurrenceDescription.from_record(record.get("_date")),
        )


@dataclass
class CalendarOccurrence:
    """One resolved, all-day calendar entry."""

    start: date
    summary: str
    timezone: str
    all_day: bool = True


@dataclass
class FeedResult:
    """Serialized calendar plus the number of schedules it was built from."""

    document: str
    schedule_count: int


def _parse_date(value: str | date, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise InvalidConfigurationError(f"Invalid {field_name}: {value!r}") from exc


def _parse_amount(value) -> int | AmountRange:
    try:
        if isinstance(value, dict):
            return AmountRange(low=int(value.get("num1", 0)), high=int(value.get("num2", 0)))
        return int(value or 0)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"Invalid amount: {value!r}") from exc
