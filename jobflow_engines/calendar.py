"""
jobflow_engines.calendar -- Working-day arithmetic.

Responsibility:
    Answer "add/subtract N working days from date D", skipping weekends
    and a caller-supplied holiday set, plus the small helpers built on
    the same definition of a working day.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.

Invariants enforced:
    - A working day is any calendar day that is not Saturday, Sunday,
      or a member of the holiday set.
    - Holiday membership is by calendar date only: datetimes are reduced
      to their date before lookup.
    - ``subtract_working_days(add_working_days(d, n, H), n, H) == d`` for
      every working day ``d`` and ``n >= 0``.
    - ``add_working_days`` counts only days strictly after ``start``; it
      never validates that ``start`` itself is a working day, so ``n == 0``
      returns ``start`` unchanged.

Failure modes:
    - ValueError for negative ``n`` or an unparseable holiday string.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

_ONE_DAY = timedelta(days=1)
_SATURDAY = 5


def as_calendar_date(value: date | datetime) -> date:
    """Drop time-of-day and zone, keeping the calendar date as given."""
    if isinstance(value, datetime):
        return value.date()
    return value


def normalize_holidays(
    holidays: Iterable[date | datetime | str] | None,
) -> frozenset[date]:
    """Normalize a holiday collection to a frozenset of plain dates.

    Accepts ``date``, ``datetime`` and ISO ``YYYY-MM-DD`` strings.
    """
    if not holidays:
        return frozenset()
    normalized: set[date] = set()
    for value in holidays:
        if isinstance(value, str):
            normalized.add(date.fromisoformat(value.strip()[:10]))
        else:
            normalized.add(as_calendar_date(value))
    return frozenset(normalized)


def is_working_day(
    day: date | datetime,
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> bool:
    day = as_calendar_date(day)
    if day.weekday() >= _SATURDAY:
        return False
    return day not in _as_set(holidays)


def add_working_days(
    start: date | datetime,
    n: int,
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> date:
    """Walk forward from ``start`` until ``n`` working days have been counted.

    Returns the date on which the count reached ``n``.
    """
    return _walk(start, n, holidays, _ONE_DAY)


def subtract_working_days(
    end: date | datetime,
    n: int,
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> date:
    """Exact mirror of ``add_working_days`` walking backward from ``end``."""
    return _walk(end, n, holidays, -_ONE_DAY)


def count_working_days(
    start: date | datetime,
    end: date | datetime,
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> int:
    """Working days in the inclusive range ``[start, end]`` (0 if end < start)."""
    holiday_set = _as_set(holidays)
    current = as_calendar_date(start)
    last = as_calendar_date(end)
    count = 0
    while current <= last:
        if current.weekday() < _SATURDAY and current not in holiday_set:
            count += 1
        current += _ONE_DAY
    return count


def _walk(
    origin: date | datetime,
    n: int,
    holidays: Iterable[date | datetime | str],
    step: timedelta,
) -> date:
    if n < 0:
        raise ValueError(f"Working-day count must be non-negative, got {n}")
    holiday_set = _as_set(holidays)
    current = as_calendar_date(origin)
    remaining = n
    while remaining > 0:
        current += step
        if current.weekday() < _SATURDAY and current not in holiday_set:
            remaining -= 1
    return current


def _as_set(holidays: Iterable[date | datetime | str] | None) -> frozenset[date]:
    return normalize_holidays(holidays)
