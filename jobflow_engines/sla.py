"""
jobflow_engines.sla -- SLA policy: due-date windows and assessments.

Responsibility:
    Derive the earliest and minimum selectable due date for a job from
    its priority class, its job type's SLA (working days) and a holiday
    set; compute the informational start date backward from a chosen
    due date; plan sequential child timelines; and classify finished or
    overdue work against its due date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is always an
    explicit parameter supplied by the calling service.

Invariants enforced:
    - NORMAL: ``earliest_due = add_working_days(today, sla, H)`` and the
      minimum selectable due date is ``earliest_due + 1 calendar day``.
    - URGENT: the SLA walk is bypassed; the minimum selectable due date
      is ``today + 1 calendar day`` regardless of SLA and holidays.
    - ``start_date = subtract_working_days(due_date, sla, H)`` always;
      it is never validated against ``today``.

Failure modes:
    - ConfigurationError when the job type is missing or its SLA is
      negative.  No window is ever produced with an unresolved due date.
    - ValidationError when a chosen due date precedes the minimum
      selectable due date.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from jobflow_engines.calendar import (
    add_working_days,
    as_calendar_date,
    normalize_holidays,
    subtract_working_days,
)
from jobflow_engines.tracer import traced_engine
from jobflow_kernel.domain.job import Job, JobType, Priority
from jobflow_kernel.exceptions import ConfigurationError, ValidationError

# Deviation (calendar days past due) up to which a job counts as slightly late.
SLIGHTLY_LATE_MAX_DAYS = 3


@dataclass(frozen=True)
class SlaWindow:
    """Due-date bounds for a job created on ``today``.

    ``earliest_due`` is None for URGENT jobs, which bypass the SLA walk.
    """

    today: date
    priority: Priority
    sla_working_days: int
    earliest_due: date | None
    min_selectable_due: date


@dataclass(frozen=True)
class DueDatePlan:
    window: SlaWindow
    due_date: date
    start_date: date


def require_sla_days(job_type: JobType | None) -> int:
    """Return the job type's SLA, failing loudly when it is unusable."""
    if job_type is None:
        raise ConfigurationError("Job type is required to compute a due date")
    if job_type.sla_working_days is None or job_type.sla_working_days < 0:
        raise ConfigurationError(
            f"Job type '{job_type.code}' has invalid SLA "
            f"{job_type.sla_working_days!r}; expected a non-negative integer",
            subject=job_type.code,
        )
    return job_type.sla_working_days


@traced_engine(
    "sla_window",
    "1.0",
    fingerprint_fields=("today", "job_type", "priority", "holidays"),
)
def compute_sla_window(
    *,
    today: date | datetime,
    job_type: JobType | None,
    priority: Priority,
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> SlaWindow:
    """Compute the earliest and minimum selectable due dates."""
    sla_days = require_sla_days(job_type)
    today = as_calendar_date(today)

    if priority == Priority.URGENT:
        return SlaWindow(
            today=today,
            priority=priority,
            sla_working_days=sla_days,
            earliest_due=None,
            min_selectable_due=today + timedelta(days=1),
        )

    earliest = add_working_days(today, sla_days, normalize_holidays(holidays))
    return SlaWindow(
        today=today,
        priority=priority,
        sla_working_days=sla_days,
        earliest_due=earliest,
        min_selectable_due=earliest + timedelta(days=1),
    )


def compute_start_date(
    *,
    due_date: date | datetime,
    sla_working_days: int,
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> date:
    """Backward-computed, informational start date for a chosen due date."""
    return subtract_working_days(due_date, sla_working_days, holidays)


def resolve_due_dates(
    *,
    today: date | datetime,
    job_type: JobType | None,
    priority: Priority,
    holidays: Iterable[date | datetime | str] = frozenset(),
    requested_due: date | None = None,
) -> DueDatePlan:
    """Settle the due and start dates for a job.

    The requested due date wins when it is on or after the minimum
    selectable due date; without one, the minimum is used.
    """
    holiday_set = normalize_holidays(holidays)
    window = compute_sla_window(
        today=today, job_type=job_type, priority=priority, holidays=holiday_set
    )

    if requested_due is None:
        due = window.min_selectable_due
    else:
        due = as_calendar_date(requested_due)
        if due < window.min_selectable_due:
            raise ValidationError(
                "due_date",
                f"{due.isoformat()} is earlier than the minimum selectable "
                f"due date {window.min_selectable_due.isoformat()}",
            )

    start = compute_start_date(
        due_date=due,
        sla_working_days=window.sla_working_days,
        holidays=holiday_set,
    )
    return DueDatePlan(window=window, due_date=due, start_date=start)


# =========================================================================
# Sequential child timeline
# =========================================================================


@dataclass(frozen=True)
class TimelineSlot:
    job_type_code: str
    sla_working_days: int
    start_date: date
    due_date: date


def plan_sequential_timeline(
    start: date | datetime,
    children: Sequence[JobType],
    holidays: Iterable[date | datetime | str] = frozenset(),
) -> tuple[TimelineSlot, ...]:
    """Chain child jobs back to back: each starts on the previous due date."""
    holiday_set = normalize_holidays(holidays)
    current = as_calendar_date(start)
    slots: list[TimelineSlot] = []
    for child in children:
        sla_days = require_sla_days(child)
        due = add_working_days(current, sla_days, holiday_set)
        slots.append(
            TimelineSlot(
                job_type_code=child.code,
                sla_working_days=sla_days,
                start_date=current,
                due_date=due,
            )
        )
        current = due
    return tuple(slots)


# =========================================================================
# SLA assessment
# =========================================================================


class SlaStatus(str, Enum):
    PENDING = "pending"
    ON_TIME = "on_time"
    SLIGHTLY_LATE = "slightly_late"
    SEVERELY_LATE = "severely_late"


@dataclass(frozen=True)
class SlaAssessment:
    status: SlaStatus
    deviation_days: int | None = None
    is_open: bool = False


def assess_sla(
    *,
    due_date: date,
    today: date,
    completed_on: date | datetime | None = None,
) -> SlaAssessment:
    """Classify delivery against the due date in calendar days.

    An open job is measured against ``today`` and stays PENDING until it
    is past due.
    """
    if completed_on is not None:
        deviation = (as_calendar_date(completed_on) - due_date).days
        return SlaAssessment(status=_classify(deviation), deviation_days=deviation)

    deviation = (today - due_date).days
    if deviation <= 0:
        return SlaAssessment(status=SlaStatus.PENDING, deviation_days=deviation, is_open=True)
    return SlaAssessment(status=_classify(deviation), deviation_days=deviation, is_open=True)


def assess_job_sla(job: Job, today: date) -> SlaAssessment | None:
    """Assess a job; None when it has no due date yet."""
    if job.due_date is None:
        return None
    return assess_sla(due_date=job.due_date, today=today, completed_on=job.closed_at)


def _classify(deviation: int) -> SlaStatus:
    if deviation <= 0:
        return SlaStatus.ON_TIME
    if deviation <= SLIGHTLY_LATE_MAX_DAYS:
        return SlaStatus.SLIGHTLY_LATE
    return SlaStatus.SEVERELY_LATE
