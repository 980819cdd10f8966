"""
Module: jobflow_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: working-day calendar, SLA policy and approval
    chain evaluation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import jobflow_kernel (domain types and exceptions).
    MUST NOT import jobflow_services or jobflow_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates and timestamps are passed in as explicit parameters.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from jobflow_engines.calendar import add_working_days
    from jobflow_engines.sla import compute_sla_window
    from jobflow_engines.approval_chain import advance_if_ready
"""

from jobflow_engines.approval_chain import (
    advance_if_ready,
    begin_approval_cycle,
    evaluate_level,
    is_level_satisfied,
)
from jobflow_engines.calendar import (
    add_working_days,
    count_working_days,
    is_working_day,
    normalize_holidays,
    subtract_working_days,
)
from jobflow_engines.sla import (
    DueDatePlan,
    SlaAssessment,
    SlaStatus,
    SlaWindow,
    TimelineSlot,
    assess_job_sla,
    assess_sla,
    compute_sla_window,
    compute_start_date,
    plan_sequential_timeline,
    resolve_due_dates,
)

__all__ = [
    "advance_if_ready",
    "begin_approval_cycle",
    "evaluate_level",
    "is_level_satisfied",
    "add_working_days",
    "count_working_days",
    "is_working_day",
    "normalize_holidays",
    "subtract_working_days",
    "DueDatePlan",
    "SlaAssessment",
    "SlaStatus",
    "SlaWindow",
    "TimelineSlot",
    "assess_job_sla",
    "assess_sla",
    "compute_sla_window",
    "compute_start_date",
    "plan_sequential_timeline",
    "resolve_due_dates",
]
