"""
Pure domain layer.

This module contains immutable value objects for jobs, approval chains
and rejection requests with NO dependencies on:
- Storage
- Time/clock (except the injectable Clock abstraction)
- I/O

All domain objects are immutable and deterministic.
"""

from jobflow_kernel.domain.approval import (
    ApprovalActionRecord,
    ApprovalChainSnapshot,
    ApprovalDecision,
    ApprovalLevel,
    LevelEvaluation,
    SatisfactionRule,
)
from jobflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from jobflow_kernel.domain.job import (
    JOB_TRANSITIONS,
    REJECTION_REQUEST_STATUSES,
    REVISABLE_STATUSES,
    TERMINAL_JOB_STATUSES,
    Comment,
    Job,
    JobAction,
    JobStatus,
    JobType,
    NotificationEvent,
    Priority,
    TimelineEntry,
    TimelineEvent,
    allowed_targets,
)
from jobflow_kernel.domain.rejection import (
    REJECTION_TRANSITIONS,
    RejectionRequest,
    RejectionResolution,
)

__all__ = [
    "ApprovalActionRecord",
    "ApprovalChainSnapshot",
    "ApprovalDecision",
    "ApprovalLevel",
    "LevelEvaluation",
    "SatisfactionRule",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "JOB_TRANSITIONS",
    "REJECTION_REQUEST_STATUSES",
    "REVISABLE_STATUSES",
    "TERMINAL_JOB_STATUSES",
    "Comment",
    "Job",
    "JobAction",
    "JobStatus",
    "JobType",
    "NotificationEvent",
    "Priority",
    "TimelineEntry",
    "TimelineEvent",
    "allowed_targets",
    "REJECTION_TRANSITIONS",
    "RejectionRequest",
    "RejectionResolution",
]
