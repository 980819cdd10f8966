"""
Job domain types (``jobflow_kernel.domain.job``).

Responsibility
--------------
Pure value objects for the unit of requested design work: status and
action enumerations, the explicit transition table, timeline and
comment records, and the ``Job`` record itself.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only ``domain/approval`` and ``domain/rejection``.

Invariants enforced
-------------------
* ``JOB_TRANSITIONS`` is the single point that decides whether an
  action is legal from a status, and which statuses it may lead to.
  Terminal statuses have no entries.
* ``current_level`` lies in ``[0, len(levels) + 1]``; 0 means not
  submitted (or returned), ``len(levels) + 1`` means fully approved.
* ``timeline``, ``comments`` and ``rejection_requests`` are append-only;
  at most one rejection request is pending at a time.
* ``version`` increases by exactly one on every committed change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from jobflow_kernel.domain.approval import ApprovalActionRecord, ApprovalChainSnapshot
from jobflow_kernel.domain.rejection import RejectionRequest


# =========================================================================
# Enumerations
# =========================================================================


class Priority(str, Enum):
    """Priority class of a job."""

    NORMAL = "normal"
    URGENT = "urgent"


class JobStatus(str, Enum):
    """Job lifecycle states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    RETURNED = "returned"
    REJECTED = "rejected"
    APPROVED = "approved"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING_CLOSE = "pending_close"
    CLOSED = "closed"


class JobAction(str, Enum):
    """Actions accepted by the job state machine."""

    SUBMIT = "submit"
    APPROVE = "approve"
    RETURN = "return"
    REJECT = "reject"
    ASSIGN = "assign"
    START = "start"
    REQUEST_CLOSE = "request_close"
    CONFIRM_CLOSE = "confirm_close"
    REQUEST_REVISION = "request_revision"
    # Driven by the rejection-request sub-workflow, never by a caller.
    ACCEPT_REJECTION_REQUEST = "accept_rejection_request"


_SUBMIT_TARGETS = frozenset({
    JobStatus.PENDING_APPROVAL,
    JobStatus.APPROVED,
    JobStatus.ASSIGNED,
})

JOB_TRANSITIONS: dict[tuple[JobStatus, JobAction], frozenset[JobStatus]] = {
    (JobStatus.DRAFT, JobAction.SUBMIT): _SUBMIT_TARGETS,
    (JobStatus.RETURNED, JobAction.SUBMIT): _SUBMIT_TARGETS,
    (JobStatus.PENDING_APPROVAL, JobAction.APPROVE): _SUBMIT_TARGETS,
    (JobStatus.PENDING_APPROVAL, JobAction.RETURN): frozenset({JobStatus.RETURNED}),
    (JobStatus.PENDING_APPROVAL, JobAction.REJECT): frozenset({JobStatus.REJECTED}),
    (JobStatus.APPROVED, JobAction.ASSIGN): frozenset({JobStatus.ASSIGNED}),
    (JobStatus.ASSIGNED, JobAction.ASSIGN): frozenset({JobStatus.ASSIGNED}),
    (JobStatus.APPROVED, JobAction.START): frozenset({JobStatus.IN_PROGRESS}),
    (JobStatus.ASSIGNED, JobAction.START): frozenset({JobStatus.IN_PROGRESS}),
    (JobStatus.IN_PROGRESS, JobAction.REQUEST_CLOSE): frozenset({JobStatus.PENDING_CLOSE}),
    (JobStatus.PENDING_CLOSE, JobAction.CONFIRM_CLOSE): frozenset({JobStatus.CLOSED}),
    (JobStatus.PENDING_CLOSE, JobAction.REQUEST_REVISION): frozenset({JobStatus.IN_PROGRESS}),
    (JobStatus.IN_PROGRESS, JobAction.ACCEPT_REJECTION_REQUEST): frozenset({JobStatus.REJECTED}),
    (JobStatus.APPROVED, JobAction.ACCEPT_REJECTION_REQUEST): frozenset({JobStatus.REJECTED}),
    (JobStatus.ASSIGNED, JobAction.ACCEPT_REJECTION_REQUEST): frozenset({JobStatus.REJECTED}),
}

TERMINAL_JOB_STATUSES: frozenset[JobStatus] = frozenset({
    JobStatus.REJECTED,
    JobStatus.CLOSED,
})

# Statuses in which the assignee may ask to abandon the job.  ASSIGNED is
# the approved state once an assignee exists.
REJECTION_REQUEST_STATUSES: frozenset[JobStatus] = frozenset({
    JobStatus.IN_PROGRESS,
    JobStatus.APPROVED,
    JobStatus.ASSIGNED,
})

# Statuses in which priority, job type and due date may still change.
REVISABLE_STATUSES: frozenset[JobStatus] = frozenset({
    JobStatus.DRAFT,
    JobStatus.RETURNED,
})


def allowed_targets(status: JobStatus, action: JobAction) -> frozenset[JobStatus]:
    """Statuses ``action`` may lead to from ``status`` (empty if illegal)."""
    return JOB_TRANSITIONS.get((status, action), frozenset())


class TimelineEvent(str, Enum):
    """Audit event types appended to a job's timeline."""

    JOB_CREATED = "job_created"
    DRAFT_REVISED = "draft_revised"
    JOB_SUBMITTED = "job_submitted"
    LEVEL_APPROVAL_RECORDED = "level_approval_recorded"
    LEVEL_COMPLETED = "level_completed"
    JOB_APPROVED = "job_approved"
    JOB_RETURNED = "job_returned"
    JOB_REJECTED = "job_rejected"
    JOB_ASSIGNED = "job_assigned"
    WORK_STARTED = "work_started"
    CLOSE_REQUESTED = "close_requested"
    JOB_CLOSED = "job_closed"
    REVISION_REQUESTED = "revision_requested"
    REJECTION_REQUESTED = "rejection_requested"
    REJECTION_APPROVED = "rejection_approved"
    REJECTION_DENIED = "rejection_denied"
    REJECTION_AUTO_APPROVED = "rejection_auto_approved"


class NotificationEvent(str, Enum):
    """Notification template keys consumed by the delivery layer."""

    JOB_APPROVAL_REQUEST = "job_approval_request"
    JOB_APPROVED = "job_approved"
    JOB_REJECTED = "job_rejected"
    JOB_ASSIGNED = "job_assigned"


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class JobType:
    """Classification of a job; carries its SLA in working days."""

    code: str
    name: str
    sla_working_days: int


@dataclass(frozen=True)
class TimelineEntry:
    """One append-only audit entry.

    ``recipients`` lists who the delivery layer should notify when
    ``notification_event`` is set.
    """

    entry_id: UUID
    event: TimelineEvent
    actor_id: str
    occurred_at: datetime
    from_status: JobStatus | None = None
    to_status: JobStatus | None = None
    level: int | None = None
    note: str = ""
    notification_event: NotificationEvent | None = None
    recipients: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Comment:
    comment_id: UUID
    author_id: str
    body: str
    created_at: datetime


@dataclass(frozen=True)
class Job:
    """The unit of work tracked through approval and execution.

    Records are never mutated; every committed change produces a new
    record via ``dataclasses.replace`` with ``version + 1``.
    """

    job_id: UUID
    reference: str
    project_id: str
    requester_id: str
    job_type: JobType | None
    priority: Priority = Priority.NORMAL
    status: JobStatus = JobStatus.DRAFT
    current_level: int = 0
    chain: ApprovalChainSnapshot | None = None
    level_actions: tuple[ApprovalActionRecord, ...] = ()
    assignee_id: str | None = None
    due_date: date | None = None
    start_date: date | None = None
    submitted_at: datetime | None = None
    started_at: datetime | None = None
    closed_at: datetime | None = None
    revision_count: int = 0
    timeline: tuple[TimelineEntry, ...] = ()
    comments: tuple[Comment, ...] = ()
    rejection_requests: tuple[RejectionRequest, ...] = ()
    version: int = 1
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @property
    def current_approver_set(self) -> frozenset[str]:
        """Eligible approvers for the current level (derived, not stored)."""
        if self.status != JobStatus.PENDING_APPROVAL or self.chain is None:
            return frozenset()
        level = self.chain.level(self.current_level)
        return level.approvers if level is not None else frozenset()

    @property
    def pending_rejection(self) -> RejectionRequest | None:
        for request in self.rejection_requests:
            if request.is_pending:
                return request
        return None

    def job_approvers(self) -> frozenset[str]:
        """Actors who may assign the job or resolve rejection requests.

        Everyone named on the snapshot; the requester when the chain has
        no levels.
        """
        if self.chain is None or self.chain.is_empty:
            return frozenset({self.requester_id})
        return self.chain.all_approvers()
