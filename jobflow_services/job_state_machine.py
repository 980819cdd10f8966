"""
jobflow_services.job_state_machine -- Top-level authority over job status.

Responsibility:
    Accepts an action and the current job record, checks the transition
    table and the action's guard, and produces the next record plus the
    timeline entries it appended.  Delegates level completion to the
    approval chain engine and due-date computation to the SLA engine.

Architecture position:
    Services layer.  May import from jobflow_engines/ (pure engines)
    and jobflow_kernel/ (domain, exceptions, logging).  Holds no state
    between calls and performs no I/O; callers persist returned records.

Invariants enforced:
    - Single-point legality check: ``JOB_TRANSITIONS`` decides whether an
      action is legal and which statuses it may produce.
    - Optimistic concurrency: a stale ``expected_version`` is refused
      with ConcurrentModificationError; every committed change bumps
      ``version`` by exactly one.
    - All-or-nothing: guards and SLA computation run before a new record
      is built, so a refused action leaves nothing half applied.
    - Approval snapshots are read from the flow provider once, on the
      first submit; resubmits reuse the job's own snapshot.

Failure modes:
    - InvalidTransitionError for an action not legal from the status.
    - UnauthorizedActorError when the actor fails the action's guard.
    - ValidationError when a required reason/note/assignee is missing.
    - ConfigurationError when the job type or approval flow is unusable.
    - ConcurrentModificationError on a stale version.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Protocol, runtime_checkable
from uuid import UUID, uuid4

from jobflow_engines.approval_chain import (
    advance_if_ready,
    begin_approval_cycle,
)
from jobflow_engines.calendar import normalize_holidays
from jobflow_engines.sla import require_sla_days, resolve_due_dates
from jobflow_kernel.domain.approval import (
    ApprovalActionRecord,
    ApprovalChainSnapshot,
    ApprovalDecision,
)
from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.domain.job import (
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
from jobflow_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateApprovalError,
    InvalidTransitionError,
    JobflowError,
    UnauthorizedActorError,
    ValidationError,
)
from jobflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.job_state_machine")


# ---------------------------------------------------------------------------
# Ports and value types
# ---------------------------------------------------------------------------


@runtime_checkable
class ApprovalFlowProvider(Protocol):
    """Looks up the approval configuration for a project at submit time."""

    def chain_for(self, project_id: str) -> ApprovalChainSnapshot:
        """Return a snapshot of the project's chain or raise ConfigurationError."""
        ...


@dataclass(frozen=True)
class JobCommand:
    """An action requested by an actor.

    ``reason`` is required for return/reject, ``note`` for
    request_revision, ``assignee_id`` for assign.  ``holidays`` is only
    consulted by submit, and only when the job has no dates yet.
    """

    action: JobAction
    actor_id: str
    reason: str | None = None
    note: str | None = None
    assignee_id: str | None = None
    expected_version: int | None = None
    holidays: frozenset[date] = frozenset()


@dataclass(frozen=True)
class ActionResult:
    """The next job record and the timeline entries appended to reach it.

    ``changed`` is False for a no-op (e.g. resolving a rejection request
    that something else already resolved).
    """

    job: Job
    entries: tuple[TimelineEntry, ...] = ()
    changed: bool = True

    @property
    def notifications(self) -> tuple[TimelineEntry, ...]:
        return tuple(e for e in self.entries if e.notification_event is not None)


_Outcome = tuple[Job, tuple[TimelineEntry, ...]]
_Handler = Callable[[Job, JobCommand, datetime], _Outcome]


# ---------------------------------------------------------------------------
# Shared helpers (also used by the rejection-request workflow)
# ---------------------------------------------------------------------------


def make_entry(
    event: TimelineEvent,
    actor_id: str,
    occurred_at: datetime,
    *,
    from_status: JobStatus | None = None,
    to_status: JobStatus | None = None,
    level: int | None = None,
    note: str = "",
    notification_event: NotificationEvent | None = None,
    recipients: Iterable[str] = (),
) -> TimelineEntry:
    return TimelineEntry(
        entry_id=uuid4(),
        event=event,
        actor_id=actor_id,
        occurred_at=occurred_at,
        from_status=from_status,
        to_status=to_status,
        level=level,
        note=note,
        notification_event=notification_event,
        recipients=frozenset(r for r in recipients if r),
    )


def check_version(job: Job, expected_version: int | None) -> None:
    """Refuse a record the caller no longer considers current."""
    if expected_version is not None and expected_version != job.version:
        raise ConcurrentModificationError(
            str(job.job_id), expected_version, job.version
        )


def commit_change(
    before: Job,
    after: Job,
    entries: tuple[TimelineEntry, ...],
    now: datetime,
) -> ActionResult:
    """Append ``entries`` and bump the version once."""
    committed = replace(
        after,
        timeline=before.timeline + entries,
        version=before.version + 1,
        updated_at=now,
    )
    return ActionResult(job=committed, entries=entries)


def require_text(field: str, value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(field, "must not be empty")
    return text


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class JobStateMachine:
    """Applies actions to job records.

    Contract:
        ``apply(job, command)`` is the entry point for every caller-driven
        action in the transition table.  ``create_job``, ``revise_draft``
        and ``add_comment`` cover the operations that do not move status
        along the table.  Every method returns an ``ActionResult``.

    Non-goals:
        - Does NOT persist records or hold locks.
        - Does NOT send notifications; entries carry the template key
          and recipients for the delivery layer.
    """

    def __init__(
        self,
        flows: ApprovalFlowProvider,
        clock: Clock | None = None,
    ) -> None:
        self._flows = flows
        self._clock = clock or SystemClock()
        self._handlers: dict[JobAction, _Handler] = {
            JobAction.SUBMIT: self._submit,
            JobAction.APPROVE: self._approve,
            JobAction.RETURN: self._return,
            JobAction.REJECT: self._reject,
            JobAction.ASSIGN: self._assign,
            JobAction.START: self._start,
            JobAction.REQUEST_CLOSE: self._request_close,
            JobAction.CONFIRM_CLOSE: self._confirm_close,
            JobAction.REQUEST_REVISION: self._request_revision,
        }

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Creation and draft revision
    # ------------------------------------------------------------------

    def create_job(
        self,
        *,
        reference: str,
        project_id: str,
        requester_id: str,
        job_type: JobType | None,
        priority: Priority = Priority.NORMAL,
        due_date: date | None = None,
        holidays: Iterable[date] = frozenset(),
        job_id: UUID | None = None,
    ) -> ActionResult:
        """Build a draft job with its SLA-derived due and start dates.

        Raises:
            ConfigurationError: job type missing or SLA negative.
            ValidationError: ``due_date`` earlier than the minimum
                selectable due date.
        """
        now = self._clock.now()
        plan = resolve_due_dates(
            today=now.date(),
            job_type=job_type,
            priority=priority,
            holidays=normalize_holidays(holidays),
            requested_due=due_date,
        )
        entry = make_entry(
            TimelineEvent.JOB_CREATED,
            requester_id,
            now,
            to_status=JobStatus.DRAFT,
            note=f"due {plan.due_date.isoformat()}",
        )
        job = Job(
            job_id=job_id or uuid4(),
            reference=reference,
            project_id=project_id,
            requester_id=requester_id,
            job_type=job_type,
            priority=priority,
            due_date=plan.due_date,
            start_date=plan.start_date,
            timeline=(entry,),
            version=1,
            updated_at=now,
        )
        logger.info(
            "job_created",
            extra={
                "job_id": str(job.job_id),
                "reference": reference,
                "priority": priority.value,
                "due_date": plan.due_date.isoformat(),
                "start_date": plan.start_date.isoformat(),
            },
        )
        return ActionResult(job=job, entries=(entry,))

    def revise_draft(
        self,
        job: Job,
        *,
        actor_id: str,
        priority: Priority | None = None,
        job_type: JobType | None = None,
        due_date: date | None = None,
        holidays: Iterable[date] = frozenset(),
        expected_version: int | None = None,
    ) -> ActionResult:
        """Change priority, job type or due date before (re)submission.

        The due date kept is ``due_date`` when given, otherwise the job's
        current one; either way it is re-validated against the new window.
        """
        with LogContext.bind(job_id=str(job.job_id), actor_id=actor_id, action="revise_draft"):
            try:
                check_version(job, expected_version)
                if job.status not in REVISABLE_STATUSES:
                    raise InvalidTransitionError(job.status.value, "revise_draft")
                self._require_requester(job, actor_id, "revise_draft")

                new_priority = priority or job.priority
                new_type = job_type or job.job_type
                now = self._clock.now()
                plan = resolve_due_dates(
                    today=now.date(),
                    job_type=new_type,
                    priority=new_priority,
                    holidays=normalize_holidays(holidays),
                    requested_due=due_date or job.due_date,
                )
            except JobflowError as exc:
                self._log_refusal(job, "revise_draft", exc)
                raise

            after = replace(
                job,
                priority=new_priority,
                job_type=new_type,
                due_date=plan.due_date,
                start_date=plan.start_date,
            )
            entry = make_entry(
                TimelineEvent.DRAFT_REVISED,
                actor_id,
                now,
                from_status=job.status,
                to_status=job.status,
                note=(
                    f"priority={new_priority.value} "
                    f"job_type={new_type.code if new_type else None} "
                    f"due={plan.due_date.isoformat()}"
                ),
            )
            return commit_change(job, after, (entry,), now)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(
        self,
        job: Job,
        *,
        actor_id: str,
        body: str,
        expected_version: int | None = None,
    ) -> ActionResult:
        """Attach a comment; never changes status."""
        try:
            check_version(job, expected_version)
            if job.status in TERMINAL_JOB_STATUSES:
                raise InvalidTransitionError(job.status.value, "comment")
            text = require_text("body", body)
        except JobflowError as exc:
            self._log_refusal(job, "comment", exc)
            raise

        now = self._clock.now()
        comment = Comment(
            comment_id=uuid4(),
            author_id=actor_id,
            body=text,
            created_at=now,
        )
        after = replace(
            job,
            comments=job.comments + (comment,),
            version=job.version + 1,
            updated_at=now,
        )
        return ActionResult(job=after)

    # ------------------------------------------------------------------
    # Table-driven actions
    # ------------------------------------------------------------------

    def apply(self, job: Job, command: JobCommand) -> ActionResult:
        """Apply ``command`` to ``job`` and return the next record.

        Raises:
            ConcurrentModificationError: ``command.expected_version`` is stale.
            InvalidTransitionError: the action is not legal from the status.
            UnauthorizedActorError, ValidationError, ConfigurationError:
                the action's guard failed.
        """
        action = command.action
        with LogContext.bind(
            job_id=str(job.job_id),
            actor_id=command.actor_id,
            action=action.value,
        ):
            try:
                check_version(job, command.expected_version)
                targets = allowed_targets(job.status, action)
                handler = self._handlers.get(action)
                if not targets or handler is None:
                    raise InvalidTransitionError(job.status.value, action.value)

                now = self._clock.now()
                after, entries = handler(job, command, now)
            except JobflowError as exc:
                self._log_refusal(job, action.value, exc)
                raise

            # INVARIANT: handlers only produce statuses the table allows
            assert after.status in targets, (
                f"{action.value} produced {after.status.value} from {job.status.value}"
            )
            result = commit_change(job, after, entries, now)
            logger.info(
                "job_transition",
                extra={
                    "reference": job.reference,
                    "from_status": job.status.value,
                    "to_status": after.status.value,
                    "current_level": after.current_level,
                    "version": result.job.version,
                    "notifications": [e.notification_event.value for e in result.notifications],
                },
            )
            return result

    def apply_rejection_resolution(
        self,
        job: Job,
        *,
        actor_id: str,
        note: str,
        now: datetime,
    ) -> tuple[Job, TimelineEntry]:
        """Drive the job to REJECTED because its rejection request was approved.

        Uncommitted: the caller appends the entry and bumps the version
        together with its own rejection-request change.
        """
        action = JobAction.ACCEPT_REJECTION_REQUEST
        targets = allowed_targets(job.status, action)
        if not targets:
            raise InvalidTransitionError(job.status.value, action.value)
        after = replace(job, status=JobStatus.REJECTED)
        entry = make_entry(
            TimelineEvent.JOB_REJECTED,
            actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.REJECTED,
            note=note,
            notification_event=NotificationEvent.JOB_REJECTED,
            recipients=(job.requester_id, job.assignee_id),
        )
        return after, entry

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _submit(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_requester(job, cmd.actor_id, cmd.action.value)
        require_sla_days(job.job_type)

        dated = job
        if job.due_date is None or job.start_date is None:
            plan = resolve_due_dates(
                today=now.date(),
                job_type=job.job_type,
                priority=job.priority,
                holidays=cmd.holidays,
                requested_due=job.due_date,
            )
            dated = replace(job, due_date=plan.due_date, start_date=plan.start_date)

        chain = job.chain if job.chain is not None else self._flows.chain_for(job.project_id)
        after = begin_approval_cycle(replace(dated, submitted_at=now), chain)

        submitted = make_entry(
            TimelineEvent.JOB_SUBMITTED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.PENDING_APPROVAL,
            level=1 if not chain.is_empty else None,
            notification_event=(
                NotificationEvent.JOB_APPROVAL_REQUEST
                if after.status == JobStatus.PENDING_APPROVAL
                else None
            ),
            recipients=after.current_approver_set,
        )
        return after, (submitted,) + self._completion_entries(after, cmd.actor_id, now)

    def _approve(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        level_no = job.current_level
        self._require_level_approver(job, cmd)
        if any(a.actor_id == cmd.actor_id and a.level == level_no for a in job.level_actions):
            raise DuplicateApprovalError(
                job.status.value, cmd.action.value, cmd.actor_id, level_no
            )

        record = ApprovalActionRecord(
            actor_id=cmd.actor_id,
            level=level_no,
            decision=ApprovalDecision.APPROVE,
            acted_at=now,
            comment=(cmd.note or "").strip(),
        )
        after = advance_if_ready(replace(job, level_actions=job.level_actions + (record,)))

        entries = [
            make_entry(
                TimelineEvent.LEVEL_APPROVAL_RECORDED,
                cmd.actor_id,
                now,
                from_status=job.status,
                to_status=after.status,
                level=level_no,
                note=record.comment,
            )
        ]
        if after.status == JobStatus.PENDING_APPROVAL and after.current_level > level_no:
            entries.append(
                make_entry(
                    TimelineEvent.LEVEL_COMPLETED,
                    cmd.actor_id,
                    now,
                    from_status=job.status,
                    to_status=after.status,
                    level=level_no,
                    notification_event=NotificationEvent.JOB_APPROVAL_REQUEST,
                    recipients=after.current_approver_set,
                )
            )
        entries.extend(self._completion_entries(after, cmd.actor_id, now))
        return after, tuple(entries)

    def _return(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_level_approver(job, cmd)
        reason = require_text("reason", cmd.reason)
        after = replace(
            job,
            status=JobStatus.RETURNED,
            current_level=0,
            level_actions=(),
        )
        entry = make_entry(
            TimelineEvent.JOB_RETURNED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.RETURNED,
            level=job.current_level,
            note=reason,
        )
        return after, (entry,)

    def _reject(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_level_approver(job, cmd)
        reason = require_text("reason", cmd.reason)
        record = ApprovalActionRecord(
            actor_id=cmd.actor_id,
            level=job.current_level,
            decision=ApprovalDecision.REJECT,
            acted_at=now,
            comment=reason,
        )
        after = replace(
            job,
            status=JobStatus.REJECTED,
            level_actions=job.level_actions + (record,),
        )
        entry = make_entry(
            TimelineEvent.JOB_REJECTED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.REJECTED,
            level=job.current_level,
            note=reason,
            notification_event=NotificationEvent.JOB_REJECTED,
            recipients=(job.requester_id,),
        )
        return after, (entry,)

    def _assign(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        if cmd.actor_id not in job.job_approvers():
            raise UnauthorizedActorError(
                cmd.actor_id, cmd.action.value, "not an approver of this job"
            )
        self._refuse_while_rejection_pending(job, cmd)
        assignee = require_text("assignee_id", cmd.assignee_id)
        after = replace(job, status=JobStatus.ASSIGNED, assignee_id=assignee)
        entry = make_entry(
            TimelineEvent.JOB_ASSIGNED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.ASSIGNED,
            note=assignee,
            notification_event=NotificationEvent.JOB_ASSIGNED,
            recipients=(assignee,),
        )
        return after, (entry,)

    def _start(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_assignee(job, cmd)
        self._refuse_while_rejection_pending(job, cmd)
        after = replace(job, status=JobStatus.IN_PROGRESS, started_at=now)
        entry = make_entry(
            TimelineEvent.WORK_STARTED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.IN_PROGRESS,
        )
        return after, (entry,)

    def _request_close(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_assignee(job, cmd)
        self._refuse_while_rejection_pending(job, cmd)
        after = replace(job, status=JobStatus.PENDING_CLOSE)
        entry = make_entry(
            TimelineEvent.CLOSE_REQUESTED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.PENDING_CLOSE,
            note=(cmd.note or "").strip(),
        )
        return after, (entry,)

    def _confirm_close(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_requester(job, cmd.actor_id, cmd.action.value)
        after = replace(job, status=JobStatus.CLOSED, closed_at=now)
        entry = make_entry(
            TimelineEvent.JOB_CLOSED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.CLOSED,
        )
        return after, (entry,)

    def _request_revision(self, job: Job, cmd: JobCommand, now: datetime) -> _Outcome:
        self._require_requester(job, cmd.actor_id, cmd.action.value)
        note = require_text("note", cmd.note)
        after = replace(
            job,
            status=JobStatus.IN_PROGRESS,
            revision_count=job.revision_count + 1,
        )
        entry = make_entry(
            TimelineEvent.REVISION_REQUESTED,
            cmd.actor_id,
            now,
            from_status=job.status,
            to_status=JobStatus.IN_PROGRESS,
            note=note,
        )
        return after, (entry,)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _completion_entries(self, after: Job, actor_id: str, now: datetime) -> tuple[TimelineEntry, ...]:
        """Entries for a chain that became fully satisfied in this step."""
        if after.status not in (JobStatus.APPROVED, JobStatus.ASSIGNED):
            return ()
        entries = [
            make_entry(
                TimelineEvent.JOB_APPROVED,
                actor_id,
                now,
                from_status=JobStatus.PENDING_APPROVAL,
                to_status=JobStatus.APPROVED,
                notification_event=NotificationEvent.JOB_APPROVED,
                recipients=(after.requester_id,),
            )
        ]
        if after.status == JobStatus.ASSIGNED:
            entries.append(
                make_entry(
                    TimelineEvent.JOB_ASSIGNED,
                    actor_id,
                    now,
                    from_status=JobStatus.APPROVED,
                    to_status=JobStatus.ASSIGNED,
                    note=after.assignee_id or "",
                    notification_event=NotificationEvent.JOB_ASSIGNED,
                    recipients=(after.assignee_id,),
                )
            )
        return tuple(entries)

    @staticmethod
    def _require_requester(job: Job, actor_id: str, action: str) -> None:
        if actor_id != job.requester_id:
            raise UnauthorizedActorError(actor_id, action, "only the requester may do this")

    @staticmethod
    def _require_assignee(job: Job, cmd: JobCommand) -> None:
        if job.assignee_id is None:
            raise UnauthorizedActorError(cmd.actor_id, cmd.action.value, "job has no assignee")
        if cmd.actor_id != job.assignee_id:
            raise UnauthorizedActorError(cmd.actor_id, cmd.action.value, "only the assignee may do this")

    @staticmethod
    def _require_level_approver(job: Job, cmd: JobCommand) -> None:
        if cmd.actor_id not in job.current_approver_set:
            raise UnauthorizedActorError(
                cmd.actor_id,
                cmd.action.value,
                f"not an eligible approver for level {job.current_level}",
            )

    @staticmethod
    def _refuse_while_rejection_pending(job: Job, cmd: JobCommand) -> None:
        if job.pending_rejection is not None:
            raise InvalidTransitionError(
                job.status.value,
                cmd.action.value,
                "a rejection request is pending",
            )

    @staticmethod
    def _log_refusal(job: Job, action: str, exc: JobflowError) -> None:
        logger.warning(
            "job_transition_refused",
            extra={
                "reference": job.reference,
                "status": job.status.value,
                "refused_action": action,
                "error_code": exc.code,
                "error": str(exc),
            },
        )
