"""
jobflow_services.rejection_workflow -- Assignee-initiated rejection requests.

Responsibility:
    Lets the assignee of approved or in-progress work ask to abandon it,
    lets a job approver approve or deny that request, and auto-approves
    requests whose deadline passed without a human decision.

Architecture position:
    Services layer.  Subordinate to ``JobStateMachine``: the only status
    change it causes (-> REJECTED) goes through
    ``JobStateMachine.apply_rejection_resolution`` so the transition
    table stays the single legality check.

Invariants enforced:
    - At most one pending request per job.
    - A request moves PENDING -> APPROVED or PENDING -> DENIED exactly
      once; resolving an already-resolved request is a no-op result.
    - Deny leaves the job status unchanged.
    - ``sweep_expired`` is idempotent: a second run over the same records
      resolves nothing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from jobflow_kernel.domain.clock import Clock
from jobflow_kernel.domain.job import (
    REJECTION_REQUEST_STATUSES,
    Job,
    TimelineEvent,
)
from jobflow_kernel.domain.rejection import (
    REJECTION_TRANSITIONS,
    RejectionRequest,
    RejectionResolution,
)
from jobflow_kernel.exceptions import (
    InvalidTransitionError,
    JobflowError,
    UnauthorizedActorError,
    ValidationError,
)
from jobflow_kernel.logging_config import LogContext, get_logger
from jobflow_services.job_state_machine import (
    ActionResult,
    JobStateMachine,
    check_version,
    commit_change,
    make_entry,
    require_text,
)

logger = get_logger("services.rejection_workflow")

DEFAULT_AUTO_CLOSE = timedelta(hours=24)


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one autoclose pass.

    ``results`` holds one ActionResult per job that changed; ``resolved``
    lists the requests that were auto-approved.
    """

    results: tuple[ActionResult, ...] = ()
    resolved: tuple[RejectionRequest, ...] = ()

    @property
    def jobs(self) -> tuple[Job, ...]:
        return tuple(r.job for r in self.results)


class RejectionWorkflow:
    """Request, resolve and auto-close rejection requests."""

    def __init__(
        self,
        machine: JobStateMachine,
        clock: Clock | None = None,
        *,
        default_auto_close: timedelta | None = DEFAULT_AUTO_CLOSE,
        system_actor_id: str = "system",
    ) -> None:
        self._machine = machine
        self._clock = clock or machine.clock
        self._default_auto_close = default_auto_close
        self._system_actor_id = system_actor_id

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------

    def request(
        self,
        job: Job,
        *,
        actor_id: str,
        reason: str,
        auto_close_at: datetime | None = None,
        expected_version: int | None = None,
    ) -> ActionResult:
        """Open a rejection request on ``job``.

        ``auto_close_at`` overrides the default deadline
        (``now + default_auto_close``; none when that is disabled).
        """
        with LogContext.bind(job_id=str(job.job_id), actor_id=actor_id, action="request_rejection"):
            try:
                check_version(job, expected_version)
                if job.status not in REJECTION_REQUEST_STATUSES:
                    raise InvalidTransitionError(job.status.value, "request_rejection")
                if actor_id != job.assignee_id:
                    raise UnauthorizedActorError(
                        actor_id, "request_rejection", "only the assignee may do this"
                    )
                text = require_text("reason", reason)
                if job.pending_rejection is not None:
                    raise InvalidTransitionError(
                        job.status.value,
                        "request_rejection",
                        "a rejection request is already pending",
                    )
                if auto_close_at is not None and auto_close_at.tzinfo is None:
                    raise ValidationError("auto_close_at", "deadline must be timezone-aware")
            except JobflowError as exc:
                self._log_refusal(job, "request_rejection", exc)
                raise

            now = self._clock.now()
            if auto_close_at is None and self._default_auto_close is not None:
                auto_close_at = now + self._default_auto_close

            request = RejectionRequest(
                request_id=uuid4(),
                reason=text,
                requested_by=actor_id,
                created_at=now,
                auto_close_at=auto_close_at,
            )
            after = replace(job, rejection_requests=job.rejection_requests + (request,))
            entry = make_entry(
                TimelineEvent.REJECTION_REQUESTED,
                actor_id,
                now,
                from_status=job.status,
                to_status=job.status,
                note=text,
            )
            logger.info(
                "rejection_requested",
                extra={
                    "request_id": str(request.request_id),
                    "auto_close_at": auto_close_at.isoformat() if auto_close_at else None,
                },
            )
            return commit_change(job, after, (entry,), now)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def approve(
        self,
        job: Job,
        *,
        request_id: UUID,
        actor_id: str,
        comment: str = "",
        expected_version: int | None = None,
    ) -> ActionResult:
        """Approve the request; the job becomes REJECTED."""
        return self._resolve(
            job,
            request_id=request_id,
            actor_id=actor_id,
            resolution=RejectionResolution.APPROVED,
            note=comment.strip(),
            expected_version=expected_version,
        )

    def deny(
        self,
        job: Job,
        *,
        request_id: UUID,
        actor_id: str,
        reason: str,
        expected_version: int | None = None,
    ) -> ActionResult:
        """Deny the request; the job keeps its status."""
        return self._resolve(
            job,
            request_id=request_id,
            actor_id=actor_id,
            resolution=RejectionResolution.DENIED,
            note=reason,
            expected_version=expected_version,
        )

    def _resolve(
        self,
        job: Job,
        *,
        request_id: UUID,
        actor_id: str,
        resolution: RejectionResolution,
        note: str,
        expected_version: int | None,
        now: datetime | None = None,
        auto_closed: bool = False,
    ) -> ActionResult:
        action = f"{resolution.value}_rejection"
        with LogContext.bind(job_id=str(job.job_id), actor_id=actor_id, action=action):
            request = self._find(job, request_id)
            if request is None:
                exc = InvalidTransitionError(job.status.value, action, f"no rejection request {request_id}")
                self._log_refusal(job, action, exc)
                raise exc

            if resolution not in REJECTION_TRANSITIONS[request.resolution]:
                logger.info(
                    "rejection_resolution_skipped",
                    extra={
                        "request_id": str(request_id),
                        "resolution": request.resolution.value,
                    },
                )
                return ActionResult(job=job, changed=False)

            try:
                check_version(job, expected_version)
                if not auto_closed and actor_id not in job.job_approvers():
                    raise UnauthorizedActorError(actor_id, action, "not an approver of this job")
                if resolution == RejectionResolution.DENIED:
                    note = require_text("reason", note)
            except JobflowError as exc:
                self._log_refusal(job, action, exc)
                raise

            now = now or self._clock.now()
            resolved = replace(
                request,
                resolution=resolution,
                resolved_by=actor_id,
                resolved_at=now,
                resolution_note=note,
                auto_closed=auto_closed,
            )
            after = replace(
                job,
                rejection_requests=tuple(
                    resolved if r.request_id == request_id else r
                    for r in job.rejection_requests
                ),
            )

            if resolution == RejectionResolution.DENIED:
                event = TimelineEvent.REJECTION_DENIED
            elif auto_closed:
                event = TimelineEvent.REJECTION_AUTO_APPROVED
            else:
                event = TimelineEvent.REJECTION_APPROVED
            entries = (
                make_entry(
                    event,
                    actor_id,
                    now,
                    from_status=job.status,
                    to_status=job.status,
                    note=note,
                ),
            )

            if resolution == RejectionResolution.APPROVED:
                after, rejected = self._machine.apply_rejection_resolution(
                    after,
                    actor_id=actor_id,
                    note=request.reason,
                    now=now,
                )
                entries = entries + (rejected,)

            result = commit_change(job, after, entries, now)
            logger.info(
                "rejection_resolved",
                extra={
                    "request_id": str(request_id),
                    "resolution": resolution.value,
                    "auto_closed": auto_closed,
                    "to_status": result.job.status.value,
                },
            )
            return result

    # ------------------------------------------------------------------
    # Autoclose
    # ------------------------------------------------------------------

    def sweep_expired(
        self,
        jobs: Iterable[Job],
        now: datetime | None = None,
    ) -> SweepResult:
        """Auto-approve every pending request whose deadline has passed.

        A job whose request cannot be resolved is logged and skipped so
        one bad record does not stall the sweep.
        """
        now = now or self._clock.now()
        results: list[ActionResult] = []
        resolved: list[RejectionRequest] = []
        for job in jobs:
            request = job.pending_rejection
            if request is None:
                continue
            try:
                if not request.is_expired(now):
                    continue
                result = self._resolve(
                    job,
                    request_id=request.request_id,
                    actor_id=self._system_actor_id,
                    resolution=RejectionResolution.APPROVED,
                    note="auto-approved after deadline",
                    expected_version=None,
                    now=now,
                    auto_closed=True,
                )
            except JobflowError:
                logger.exception(
                    "autoclose_failed",
                    extra={"job_id": str(job.job_id), "request_id": str(request.request_id)},
                )
                continue
            if result.changed:
                results.append(result)
                resolved.append(self._find(result.job, request.request_id))

        logger.info(
            "autoclose_sweep_completed",
            extra={"resolved_count": len(resolved), "swept_at": now.isoformat()},
        )
        return SweepResult(results=tuple(results), resolved=tuple(resolved))

    @staticmethod
    def _find(job: Job, request_id: UUID) -> RejectionRequest | None:
        for request in job.rejection_requests:
            if request.request_id == request_id:
                return request
        return None

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
