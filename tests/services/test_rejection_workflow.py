"""
Tests for the rejection-request sub-workflow.

Tests cover:
- request: guards, default and explicit autoclose deadlines
- approve / deny: parent job effects, eligibility, no-op on resolved requests
- pending requests blocking start, request_close and reassignment
- sweep_expired: auto-approval, idempotency, skipping bad records and naive deadlines
"""

from dataclasses import replace
from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from jobflow_kernel.domain.job import (
    JobAction,
    JobStatus,
    NotificationEvent,
    TimelineEvent,
)
from jobflow_kernel.domain.rejection import RejectionResolution
from jobflow_kernel.exceptions import (
    InvalidTransitionError,
    UnauthorizedActorError,
    ValidationError,
)
from jobflow_services.job_state_machine import JobCommand
from jobflow_services.rejection_workflow import RejectionWorkflow

REQUESTER = "requester"
ASSIGNEE = "designer"
HOUR = 3600


@pytest.fixture
def assigned_job(machine, draft_job):
    job = machine.apply(draft_job(), JobCommand(JobAction.SUBMIT, REQUESTER)).job
    return machine.apply(job, JobCommand(JobAction.APPROVE, "bob")).job


@pytest.fixture
def in_progress_job(machine, assigned_job):
    return machine.apply(assigned_job, JobCommand(JobAction.START, ASSIGNEE)).job


@pytest.fixture
def requested_job(rejection_workflow, in_progress_job):
    return rejection_workflow.request(
        in_progress_job, actor_id=ASSIGNEE, reason="client cancelled"
    ).job


# =========================================================================
# Request
# =========================================================================


class TestRequest:

    def test_creates_pending_request_with_default_deadline(
        self, rejection_workflow, in_progress_job, clock
    ):
        result = rejection_workflow.request(
            in_progress_job, actor_id=ASSIGNEE, reason="client cancelled"
        )
        request = result.job.pending_rejection

        assert request is not None
        assert request.resolution == RejectionResolution.PENDING
        assert request.requested_by == ASSIGNEE
        assert request.auto_close_at == clock.now() + timedelta(hours=24)
        assert result.job.status == JobStatus.IN_PROGRESS
        assert result.job.version == in_progress_job.version + 1
        assert [e.event for e in result.entries] == [TimelineEvent.REJECTION_REQUESTED]

    def test_explicit_deadline(self, rejection_workflow, in_progress_job, clock):
        deadline = clock.now() + timedelta(hours=2)
        result = rejection_workflow.request(
            in_progress_job, actor_id=ASSIGNEE, reason="duplicate", auto_close_at=deadline
        )
        assert result.job.pending_rejection.auto_close_at == deadline

    def test_default_deadline_disabled(self, machine, clock, in_progress_job):
        workflow = RejectionWorkflow(machine, clock, default_auto_close=None)
        result = workflow.request(in_progress_job, actor_id=ASSIGNEE, reason="duplicate")
        assert result.job.pending_rejection.auto_close_at is None

    def test_naive_deadline_refused(self, rejection_workflow, in_progress_job):
        with pytest.raises(ValidationError) as exc_info:
            rejection_workflow.request(
                in_progress_job,
                actor_id=ASSIGNEE,
                reason="duplicate",
                auto_close_at=datetime(2026, 1, 1),
            )
        assert exc_info.value.field == "auto_close_at"

    def test_allowed_from_assigned(self, rejection_workflow, assigned_job):
        result = rejection_workflow.request(assigned_job, actor_id=ASSIGNEE, reason="no brief")
        assert result.job.pending_rejection is not None

    def test_only_assignee(self, rejection_workflow, in_progress_job):
        with pytest.raises(UnauthorizedActorError):
            rejection_workflow.request(in_progress_job, actor_id=REQUESTER, reason="x")

    def test_reason_required(self, rejection_workflow, in_progress_job):
        with pytest.raises(ValidationError):
            rejection_workflow.request(in_progress_job, actor_id=ASSIGNEE, reason="  ")

    def test_one_pending_request_at_a_time(self, rejection_workflow, requested_job):
        with pytest.raises(InvalidTransitionError, match="already pending"):
            rejection_workflow.request(requested_job, actor_id=ASSIGNEE, reason="again")

    def test_refused_outside_working_statuses(self, rejection_workflow, draft_job):
        with pytest.raises(InvalidTransitionError):
            rejection_workflow.request(draft_job(), actor_id=ASSIGNEE, reason="x")

    def test_refused_in_pending_close(self, machine, rejection_workflow, in_progress_job):
        job = machine.apply(in_progress_job, JobCommand(JobAction.REQUEST_CLOSE, ASSIGNEE)).job
        with pytest.raises(InvalidTransitionError):
            rejection_workflow.request(job, actor_id=ASSIGNEE, reason="x")


class TestPendingRequestBlocksWork:

    def test_request_close_blocked(self, machine, requested_job):
        with pytest.raises(InvalidTransitionError, match="rejection request is pending"):
            machine.apply(requested_job, JobCommand(JobAction.REQUEST_CLOSE, ASSIGNEE))

    def test_start_blocked_until_denied(self, machine, rejection_workflow, assigned_job):
        job = rejection_workflow.request(assigned_job, actor_id=ASSIGNEE, reason="no brief").job
        with pytest.raises(InvalidTransitionError):
            machine.apply(job, JobCommand(JobAction.START, ASSIGNEE))

        job = rejection_workflow.deny(
            job,
            request_id=job.pending_rejection.request_id,
            actor_id="alice",
            reason="brief attached",
        ).job
        started = machine.apply(job, JobCommand(JobAction.START, ASSIGNEE)).job
        assert started.status == JobStatus.IN_PROGRESS

    def test_reassign_blocked(self, machine, rejection_workflow, assigned_job):
        job = rejection_workflow.request(assigned_job, actor_id=ASSIGNEE, reason="no brief").job
        with pytest.raises(InvalidTransitionError, match="rejection request is pending"):
            machine.apply(job, JobCommand(JobAction.ASSIGN, "alice", assignee_id="other"))

        job = rejection_workflow.deny(
            job,
            request_id=job.pending_rejection.request_id,
            actor_id="alice",
            reason="brief attached",
        ).job
        reassigned = machine.apply(
            job, JobCommand(JobAction.ASSIGN, "alice", assignee_id="other")
        ).job
        assert reassigned.assignee_id == "other"


# =========================================================================
# Resolution
# =========================================================================


class TestResolution:

    def test_approve_rejects_job(self, rejection_workflow, requested_job):
        request_id = requested_job.pending_rejection.request_id
        result = rejection_workflow.approve(
            requested_job, request_id=request_id, actor_id="alice", comment="ok"
        )
        job = result.job

        assert job.status == JobStatus.REJECTED
        assert job.version == requested_job.version + 1
        (request,) = job.rejection_requests
        assert request.resolution == RejectionResolution.APPROVED
        assert request.resolved_by == "alice"
        assert request.auto_closed is False
        assert [e.event for e in result.entries] == [
            TimelineEvent.REJECTION_APPROVED,
            TimelineEvent.JOB_REJECTED,
        ]
        (notice,) = result.notifications
        assert notice.notification_event == NotificationEvent.JOB_REJECTED
        assert notice.recipients == frozenset({REQUESTER, ASSIGNEE})

    def test_approve_requires_job_approver(self, rejection_workflow, requested_job):
        with pytest.raises(UnauthorizedActorError):
            rejection_workflow.approve(
                requested_job,
                request_id=requested_job.pending_rejection.request_id,
                actor_id=ASSIGNEE,
            )

    def test_deny_keeps_status(self, rejection_workflow, requested_job):
        result = rejection_workflow.deny(
            requested_job,
            request_id=requested_job.pending_rejection.request_id,
            actor_id="bob",
            reason="finish it please",
        )
        job = result.job
        assert job.status == JobStatus.IN_PROGRESS
        assert job.pending_rejection is None
        assert job.rejection_requests[0].resolution == RejectionResolution.DENIED
        assert job.rejection_requests[0].resolution_note == "finish it please"
        assert [e.event for e in result.entries] == [TimelineEvent.REJECTION_DENIED]

    def test_deny_requires_reason(self, rejection_workflow, requested_job):
        with pytest.raises(ValidationError):
            rejection_workflow.deny(
                requested_job,
                request_id=requested_job.pending_rejection.request_id,
                actor_id="bob",
                reason="",
            )

    def test_new_request_after_denial(self, rejection_workflow, requested_job):
        denied = rejection_workflow.deny(
            requested_job,
            request_id=requested_job.pending_rejection.request_id,
            actor_id="bob",
            reason="no",
        ).job
        again = rejection_workflow.request(denied, actor_id=ASSIGNEE, reason="really").job
        assert len(again.rejection_requests) == 2
        assert again.pending_rejection.reason == "really"

    def test_resolving_resolved_request_is_noop(self, rejection_workflow, requested_job):
        request_id = requested_job.pending_rejection.request_id
        denied = rejection_workflow.deny(
            requested_job, request_id=request_id, actor_id="bob", reason="no"
        ).job

        result = rejection_workflow.approve(
            denied, request_id=request_id, actor_id="alice", expected_version=1
        )
        assert result.changed is False
        assert result.job is denied
        assert result.entries == ()

    def test_unknown_request(self, rejection_workflow, requested_job):
        with pytest.raises(InvalidTransitionError):
            rejection_workflow.approve(requested_job, request_id=uuid4(), actor_id="alice")


# =========================================================================
# Autoclose sweep
# =========================================================================


class TestSweepExpired:

    def test_expired_request_auto_approved(self, rejection_workflow, requested_job, clock):
        clock.advance(25 * HOUR)
        sweep = rejection_workflow.sweep_expired([requested_job])

        (job,) = sweep.jobs
        assert job.status == JobStatus.REJECTED
        (request,) = sweep.resolved
        assert request.resolution == RejectionResolution.APPROVED
        assert request.auto_closed is True
        assert request.resolved_by == "system"
        assert request.resolved_at == clock.now()
        assert [e.event for e in sweep.results[0].entries] == [
            TimelineEvent.REJECTION_AUTO_APPROVED,
            TimelineEvent.JOB_REJECTED,
        ]

    def test_deadline_already_passed(self, rejection_workflow, in_progress_job, clock):
        job = rejection_workflow.request(
            in_progress_job,
            actor_id=ASSIGNEE,
            reason="client cancelled",
            auto_close_at=clock.now() - timedelta(minutes=1),
        ).job

        sweep = rejection_workflow.sweep_expired([job])

        (rejected,) = sweep.jobs
        assert rejected.status == JobStatus.REJECTED
        assert sweep.resolved[0].resolved_by == "system"
        assert sweep.resolved[0].auto_closed is True

    def test_sweep_is_idempotent(self, rejection_workflow, requested_job, clock):
        clock.advance(25 * HOUR)
        first = rejection_workflow.sweep_expired([requested_job])
        second = rejection_workflow.sweep_expired(first.jobs)
        assert second.resolved == ()
        assert second.jobs == ()

    def test_not_yet_expired(self, rejection_workflow, requested_job, clock):
        clock.advance(23 * HOUR)
        assert rejection_workflow.sweep_expired([requested_job]).resolved == ()

    def test_explicit_now(self, rejection_workflow, requested_job, clock):
        later = clock.now() + timedelta(days=2)
        sweep = rejection_workflow.sweep_expired([requested_job], now=later)
        assert sweep.resolved[0].resolved_at == later

    def test_human_resolution_wins(self, rejection_workflow, requested_job, clock):
        denied = rejection_workflow.deny(
            requested_job,
            request_id=requested_job.pending_rejection.request_id,
            actor_id="bob",
            reason="no",
        ).job
        clock.advance(25 * HOUR)
        assert rejection_workflow.sweep_expired([denied]).resolved == ()

    def test_custom_system_actor(self, machine, clock, in_progress_job):
        workflow = RejectionWorkflow(machine, clock, system_actor_id="autoclose-bot")
        job = workflow.request(in_progress_job, actor_id=ASSIGNEE, reason="x").job
        clock.advance(25 * HOUR)
        assert workflow.sweep_expired([job]).resolved[0].resolved_by == "autoclose-bot"

    def test_bad_record_skipped(self, rejection_workflow, requested_job, clock, captured_logs):
        closed = replace(requested_job, status=JobStatus.CLOSED)
        clock.advance(25 * HOUR)
        sweep = rejection_workflow.sweep_expired([closed, requested_job])

        assert len(sweep.resolved) == 1
        assert sweep.jobs[0].job_id == requested_job.job_id
        messages = [r["message"] for r in captured_logs()]
        assert "autoclose_failed" in messages

    def test_naive_deadline_skipped(self, rejection_workflow, requested_job, clock, captured_logs):
        naive = replace(
            requested_job,
            rejection_requests=(
                replace(requested_job.pending_rejection, auto_close_at=datetime(2026, 1, 1)),
            ),
        )
        clock.advance(25 * HOUR)
        sweep = rejection_workflow.sweep_expired([naive, requested_job])

        assert len(sweep.resolved) == 1
        assert sweep.jobs[0].status == JobStatus.REJECTED
        (failure,) = [r for r in captured_logs() if r["message"] == "autoclose_failed"]
        assert failure["exc_code"] == "VALIDATION_ERROR"

    def test_sweep_logs_summary(self, rejection_workflow, requested_job, clock, captured_logs):
        clock.advance(25 * HOUR)
        rejection_workflow.sweep_expired([requested_job])
        (summary,) = [r for r in captured_logs() if r["message"] == "autoclose_sweep_completed"]
        assert summary["resolved_count"] == 1
