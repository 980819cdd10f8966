"""
Tests for the job domain value objects and transition table.

Tests cover:
- JOB_TRANSITIONS: legal actions per status, terminal statuses
- Job derived properties: current_approver_set, pending_rejection, job_approvers
- RejectionRequest: expiry and resolution table
"""

from dataclasses import FrozenInstanceError, replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from jobflow_kernel.domain.approval import (
    ApprovalChainSnapshot,
    ApprovalLevel,
    SatisfactionRule,
)
from jobflow_kernel.domain.job import (
    JOB_TRANSITIONS,
    REJECTION_REQUEST_STATUSES,
    TERMINAL_JOB_STATUSES,
    Job,
    JobAction,
    JobStatus,
    JobType,
    allowed_targets,
)
from jobflow_kernel.domain.rejection import (
    REJECTION_TRANSITIONS,
    RejectionRequest,
    RejectionResolution,
)
from jobflow_kernel.exceptions import ValidationError

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def make_job(**overrides) -> Job:
    base = Job(
        job_id=uuid4(),
        reference="JOB-1",
        project_id="p",
        requester_id="req",
        job_type=JobType(code="banner", name="Banner", sla_working_days=2),
    )
    return replace(base, **overrides)


def make_request(**overrides) -> RejectionRequest:
    base = RejectionRequest(
        request_id=uuid4(),
        reason="client cancelled",
        requested_by="designer",
        created_at=NOW,
        auto_close_at=NOW + timedelta(hours=24),
    )
    return replace(base, **overrides)


CHAIN = ApprovalChainSnapshot(
    levels=(
        ApprovalLevel(ordinal=1, approvers=frozenset({"alice", "bob"})),
        ApprovalLevel(ordinal=2, approvers=frozenset({"carol"}), rule=SatisfactionRule.ALL),
    ),
)


# =========================================================================
# Transition table
# =========================================================================


class TestTransitionTable:

    def test_terminal_statuses_have_no_outgoing_actions(self):
        for (status, _action) in JOB_TRANSITIONS:
            assert status not in TERMINAL_JOB_STATUSES

    @pytest.mark.parametrize("status", [JobStatus.DRAFT, JobStatus.RETURNED])
    def test_submit_from_draft_or_returned(self, status):
        assert JobStatus.PENDING_APPROVAL in allowed_targets(status, JobAction.SUBMIT)

    def test_approve_only_from_pending_approval(self):
        sources = {s for (s, a) in JOB_TRANSITIONS if a == JobAction.APPROVE}
        assert sources == {JobStatus.PENDING_APPROVAL}

    def test_request_revision_returns_to_in_progress(self):
        assert allowed_targets(JobStatus.PENDING_CLOSE, JobAction.REQUEST_REVISION) == frozenset(
            {JobStatus.IN_PROGRESS}
        )

    def test_start_allowed_from_approved_and_assigned(self):
        assert allowed_targets(JobStatus.APPROVED, JobAction.START)
        assert allowed_targets(JobStatus.ASSIGNED, JobAction.START)

    def test_unknown_pair_has_no_targets(self):
        assert allowed_targets(JobStatus.CLOSED, JobAction.START) == frozenset()

    def test_rejection_acceptance_only_mid_flight(self):
        sources = {s for (s, a) in JOB_TRANSITIONS if a == JobAction.ACCEPT_REJECTION_REQUEST}
        assert sources == {JobStatus.IN_PROGRESS, JobStatus.APPROVED, JobStatus.ASSIGNED}

    def test_rejection_request_statuses_match_acceptance_sources(self):
        sources = {s for (s, a) in JOB_TRANSITIONS if a == JobAction.ACCEPT_REJECTION_REQUEST}
        assert REJECTION_REQUEST_STATUSES == sources


# =========================================================================
# Job derived properties
# =========================================================================


class TestJob:

    def test_is_frozen(self):
        job = make_job()
        with pytest.raises(FrozenInstanceError):
            job.status = JobStatus.CLOSED

    def test_defaults(self):
        job = make_job()
        assert job.status == JobStatus.DRAFT
        assert job.current_level == 0
        assert job.version == 1
        assert job.is_terminal is False

    def test_current_approver_set_only_while_pending(self):
        job = make_job(chain=CHAIN, status=JobStatus.PENDING_APPROVAL, current_level=2)
        assert job.current_approver_set == frozenset({"carol"})

        approved = replace(job, status=JobStatus.APPROVED, current_level=3)
        assert approved.current_approver_set == frozenset()

    def test_job_approvers_union_of_levels(self):
        job = make_job(chain=CHAIN)
        assert job.job_approvers() == frozenset({"alice", "bob", "carol"})

    def test_job_approvers_falls_back_to_requester(self):
        assert make_job().job_approvers() == frozenset({"req"})
        assert make_job(chain=ApprovalChainSnapshot()).job_approvers() == frozenset({"req"})

    def test_pending_rejection_ignores_resolved(self):
        resolved = make_request(resolution=RejectionResolution.DENIED)
        pending = make_request()
        job = make_job(rejection_requests=(resolved, pending))
        assert job.pending_rejection == pending

        none_pending = make_job(rejection_requests=(resolved,))
        assert none_pending.pending_rejection is None


# =========================================================================
# Rejection requests
# =========================================================================


class TestRejectionRequest:

    def test_expired_at_deadline(self):
        request = make_request()
        assert request.is_expired(NOW + timedelta(hours=24)) is True
        assert request.is_expired(NOW + timedelta(hours=23)) is False

    def test_without_deadline_never_expires(self):
        request = make_request(auto_close_at=None)
        assert request.is_expired(NOW + timedelta(days=365)) is False

    def test_resolved_request_never_expires(self):
        request = make_request(resolution=RejectionResolution.APPROVED)
        assert request.is_expired(NOW + timedelta(days=2)) is False

    def test_naive_deadline_refused(self):
        request = make_request(auto_close_at=datetime(2026, 1, 1))
        with pytest.raises(ValidationError) as exc_info:
            request.is_expired(NOW)
        assert exc_info.value.field == "auto_close_at"

    def test_resolved_states_are_final(self):
        assert REJECTION_TRANSITIONS[RejectionResolution.APPROVED] == frozenset()
        assert REJECTION_TRANSITIONS[RejectionResolution.DENIED] == frozenset()
        assert REJECTION_TRANSITIONS[RejectionResolution.PENDING] == frozenset(
            {RejectionResolution.APPROVED, RejectionResolution.DENIED}
        )
