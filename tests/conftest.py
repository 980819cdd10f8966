"""
Pytest fixtures for the jobflow test suite.

Provides:
- Structured logging setup and a ``captured_logs`` helper
- A deterministic clock pinned to Monday 2026-01-05 09:00 UTC
- Job type, approval chain and state machine factories
"""

import json
import logging
from datetime import UTC, datetime
from io import StringIO

import pytest

from jobflow_kernel.domain.approval import (
    ApprovalChainSnapshot,
    ApprovalLevel,
    SatisfactionRule,
)
from jobflow_kernel.domain.clock import DeterministicClock
from jobflow_kernel.domain.job import JobType, Priority
from jobflow_kernel.exceptions import ConfigurationError
from jobflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from jobflow_services.job_state_machine import JobStateMachine
from jobflow_services.rejection_workflow import RejectionWorkflow

MONDAY = datetime(2026, 1, 5, 9, 0, 0, tzinfo=UTC)

REQUESTER = "requester"
ASSIGNEE = "designer"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture jobflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, machine):
            machine.apply(...)
            logs = captured_logs()
            assert any(r["message"] == "job_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("jobflow")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain factories
# =============================================================================


class StaticApprovalFlows:
    """In-memory ApprovalFlowProvider keyed by project id."""

    def __init__(self, chains: dict[str, ApprovalChainSnapshot] | None = None):
        self.chains = dict(chains or {})
        self.lookups: list[str] = []

    def chain_for(self, project_id: str) -> ApprovalChainSnapshot:
        self.lookups.append(project_id)
        try:
            return self.chains[project_id]
        except KeyError:
            raise ConfigurationError(
                f"No approval flow configured for project '{project_id}'",
                subject=project_id,
            ) from None


def make_chain(
    *levels: tuple[str, set[str]],
    default_assignee: str | None = ASSIGNEE,
) -> ApprovalChainSnapshot:
    """Build a chain from ``("any"|"all", {approvers})`` pairs."""
    return ApprovalChainSnapshot(
        levels=tuple(
            ApprovalLevel(
                ordinal=i,
                approvers=frozenset(approvers),
                rule=SatisfactionRule(rule),
            )
            for i, (rule, approvers) in enumerate(levels, start=1)
        ),
        default_assignee=default_assignee,
    )


@pytest.fixture
def chain_factory():
    return make_chain


@pytest.fixture
def flows_factory():
    return StaticApprovalFlows


@pytest.fixture
def clock():
    return DeterministicClock(MONDAY)


@pytest.fixture
def banner_type():
    return JobType(code="banner", name="Web banner", sla_working_days=2)


@pytest.fixture
def flows():
    return StaticApprovalFlows({
        "single-any": make_chain(("any", {"alice", "bob"})),
        "two-level": make_chain(("any", {"alice", "bob"}), ("all", {"carol", "dave"})),
        "single-all": make_chain(("all", {"carol", "dave"}), default_assignee=None),
        "no-levels": make_chain(default_assignee=None),
    })


@pytest.fixture
def machine(flows, clock):
    return JobStateMachine(flows, clock)


@pytest.fixture
def rejection_workflow(machine, clock):
    return RejectionWorkflow(machine, clock)


@pytest.fixture
def draft_job(machine, banner_type):
    """Factory for draft jobs created by REQUESTER."""

    def _make(project_id: str = "single-any", priority: Priority = Priority.NORMAL, **kwargs):
        return machine.create_job(
            reference=kwargs.pop("reference", "JOB-0001"),
            project_id=project_id,
            requester_id=REQUESTER,
            job_type=kwargs.pop("job_type", banner_type),
            priority=priority,
            **kwargs,
        ).job

    return _make
