"""
Config -> Kernel Bridges.

Functions that convert WorkflowConfigurationSet artifacts into the
inputs the engines and services take.  These live in jobflow_config
(the producer) because the kernel must NEVER import jobflow_config.

Usage:
    from jobflow_config.bridges import ConfiguredApprovalFlows, holiday_set

    config = get_active_config()
    machine = JobStateMachine(ConfiguredApprovalFlows(config), clock)
    result = machine.create_job(..., holidays=holiday_set(config))
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from jobflow_config.schema import (
    WILDCARD_SCOPE,
    ApprovalFlowDef,
    WorkflowConfigurationSet,
)
from jobflow_kernel.domain.approval import (
    ApprovalChainSnapshot,
    ApprovalLevel,
    SatisfactionRule,
)
from jobflow_kernel.domain.job import JobType
from jobflow_kernel.exceptions import ConfigurationError


def holiday_set(config: WorkflowConfigurationSet) -> frozenset[date]:
    return frozenset(h.date for h in config.holidays)


def job_type_for(config: WorkflowConfigurationSet, code: str) -> JobType:
    """Resolve a job type by code.

    Raises:
        ConfigurationError: no job type with that code is configured.
    """
    for job_type in config.job_types:
        if job_type.code == code:
            return JobType(
                code=job_type.code,
                name=job_type.name,
                sla_working_days=job_type.sla_working_days,
            )
    raise ConfigurationError(f"Unknown job type '{code}'", subject=code)


def chain_snapshot_for(flow: ApprovalFlowDef) -> ApprovalChainSnapshot:
    """Copy a configured flow into an immutable chain snapshot.

    Raises:
        ConfigurationError: a level has no approvers or ordinals have gaps.
    """
    levels = tuple(
        ApprovalLevel(
            ordinal=level.level,
            approvers=frozenset(level.approvers),
            rule=SatisfactionRule(level.logic),
        )
        for level in sorted(flow.levels, key=lambda lvl: lvl.level)
    )
    return ApprovalChainSnapshot(
        levels=levels,
        default_assignee=flow.default_assignee,
        source_scope=flow.scope,
    )


def autoclose_delay(config: WorkflowConfigurationSet) -> timedelta | None:
    """Default rejection-request deadline; None when disabled."""
    hours = config.settings.rejection_autoclose_hours
    return timedelta(hours=hours) if hours is not None else None


def rejection_workflow_options(config: WorkflowConfigurationSet) -> dict[str, Any]:
    """Keyword arguments for ``RejectionWorkflow(machine, clock, **options)``."""
    return {
        "default_auto_close": autoclose_delay(config),
        "system_actor_id": config.settings.system_actor_id,
    }


def retry_attempts(config: WorkflowConfigurationSet) -> int:
    """``max_attempts`` for ``apply_with_retry``."""
    return config.settings.max_concurrency_retries


def sweep_interval(config: WorkflowConfigurationSet) -> timedelta:
    """How often the caller should run ``RejectionWorkflow.sweep_expired``."""
    return timedelta(minutes=config.settings.sweep_interval_minutes)


class ConfiguredApprovalFlows:
    """ApprovalFlowProvider backed by a configuration set.

    An exact scope match wins; otherwise a ``"*"`` flow applies to every
    project.  Each call returns a fresh snapshot, so later configuration
    changes never reach jobs that already snapshotted their chain.
    """

    def __init__(self, config: WorkflowConfigurationSet) -> None:
        self._flows = {flow.scope: flow for flow in config.approval_flows}

    def chain_for(self, project_id: str) -> ApprovalChainSnapshot:
        flow = self._flows.get(project_id) or self._flows.get(WILDCARD_SCOPE)
        if flow is None:
            raise ConfigurationError(
                f"No approval flow configured for project '{project_id}'",
                subject=project_id,
            )
        return chain_snapshot_for(flow)
