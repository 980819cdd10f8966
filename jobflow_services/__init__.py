"""
jobflow_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure engines
    (jobflow_engines/) with the injected clock and the approval-flow
    provider.  This is the only layer that reads the clock.

Architecture position:
    Services -- orchestration over engines + kernel.

    Dependency direction:
        jobflow_services/ -> jobflow_engines/  (allowed)
        jobflow_services/ -> jobflow_kernel/   (allowed)
        jobflow_engines/  -> jobflow_services/ (FORBIDDEN)
        jobflow_kernel/   -> jobflow_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from jobflow_services.job_state_machine import (
    ActionResult,
    ApprovalFlowProvider,
    JobCommand,
    JobStateMachine,
)
from jobflow_services.rejection_workflow import RejectionWorkflow, SweepResult
from jobflow_services.retry import JobStore, apply_with_retry

__all__ = [
    "ActionResult",
    "ApprovalFlowProvider",
    "JobCommand",
    "JobStateMachine",
    "RejectionWorkflow",
    "SweepResult",
    "JobStore",
    "apply_with_retry",
]
