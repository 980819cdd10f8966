"""
jobflow_services.retry -- Reload-and-retry on version conflicts.

Responsibility:
    Runs a job operation against a freshly loaded record and saves the
    result with a compare-and-swap on ``version``.  When another writer
    got there first, reloads and runs the operation again.

Architecture position:
    Services layer, integration seam.  The ``JobStore`` port is
    implemented by whatever persistence the host application uses.

Invariants enforced:
    - A result is saved only when it changed the record.
    - The operation always sees the latest committed record, so a
      rejection request resolved by a human between attempts turns the
      autoclose retry into a no-op.
    - MAX_ATTEMPTS caps the loop; exhausting it raises
      RetryExhaustedError.

Usage:
    result = apply_with_retry(
        store,
        job_id,
        lambda job: machine.apply(job, JobCommand(JobAction.START, "bob")),
    )
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable
from uuid import UUID

from jobflow_kernel.domain.job import Job
from jobflow_kernel.exceptions import ConcurrentModificationError, RetryExhaustedError
from jobflow_kernel.logging_config import get_logger
from jobflow_services.job_state_machine import ActionResult

logger = get_logger("services.retry")

MAX_ATTEMPTS = 3


@runtime_checkable
class JobStore(Protocol):
    """Persistence port for job records."""

    def load(self, job_id: UUID) -> Job:
        ...

    def save(self, job: Job, expected_version: int) -> None:
        """Store ``job`` if the stored version still equals ``expected_version``.

        Raises ConcurrentModificationError otherwise.
        """
        ...


def apply_with_retry(
    store: JobStore,
    job_id: UUID,
    operation: Callable[[Job], ActionResult],
    *,
    max_attempts: int = MAX_ATTEMPTS,
) -> ActionResult:
    """Load, apply ``operation`` and save, retrying on version conflicts.

    Raises:
        RetryExhaustedError: every attempt hit a conflict.
        Any error the operation raises other than a version conflict.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        job = store.load(job_id)
        try:
            result = operation(job)
            if result.changed:
                store.save(result.job, expected_version=job.version)
            return result
        except ConcurrentModificationError as exc:
            logger.info(
                "concurrent_modification_retry",
                extra={
                    "job_id": str(job_id),
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "expected_version": exc.expected_version,
                    "actual_version": exc.actual_version,
                },
            )

    logger.error(
        "retry_exhausted",
        extra={"job_id": str(job_id), "attempts": max_attempts},
    )
    raise RetryExhaustedError(str(job_id), max_attempts)
