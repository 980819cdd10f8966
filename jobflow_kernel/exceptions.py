"""
Typed Exception Hierarchy for the Jobflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The portal that embeds this engine renders refusals as plain messages,
retries stale writes silently, and alerts on configuration problems.
It can only do that if errors are distinguishable by TYPE, not by
message text:
  1. Every error has a typed exception class (catch by type)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        machine.apply(job, command)
    except Exception as e:
        if "not allowed" in str(e):  # FRAGILE - message might change
            show_refusal()

Example - RIGHT way:
    try:
        machine.apply(job, command)
    except InvalidTransitionError as e:
        flash(f"Cannot {e.action} a job that is {e.state}")
    except ConcurrentModificationError:
        reload_and_retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    JobflowError (base)
    |
    +-- ConfigurationError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   |   +-- DuplicateApprovalError
    |   +-- UnauthorizedActorError
    |   +-- ValidationError
    |
    +-- ConcurrencyError
        +-- ConcurrentModificationError
        +-- RetryExhaustedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                     | When Raised
--------------|--------------------------|-------------------------------------------
Configuration | CONFIGURATION_ERROR      | Missing job type, negative SLA, bad chain
--------------|--------------------------|-------------------------------------------
Workflow      | INVALID_TRANSITION       | Action not legal from the current state
              | DUPLICATE_APPROVAL       | Same approver acting twice at one level
              | UNAUTHORIZED_ACTOR       | Actor not eligible for the action
              | VALIDATION_ERROR         | Missing reason/comment, bad due date
--------------|--------------------------|-------------------------------------------
Concurrency   | CONCURRENT_MODIFICATION  | Stale job version handed to the engine
              | RETRY_EXHAUSTED          | Reload-and-retry gave up

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ConfigurationError is fatal for the request: no job may be created or
   submitted with an unresolved due date or approval chain.

2. InvalidTransitionError, UnauthorizedActorError and ValidationError
   render as a plain refusal (never a stack trace).

3. ConcurrentModificationError triggers a silent reload-and-retry at
   the integration layer (see ``jobflow_services.retry``); only
   RetryExhaustedError reaches the user.
"""


class JobflowError(Exception):
    """
    Base exception for all jobflow errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "JOBFLOW_ERROR"


# Configuration exceptions


class ConfigurationError(JobflowError):
    """Bad or missing configuration (SLA, job type, approval chain)."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, subject: str | None = None):
        self.subject = subject
        super().__init__(message)


# Workflow exceptions


class WorkflowError(JobflowError):
    """Base exception for refused workflow actions."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Action is not legal from the job's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, state: str, action: str, reason: str | None = None):
        self.state = state
        self.action = action
        self.reason = reason
        message = f"Action '{action}' is not allowed in state '{state}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DuplicateApprovalError(InvalidTransitionError):
    """An approver already recorded a decision at the current level."""

    code: str = "DUPLICATE_APPROVAL"

    def __init__(self, state: str, action: str, actor_id: str, level: int):
        self.actor_id = actor_id
        self.level = level
        super().__init__(
            state,
            action,
            f"actor {actor_id} already acted at level {level}",
        )


class UnauthorizedActorError(WorkflowError):
    """Actor is not eligible to perform the action on this job."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not perform '{action}': {reason}"
        )


class ValidationError(WorkflowError):
    """Required input is missing or out of range."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


# Concurrency exceptions


class ConcurrencyError(JobflowError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """The job record handed to the engine is stale."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, job_id: str, expected_version: int, actual_version: int):
        self.job_id = job_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Job {job_id} was modified concurrently: expected version "
            f"{expected_version}, found {actual_version}"
        )


class RetryExhaustedError(ConcurrencyError):
    """Reload-and-retry gave up after repeated version conflicts."""

    code: str = "RETRY_EXHAUSTED"

    def __init__(self, job_id: str, attempts: int):
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            f"Job {job_id} still conflicting after {attempts} attempts"
        )
