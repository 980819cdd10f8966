"""
Configuration Validator (``jobflow_config.validator``).

Responsibility
--------------
Validates a ``WorkflowConfigurationSet`` before it is handed to the
services, so a bad SLA or a malformed approval flow fails at load time
instead of on the first submit.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``jobflow_config.get_active_config``.  No dependency on kernel,
engines, or services.

Invariants enforced
-------------------
* Job-type codes are unique and SLAs are non-negative.
* Flow scopes are unique.
* Level ordinals are 1-based and contiguous; each level has at least
  one approver and logic ``any`` or ``all``.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> configuration
  MUST NOT be used.
* Validation warnings (``ConfigValidationResult.warnings``)  ->
  configuration is usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from jobflow_config.schema import WorkflowConfigurationSet

_VALID_LOGIC = frozenset({"any", "all"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block loading but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: WorkflowConfigurationSet) -> ConfigValidationResult:
    """
    Validate a configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
        - A configuration with errors MUST NOT be used.
    """
    result = ConfigValidationResult()

    _validate_job_types(config, result)
    _validate_approval_flows(config, result)
    _validate_holidays(config, result)
    _validate_settings(config, result)

    return result


def _validate_job_types(
    config: WorkflowConfigurationSet, result: ConfigValidationResult
) -> None:
    seen: set[str] = set()
    for job_type in config.job_types:
        if job_type.code in seen:
            result.add_error(f"Duplicate job type: {job_type.code} appears more than once")
        seen.add(job_type.code)
        if job_type.sla_working_days < 0:
            result.add_error(
                f"Job type '{job_type.code}' has negative SLA {job_type.sla_working_days}"
            )


def _validate_approval_flows(
    config: WorkflowConfigurationSet, result: ConfigValidationResult
) -> None:
    seen: set[str] = set()
    for flow in config.approval_flows:
        if flow.scope in seen:
            result.add_error(f"Duplicate approval flow scope: {flow.scope}")
        seen.add(flow.scope)

        ordinals = sorted(level.level for level in flow.levels)
        if ordinals != list(range(1, len(ordinals) + 1)):
            result.add_error(
                f"Flow '{flow.scope}' level ordinals {ordinals} are not contiguous from 1"
            )

        for level in flow.levels:
            if not level.approvers:
                result.add_error(f"Flow '{flow.scope}' level {level.level} has no approvers")
            if level.logic not in _VALID_LOGIC:
                result.add_error(
                    f"Flow '{flow.scope}' level {level.level} has unknown logic "
                    f"'{level.logic}' (expected any or all)"
                )


def _validate_holidays(
    config: WorkflowConfigurationSet, result: ConfigValidationResult
) -> None:
    """Weekend or repeated holidays are harmless but usually a typo."""
    seen: set = set()
    for holiday in config.holidays:
        if holiday.date in seen:
            result.add_warning(f"Holiday {holiday.date.isoformat()} listed more than once")
        seen.add(holiday.date)
        if holiday.date.weekday() >= 5:
            result.add_warning(
                f"Holiday {holiday.date.isoformat()} ({holiday.name}) falls on a weekend"
            )


def _validate_settings(
    config: WorkflowConfigurationSet, result: ConfigValidationResult
) -> None:
    settings = config.settings
    hours = settings.rejection_autoclose_hours
    if hours is not None and (isinstance(hours, bool) or not isinstance(hours, int) or hours <= 0):
        result.add_error(
            f"rejection_autoclose_hours must be a positive integer or null, got {hours!r}"
        )
    if settings.sweep_interval_minutes < 1:
        result.add_error(
            f"sweep_interval_minutes must be at least 1, got {settings.sweep_interval_minutes}"
        )
    if settings.max_concurrency_retries < 1:
        result.add_error(
            f"max_concurrency_retries must be at least 1, got {settings.max_concurrency_retries}"
        )
