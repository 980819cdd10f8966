"""
WorkflowConfigurationSet schema.

Defines the human-authored, reviewable source artifact for workflow
configuration: holidays, job types with their SLAs, approval flows per
project scope, and engine settings.  YAML is parsed into these types by
the loader, checked by the validator, and turned into kernel inputs by
the bridges.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

# Scope value that matches any project without a flow of its own.
WILDCARD_SCOPE = "*"


@dataclass(frozen=True)
class HolidayDef:
    """A non-working calendar date."""

    date: date
    name: str = ""


@dataclass(frozen=True)
class JobTypeDef:
    """A job type and its SLA in working days."""

    code: str
    name: str
    sla_working_days: int


@dataclass(frozen=True)
class ApprovalLevelDef:
    """One level of an approval flow."""

    level: int
    logic: str  # "any" or "all"
    approvers: tuple[str, ...]


@dataclass(frozen=True)
class ApprovalFlowDef:
    """The approval flow for one project scope."""

    scope: str
    levels: tuple[ApprovalLevelDef, ...] = ()
    default_assignee: str | None = None


@dataclass(frozen=True)
class EngineSettingsDef:
    """Runtime knobs for the services layer.

    ``rejection_autoclose_hours`` of None disables the default autoclose
    deadline for rejection requests.
    """

    rejection_autoclose_hours: int | None = 24
    sweep_interval_minutes: int = 60
    max_concurrency_retries: int = 3
    system_actor_id: str = "system"


@dataclass(frozen=True)
class WorkflowConfigurationSet:
    """Root configuration artifact, identified by ``config_id``/``version``.

    ``checksum`` is the SHA-256 of the canonical JSON of the source
    document (see ``loader.compute_checksum``).
    """

    config_id: str
    version: int
    settings: EngineSettingsDef = EngineSettingsDef()
    holidays: tuple[HolidayDef, ...] = ()
    job_types: tuple[JobTypeDef, ...] = ()
    approval_flows: tuple[ApprovalFlowDef, ...] = ()
    checksum: str = ""
