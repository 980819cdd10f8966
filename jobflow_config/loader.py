"""
Configuration Loader (``jobflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into typed
``jobflow_config.schema`` dataclass instances.  Runtime callers go
through ``jobflow_config.get_active_config()`` rather than calling the
loader directly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on kernel,
engines, or services.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields (``code``,
  ``sla_working_days``, ``scope``, ``approvers``...).
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from jobflow_config.schema import (
    ApprovalFlowDef,
    ApprovalLevelDef,
    EngineSettingsDef,
    HolidayDef,
    JobTypeDef,
    WorkflowConfigurationSet,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string, date or datetime).

    PyYAML already turns unquoted ``2026-01-01`` into a ``date``; quoted
    values arrive as strings.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_holiday(data: Any) -> HolidayDef:
    """Parse a HolidayDef from a ``{date, name}`` mapping or a bare date."""
    if isinstance(data, dict):
        return HolidayDef(date=parse_date(data["date"]), name=data.get("name", ""))
    return HolidayDef(date=parse_date(data))


def parse_job_type(data: dict[str, Any]) -> JobTypeDef:
    """
    Parse a ``JobTypeDef`` from a dict.

    Raises:
        KeyError: if ``code`` or ``sla_working_days`` is missing.
        ValueError: if ``sla_working_days`` is not an integer.
    """
    sla = data["sla_working_days"]
    if isinstance(sla, bool) or not isinstance(sla, int):
        raise ValueError(
            f"Job type {data.get('code')!r}: sla_working_days must be an integer, got {sla!r}"
        )
    return JobTypeDef(
        code=str(data["code"]),
        name=data.get("name", str(data["code"])),
        sla_working_days=sla,
    )


def parse_approval_level(data: dict[str, Any]) -> ApprovalLevelDef:
    """Parse an ApprovalLevelDef from a dict."""
    return ApprovalLevelDef(
        level=int(data["level"]),
        logic=str(data.get("logic", "any")).lower(),
        approvers=tuple(str(a) for a in data.get("approvers") or ()),
    )


def parse_approval_flow(data: dict[str, Any]) -> ApprovalFlowDef:
    """
    Parse an ``ApprovalFlowDef`` from a dict.

    Levels are kept in file order; ordering and contiguity are the
    validator's concern.
    """
    return ApprovalFlowDef(
        scope=str(data["scope"]),
        levels=tuple(parse_approval_level(level) for level in data.get("levels") or ()),
        default_assignee=data.get("default_assignee"),
    )


def parse_settings(data: dict[str, Any] | None) -> EngineSettingsDef:
    """Parse EngineSettingsDef; absent keys keep their defaults."""
    if not data:
        return EngineSettingsDef()
    defaults = EngineSettingsDef()
    return EngineSettingsDef(
        rejection_autoclose_hours=data.get(
            "rejection_autoclose_hours", defaults.rejection_autoclose_hours
        ),
        sweep_interval_minutes=int(
            data.get("sweep_interval_minutes", defaults.sweep_interval_minutes)
        ),
        max_concurrency_retries=int(
            data.get("max_concurrency_retries", defaults.max_concurrency_retries)
        ),
        system_actor_id=str(data.get("system_actor_id", defaults.system_actor_id)),
    )


def parse_configuration_set(data: dict[str, Any]) -> WorkflowConfigurationSet:
    """
    Parse a full ``WorkflowConfigurationSet`` from a loaded document.

    Raises:
        KeyError: if ``config_id`` is missing.
    """
    return WorkflowConfigurationSet(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        settings=parse_settings(data.get("settings")),
        holidays=tuple(parse_holiday(h) for h in data.get("holidays") or ()),
        job_types=tuple(parse_job_type(t) for t in data.get("job_types") or ()),
        approval_flows=tuple(parse_approval_flow(f) for f in data.get("approval_flows") or ()),
        checksum=compute_checksum(data),
    )


def load_configuration_set(path: Path) -> WorkflowConfigurationSet:
    """Load and parse a configuration document from ``path``."""
    return parse_configuration_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
