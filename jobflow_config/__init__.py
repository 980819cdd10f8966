"""
jobflow_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a validated
    ``WorkflowConfigurationSet``: holidays, job types and their SLAs,
    approval flows per project scope, and engine settings.

Architecture position:
    Configuration -- YAML-driven, load-time validation.
    The kernel and engines MUST NEVER import from ``jobflow_config``;
    bridges in this package translate the configuration into kernel
    inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: a configuration with validation errors is
      never returned.
    - Deterministic identity: the same document always produces the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- the document fails to parse or validate.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``JOBFLOW_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and item counts.
"""

from __future__ import annotations

from pathlib import Path

from jobflow_config.loader import load_yaml_file, parse_configuration_set
from jobflow_config.schema import WorkflowConfigurationSet
from jobflow_config.validator import validate_configuration
from jobflow_kernel.exceptions import ConfigurationError
from jobflow_kernel.logging_config import get_logger

_logger = get_logger("config")

# Bundled sample configuration
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> WorkflowConfigurationSet:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration document to load.  Defaults to the bundled
            ``jobflow_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the document fails to parse or validate;
            the message lists every validation error.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(config_path)

    try:
        config = parse_configuration_set(data)
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(
            f"Cannot parse configuration {config_path}: {exc}",
            subject=str(config_path),
        ) from exc

    validation = validate_configuration(config)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"detail": warning})
    if not validation.is_valid:
        raise ConfigurationError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors),
            subject=config.config_id,
        )

    _logger.info(
        "JOBFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "JOBFLOW_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "holiday_count": len(config.holidays),
            "job_type_count": len(config.job_types),
            "approval_flow_count": len(config.approval_flows),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "WorkflowConfigurationSet",
    "get_active_config",
]
