"""
jobflow_engines.tracer -- JOBFLOW_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and emits one DEBUG
    record per call carrying the engine name and version, a fingerprint
    of the selected keyword inputs, the duration and the outcome.

Architecture position:
    Engines -- support for the pure calculation layer.  Emitting a log
    record is the only side effect; results and exceptions pass through
    untouched.

Invariants enforced:
    - Fingerprints are deterministic: inputs are serialised as canonical
      JSON (sorted keys, sets sorted, dates as ISO strings, enums by
      value, dataclasses as field mappings) and hashed with SHA-256,
      truncated to 16 hex chars.  Identical SLA inputs, including the
      holiday set, always give the same fingerprint, so a disputed due
      date can be matched to the inputs that produced it.
    - A call that raises is still traced, with ``outcome="error"`` and
      the exception type, before the exception propagates.

Usage:
    @traced_engine("sla_window", "1.0", fingerprint_fields=("today", "holidays"))
    def compute_sla_window(*, today, job_type, priority, holidays=frozenset()):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import json
import logging
import time
from collections.abc import Callable
from datetime import date
from enum import Enum
from typing import Any, TypeVar

_logger = logging.getLogger("jobflow.engines.tracer")

F = TypeVar("F", bound=Callable[..., Any])


def _canonical(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(json.dumps(v, sort_keys=True, default=_canonical) for v in value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    return str(value)


def input_fingerprint(fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """16-char fingerprint of ``kwargs`` restricted to ``fields``.

    Fields missing from ``kwargs`` are fingerprinted as null.
    """
    selected = {name: kwargs.get(name) for name in fields}
    canonical = json.dumps(selected, sort_keys=True, default=_canonical)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable[[F], F]:
    """Decorate an engine function so each call emits JOBFLOW_ENGINE_TRACE."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            trace: dict[str, Any] = {
                "trace_type": "JOBFLOW_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "function": func.__qualname__,
            }
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace.update(outcome="error", error_type=type(exc).__name__)
                raise
            else:
                trace["outcome"] = "ok"
                return result
            finally:
                trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
                _logger.debug("JOBFLOW_ENGINE_TRACE", extra=trace)

        return wrapper  # type: ignore[return-value]

    return decorator
