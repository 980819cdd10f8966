"""
Rejection request domain types (``jobflow_kernel.domain.rejection``).

Responsibility
--------------
Value objects for the nested workflow in which an assignee asks to
abandon a job mid-flight.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``REJECTION_TRANSITIONS`` defines the only valid resolution changes;
  resolved requests have no outgoing edges and are immutable history.
* ``reason`` is non-empty (enforced by the workflow service).
* ``auto_close_at`` is timezone-aware; ``is_expired`` refuses naive values.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from jobflow_kernel.exceptions import ValidationError


class RejectionResolution(str, Enum):
    """Resolution state of a rejection request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


REJECTION_TRANSITIONS: dict[RejectionResolution, frozenset[RejectionResolution]] = {
    RejectionResolution.PENDING: frozenset({
        RejectionResolution.APPROVED,
        RejectionResolution.DENIED,
    }),
    RejectionResolution.APPROVED: frozenset(),
    RejectionResolution.DENIED: frozenset(),
}


@dataclass(frozen=True)
class RejectionRequest:
    """An assignee's request to abandon a job.

    ``auto_closed`` is True only when the autoclose sweep resolved it;
    ``resolved_by`` is then the configured system actor.
    """

    request_id: UUID
    reason: str
    requested_by: str
    created_at: datetime
    auto_close_at: datetime | None = None
    resolution: RejectionResolution = RejectionResolution.PENDING
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    resolution_note: str = ""
    auto_closed: bool = False

    @property
    def is_pending(self) -> bool:
        return self.resolution == RejectionResolution.PENDING

    def is_expired(self, now: datetime) -> bool:
        """True when pending and the autoclose deadline has passed.

        A deadline without a timezone cannot be compared and is refused.
        """
        if not self.is_pending or self.auto_close_at is None:
            return False
        if self.auto_close_at.tzinfo is None:
            raise ValidationError("auto_close_at", "deadline must be timezone-aware")
        return self.auto_close_at <= now
