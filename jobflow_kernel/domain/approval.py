"""
Approval chain domain types (``jobflow_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for multi-level approval: the satisfaction rule of
a level, the level itself, the chain snapshot attached to a job at
submission, and the record of a single approver decision.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only ``jobflow_kernel.exceptions``.

Invariants enforced
-------------------
* Level ordinals are 1-based, strictly increasing and contiguous.
* Every level names at least one eligible approver.
* A chain with zero levels is legal and is satisfied on submission.
* Snapshots are frozen: later configuration edits never reach a job
  that already carries a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from jobflow_kernel.exceptions import ConfigurationError


class SatisfactionRule(str, Enum):
    """How many eligible approvers must approve before a level completes."""

    ALL = "all"
    ANY = "any"


class ApprovalDecision(str, Enum):
    """Decisions an eligible approver can record at a level."""

    APPROVE = "approve"
    RETURN = "return"
    REJECT = "reject"


@dataclass(frozen=True)
class ApprovalLevel:
    """One ordinal step of an approval chain."""

    ordinal: int
    approvers: frozenset[str]
    rule: SatisfactionRule = SatisfactionRule.ANY

    def __post_init__(self) -> None:
        if not self.approvers:
            raise ConfigurationError(
                f"Approval level {self.ordinal} has no eligible approvers",
                subject=f"level:{self.ordinal}",
            )

    def is_eligible(self, actor_id: str) -> bool:
        return actor_id in self.approvers


@dataclass(frozen=True)
class ApprovalChainSnapshot:
    """Immutable copy of a project's approval configuration.

    Copied into the job at submission time.  ``default_assignee`` is the
    actor the job is handed to once every level is satisfied.
    """

    levels: tuple[ApprovalLevel, ...] = ()
    default_assignee: str | None = None
    source_scope: str | None = None

    def __post_init__(self) -> None:
        for expected, level in enumerate(self.levels, start=1):
            if level.ordinal != expected:
                raise ConfigurationError(
                    "Approval level ordinals must be contiguous from 1; "
                    f"expected {expected}, got {level.ordinal}",
                    subject=self.source_scope,
                )

    @property
    def is_empty(self) -> bool:
        return not self.levels

    @property
    def last_ordinal(self) -> int:
        return len(self.levels)

    def level(self, ordinal: int) -> ApprovalLevel | None:
        """Return the level with ``ordinal`` or None when out of range."""
        if 1 <= ordinal <= len(self.levels):
            return self.levels[ordinal - 1]
        return None

    def all_approvers(self) -> frozenset[str]:
        """Every actor named on any level of the chain."""
        names: set[str] = set()
        for level in self.levels:
            names.update(level.approvers)
        return frozenset(names)


@dataclass(frozen=True)
class ApprovalActionRecord:
    """Record of a single approver decision at one level. Immutable."""

    actor_id: str
    level: int
    decision: ApprovalDecision
    acted_at: datetime
    comment: str = ""


@dataclass(frozen=True)
class LevelEvaluation:
    """Result of evaluating the actions recorded at one level."""

    satisfied: bool
    short_circuited: bool = False
    approvals: int = 0
    required: int = 0
    outstanding: frozenset[str] = frozenset()
    reason: str = ""
