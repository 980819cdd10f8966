"""
jobflow_engines.approval_chain -- Pure approval-level evaluation.

Responsibility:
    Decide whether the actions recorded at a level satisfy that level's
    ALL/ANY rule, and move a job's level pointer forward when they do.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import jobflow_kernel/domain types.

Invariants enforced:
    - ANY: satisfied by the first approve from an eligible approver.
    - ALL: satisfied only once every eligible approver has approved.
    - A return or reject from any eligible approver short-circuits the
      level as not satisfied without waiting for the others.
    - ``current_level`` only ever moves forward here, one level per call.
      Past the last ordinal the chain is fully satisfied: the job becomes
      APPROVED, or ASSIGNED when the snapshot names a default assignee.
    - Actions by actors outside the level's eligible set, or recorded
      against another level, are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from jobflow_kernel.domain.approval import (
    ApprovalActionRecord,
    ApprovalChainSnapshot,
    ApprovalDecision,
    ApprovalLevel,
    LevelEvaluation,
    SatisfactionRule,
)
from jobflow_kernel.domain.job import Job, JobStatus


def evaluate_level(
    level: ApprovalLevel,
    actions: Iterable[ApprovalActionRecord],
) -> LevelEvaluation:
    """Evaluate the actions recorded against ``level``.

    Returns:
        LevelEvaluation with ``satisfied``/``short_circuited`` and the
        approvers still outstanding.
    """
    relevant = [
        a for a in actions
        if a.level == level.ordinal and level.is_eligible(a.actor_id)
    ]

    # A single return/reject decides the level.
    for action in relevant:
        if action.decision != ApprovalDecision.APPROVE:
            return LevelEvaluation(
                satisfied=False,
                short_circuited=True,
                reason=f"{action.decision.value} by {action.actor_id}",
            )

    approved_by = frozenset(a.actor_id for a in relevant)
    outstanding = level.approvers - approved_by

    if level.rule == SatisfactionRule.ANY:
        required = 1
        satisfied = len(approved_by) >= 1
    else:
        required = len(level.approvers)
        satisfied = not outstanding

    return LevelEvaluation(
        satisfied=satisfied,
        approvals=len(approved_by),
        required=required,
        outstanding=frozenset() if satisfied else outstanding,
        reason="Satisfied" if satisfied else f"{len(approved_by)}/{required} approvals",
    )


def is_level_satisfied(
    level: ApprovalLevel,
    actions: Iterable[ApprovalActionRecord],
) -> bool:
    return evaluate_level(level, actions).satisfied


def begin_approval_cycle(job: Job, chain: ApprovalChainSnapshot) -> Job:
    """Attach ``chain`` and restart approval from level 1.

    Partial approvals from any previous cycle are discarded.  A chain
    with zero levels is satisfied at once.
    """
    started = replace(
        job,
        chain=chain,
        status=JobStatus.PENDING_APPROVAL,
        current_level=1,
        level_actions=(),
    )
    return advance_if_ready(started)


def advance_if_ready(job: Job) -> Job:
    """Advance the level pointer when the current level is satisfied.

    Returns the job unchanged when it is not awaiting approval or the
    current level still has outstanding approvers.
    """
    if job.status != JobStatus.PENDING_APPROVAL or job.chain is None:
        return job

    chain = job.chain
    level = chain.level(job.current_level)
    if level is not None:
        if not is_level_satisfied(level, job.level_actions):
            return job
        next_level = job.current_level + 1
    else:
        next_level = job.current_level

    if next_level <= chain.last_ordinal:
        return replace(job, current_level=next_level)

    if chain.default_assignee is not None:
        return replace(
            job,
            current_level=chain.last_ordinal + 1,
            status=JobStatus.ASSIGNED,
            assignee_id=chain.default_assignee,
        )
    return replace(
        job,
        current_level=chain.last_ordinal + 1,
        status=JobStatus.APPROVED,
    )
