"""
Approval Workflow

Finite-state machine for a plan's review lifecycle:

    pending            -> approved | rejected | revision_requested
    revision_requested -> approved | rejected | revision_requested
    approved, rejected -> (none)

Every review is validated against TRANSITIONS before the plan is touched.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from models import PlanRevisionRequest, YogaPlan

from .constants import ApprovalStatus
from .errors import InvalidTransitionError

logger = logging.getLogger(__name__)

_S = ApprovalStatus

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    _S.PENDING.value: frozenset({_S.APPROVED.value, _S.REJECTED.value, _S.REVISION_REQUESTED.value}),
    _S.REVISION_REQUESTED.value: frozenset({_S.APPROVED.value, _S.REJECTED.value, _S.REVISION_REQUESTED.value}),
    _S.APPROVED.value: frozenset(),
    _S.REJECTED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if target not in TRANSITIONS or target == _S.PENDING.value:
        raise InvalidTransitionError(
            "Invalid status. Must be: approved, rejected, or revision_requested"
        )
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot move a {current} plan to {target}")


def apply_review(
    plan: YogaPlan,
    target_status: str,
    reviewer_id: str,
    notes: Optional[str] = None,
    reason: Optional[str] = None,
    changes_requested: Optional[str] = None,
    now: Optional[datetime] = None,
) -> YogaPlan:
    """
    Move a plan to target_status on behalf of a reviewer.

    approved_at is stamped only on approval. A revision request appends one
    PlanRevisionRequest (reason defaults to the review notes); earlier
    entries are never touched.
    """
    check_transition(plan.approval_status, target_status)
    now = now or datetime.now(timezone.utc)

    previous = plan.approval_status
    plan.approval_status = target_status
    plan.reviewed_by = reviewer_id
    plan.review_notes = notes

    if target_status == _S.APPROVED.value:
        plan.approved_at = now
    elif target_status == _S.REVISION_REQUESTED.value:
        plan.revision_requests.append(PlanRevisionRequest(
            requested_by=reviewer_id,
            requested_at=now,
            reason=reason if reason is not None else notes,
            changes_requested=changes_requested,
        ))

    logger.info(f"Plan {plan.id} reviewed: {previous} -> {target_status} by {reviewer_id}")
    return plan
