"""Approval state machine for leave requests.

Legal transitions are listed explicitly in ``TRANSITIONS``; anything else is
an ``IllegalStateTransitionError``. Entering (approved, approved) charges the
balance ledger exactly once per request, tracked by ``balance_committed``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from leaveflow.common.constants import (
    TIME_WINDOWED_CATEGORIES,
    ApprovalAction,
    ApprovalStage,
    ApprovalStatus,
    LeaveCategory,
)
from leaveflow.common.exceptions import (
    IllegalStateTransitionError,
    ValidationException,
)
from leaveflow.leave.ledger import BalanceLedger
from leaveflow.leave.models import ApprovalState

logger = logging.getLogger(__name__)

_P = ApprovalStatus.pending
_A = ApprovalStatus.approved
_R = ApprovalStatus.rejected

TRANSITIONS: dict[tuple[ApprovalState, ApprovalAction], ApprovalState] = {
    (ApprovalState(_P, _P), ApprovalAction.manager_approve): ApprovalState(_A, _P),
    (ApprovalState(_P, _P), ApprovalAction.manager_reject): ApprovalState(_R, _P),
    (ApprovalState(_A, _P), ApprovalAction.hr_approve): ApprovalState(_A, _A),
    (ApprovalState(_A, _P), ApprovalAction.hr_reject): ApprovalState(_A, _R),
}

FULLY_APPROVED = ApprovalState(_A, _A)

TERMINAL_STATES: frozenset[ApprovalState] = frozenset({
    ApprovalState(_R, _P),
    ApprovalState(_A, _A),
    ApprovalState(_A, _R),
})


def compute_number_of_days(
    category: LeaveCategory,
    start_date: date,
    end_date: Optional[date],
) -> int:
    """Inclusive calendar span; time-windowed categories always count one day."""
    if category in TIME_WINDOWED_CATEGORIES or end_date is None:
        return 1
    return (end_date - start_date).days + 1


class ApprovalStateMachine:

    @staticmethod
    def next_state(state: ApprovalState, action: ApprovalAction) -> ApprovalState:
        try:
            return TRANSITIONS[(state, action)]
        except KeyError:
            raise IllegalStateTransitionError(
                state.manager.value, state.hr.value, action.value,
            ) from None

    @staticmethod
    def is_legal(state: ApprovalState, action: ApprovalAction) -> bool:
        return (state, action) in TRANSITIONS

    @staticmethod
    def is_terminal(state: ApprovalState) -> bool:
        return state in TERMINAL_STATES

    @staticmethod
    def ensure_legal(request: Any, action: ApprovalAction) -> None:
        ApprovalStateMachine.next_state(request.state, action)

    @staticmethod
    def apply(
        request: Any,
        action: ApprovalAction,
        *,
        actor_id: Any,
        remarks: Optional[str] = None,
        balance: Any = None,
        now: Optional[datetime] = None,
    ) -> ApprovalState:
        """Move *request* along *action* and record the decision on its stage.

        For rejections *remarks* is the mandatory reason; for approvals it is
        the optional approver comment. ``balance`` is required whenever the
        transition lands in (approved, approved) for a ledger category.

        Raises:
            IllegalStateTransitionError: (state, action) is not in the table.
            ValidationException: a rejection without a reason.
            InsufficientBalanceError: the ledger commit would breach a ceiling.
        """
        old_state = request.state
        new_state = ApprovalStateMachine.next_state(old_state, action)

        remarks = (remarks or "").strip() or None
        if action.is_rejection and not remarks:
            raise ValidationException(
                {"reason": ["A reason is required when rejecting a request."]}
            )

        if new_state == FULLY_APPROVED and not request.balance_committed:
            if BalanceLedger.touches_ledger(request.category):
                if balance is None:
                    raise ValueError("balance is required to commit an approval")
                BalanceLedger.commit(balance, request.category, request.number_of_days)
            request.balance_committed = True

        decided_at = now or datetime.now(timezone.utc)
        if action.stage is ApprovalStage.manager:
            request.manager_status = new_state.manager
            request.manager_approver_id = actor_id
            request.manager_decided_at = decided_at
            if action.is_rejection:
                request.manager_rejection_reason = remarks
            else:
                request.manager_comment = remarks
        else:
            request.hr_status = new_state.hr
            request.hr_approver_id = actor_id
            request.hr_decided_at = decided_at
            if action.is_rejection:
                request.hr_rejection_reason = remarks
            else:
                request.hr_comment = remarks

        logger.debug(
            "Request %s: %s -> %s via %s",
            request.id, old_state, new_state, action.value,
        )
        return new_state

    @staticmethod
    def unwind(request: Any, balance: Any = None) -> None:
        """Give back a committed charge, e.g. before an admin deletes the request."""
        if not request.balance_committed:
            return
        if BalanceLedger.touches_ledger(request.category):
            if balance is None:
                raise ValueError("balance is required to reverse a commit")
            BalanceLedger.reverse(balance, request.category, request.number_of_days)
        request.balance_committed = False
