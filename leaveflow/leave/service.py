"""Leave workflow service — submission, edits, approvals, deletion, balances.

Business logic:
  - Candidate validation (time windows, single-day categories, span limit)
  - Overlap rejection against the owner's live blocking requests
  - Balance ceiling and monthly Permission cap at submission
  - Dual-stage approval with a one-time ledger charge on full approval
  - Admin deletion of approved requests with the charge reversed

Every public method runs inside the caller's session; nothing here commits.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import (
    BLOCKING_CATEGORIES,
    TIME_WINDOWED_CATEGORIES,
    ApprovalAction,
    ApprovalStatus,
    Capability,
    LeaveCategory,
)
from leaveflow.common.exceptions import (
    ConcurrencyError,
    ConflictError,
    ForbiddenException,
    IllegalStateTransitionError,
    InsufficientBalanceError,
    ValidationException,
)
from leaveflow.common.pagination import PaginationMeta, PaginationParams, paginate
from leaveflow.config import settings
from leaveflow.leave.conflicts import ConflictDetector
from leaveflow.leave.ledger import BalanceLedger
from leaveflow.leave.models import ApprovalState, LeaveBalance, LeaveRequest
from leaveflow.leave.policy import AuthorizationPolicy
from leaveflow.leave.repository import LeaveRepository
from leaveflow.leave.schemas import (
    BalanceSummaryOut,
    LeaveRequestCreate,
    LeaveRequestEdit,
    LeaveRequestFilters,
    RequestSortKey,
)
from leaveflow.leave.state_machine import ApprovalStateMachine, compute_number_of_days
from leaveflow.users.models import Actor

logger = logging.getLogger(__name__)

ENTITY_TYPE = "leave_request"

PENDING = ApprovalState(ApprovalStatus.pending, ApprovalStatus.pending)

_SORT_COLUMNS = {
    RequestSortKey.created_at: LeaveRequest.created_at.asc(),
    RequestSortKey.created_at_desc: LeaveRequest.created_at.desc(),
    RequestSortKey.start_date: LeaveRequest.start_date.asc(),
    RequestSortKey.start_date_desc: LeaveRequest.start_date.desc(),
    RequestSortKey.category: LeaveRequest.category.asc(),
    RequestSortKey.category_desc: LeaveRequest.category.desc(),
}


def _snapshot(request: LeaveRequest) -> dict[str, Any]:
    """JSON-safe view of a request for the audit trail."""
    return {
        "owner_id": str(request.owner_id),
        "category": request.category.value,
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat() if request.end_date else None,
        "start_time": request.start_time.isoformat() if request.start_time else None,
        "end_time": request.end_time.isoformat() if request.end_time else None,
        "number_of_days": request.number_of_days,
        "manager_status": request.manager_status.value,
        "hr_status": request.hr_status.value,
        "balance_committed": bool(request.balance_committed),
    }


# ═════════════════════════════════════════════════════════════════════
# RequestWorkflowService
# ═════════════════════════════════════════════════════════════════════


class RequestWorkflowService:
    """Async leave request workflow over one session per call."""

    # ─────────────────────────────────────────────────────────────────
    # Validation helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def validate_candidate(
        category: LeaveCategory,
        start_date: date,
        end_date: Optional[date],
        start_time: Optional[time],
        end_time: Optional[time],
    ) -> date:
        """Check the shape of a candidate and return its normalised end date.

        Raises:
            ValidationException: with every failing field listed.
        """
        errors: dict[str, list[str]] = {}

        if category in TIME_WINDOWED_CATEGORIES:
            if end_date is not None and end_date != start_date:
                errors.setdefault("end_date", []).append(
                    f"{category.value} requests must start and end on the same day."
                )
            if category is LeaveCategory.permission:
                if start_time is None:
                    errors.setdefault("start_time", []).append(
                        "start_time is required for permission requests."
                    )
                if end_time is None:
                    errors.setdefault("end_time", []).append(
                        "end_time is required for permission requests."
                    )
            if start_time is not None and end_time is not None and end_time <= start_time:
                errors.setdefault("end_time", []).append(
                    "end_time must be after start_time."
                )
            normalised_end = start_date
        else:
            if start_time is not None or end_time is not None:
                errors.setdefault("start_time", []).append(
                    f"{category.value} requests cover whole days and cannot "
                    "carry a time window."
                )
            normalised_end = end_date or start_date
            if normalised_end < start_date:
                errors.setdefault("end_date", []).append(
                    "end_date must be on or after start_date."
                )
            elif (normalised_end - start_date).days + 1 > settings.MAX_REQUEST_DAYS:
                errors.setdefault("end_date", []).append(
                    f"A request cannot span more than {settings.MAX_REQUEST_DAYS} days."
                )

        if errors:
            logger.warning("Rejected %s candidate: %s", category.value, errors)
            raise ValidationException(errors)
        return normalised_end

    @staticmethod
    async def _check_admissible(
        repo: LeaveRepository,
        *,
        owner_id: uuid.UUID,
        category: LeaveCategory,
        start_date: date,
        end_date: date,
        number_of_days: int,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Conflict, balance ceiling and monthly cap checks shared by submit/edit."""
        if category in BLOCKING_CATEGORIES:
            existing = await repo.find_overlapping(
                owner_id, BLOCKING_CATEGORIES, start_date, end_date, exclude_request_id,
            )
            conflicts = ConflictDetector.find_conflicts(
                existing,
                user_id=owner_id,
                category=category,
                start_date=start_date,
                end_date=end_date,
                exclude_request_id=exclude_request_id,
            )
            if conflicts:
                logger.warning(
                    "Leave conflict for user %s on %s..%s with %d request(s)",
                    owner_id, start_date, end_date, len(conflicts),
                )
                raise ConflictError(
                    category.value, start_date, end_date,
                    [c.as_detail() for c in conflicts],
                )

        if BalanceLedger.has_ceiling(category):
            balance = await repo.ensure_balance(owner_id)
            if BalanceLedger.would_exceed(balance, category, number_of_days):
                remaining = BalanceLedger.remaining(balance, category)
                logger.warning(
                    "Insufficient %s balance for user %s: remaining %s, requested %d",
                    category.value, owner_id, remaining, number_of_days,
                )
                raise InsufficientBalanceError(
                    category.value, requested=number_of_days, remaining=remaining,
                )

        if category is LeaveCategory.permission:
            limit = settings.PERMISSION_MONTHLY_LIMIT
            approved = await repo.count_approved_in_month(owner_id, category, start_date)
            if approved >= limit:
                logger.warning(
                    "Monthly permission cap reached for user %s in %s",
                    owner_id, start_date.strftime("%Y-%m"),
                )
                raise InsufficientBalanceError(
                    category.value,
                    requested=number_of_days,
                    remaining=max(0, limit - approved),
                    reason="monthly_cap",
                    limit=limit,
                )

    @staticmethod
    def _check_token(request: LeaveRequest, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != request.version:
            logger.warning(
                "Stale version for request %s: expected %s, current %s",
                request.id, expected_version, request.version,
            )
            raise ConcurrencyError(
                "LeaveRequest", request.id,
                expected_version=expected_version,
                current_version=request.version,
            )

    @staticmethod
    def _guard_pending_mutation(
        request: LeaveRequest, actor: Actor, operation: str,
    ) -> None:
        """Owners (and admins editing) hit a state error once approval started;
        everyone else without the grant is forbidden.

        Admins may delete in any state but only edit pending requests.
        """
        is_admin = actor.has(Capability.admin)
        state_bound = request.owner_id == actor.id or is_admin
        if operation == "delete" and is_admin:
            state_bound = False
        if request.state != PENDING and state_bound:
            raise IllegalStateTransitionError(
                request.manager_status.value, request.hr_status.value, operation,
            )

        allowed = (
            AuthorizationPolicy.can_edit(request, actor)
            if operation == "edit"
            else AuthorizationPolicy.can_delete(request, actor)
        )
        if not allowed:
            raise ForbiddenException(
                f"You may not {operation} this leave request.", action=operation,
            )

    # ─────────────────────────────────────────────────────────────────
    # Submit / edit / delete
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit(
        db: AsyncSession,
        actor: Actor,
        data: LeaveRequestCreate,
    ) -> LeaveRequest:
        """Create a request in (pending, pending) for the acting user."""
        repo = LeaveRepository(db)

        end_date = RequestWorkflowService.validate_candidate(
            data.category, data.start_date, data.end_date, data.start_time, data.end_time,
        )
        number_of_days = compute_number_of_days(data.category, data.start_date, end_date)

        await RequestWorkflowService._check_admissible(
            repo,
            owner_id=actor.id,
            category=data.category,
            start_date=data.start_date,
            end_date=end_date,
            number_of_days=number_of_days,
        )

        request = LeaveRequest(
            owner_id=actor.id,
            category=data.category,
            start_date=data.start_date,
            end_date=end_date,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
            department=actor.department,
            number_of_days=number_of_days,
            manager_status=ApprovalStatus.pending,
            hr_status=ApprovalStatus.pending,
            balance_committed=False,
        )
        await repo.add_request(request)

        await create_audit_entry(
            db,
            action="submit",
            entity_type=ENTITY_TYPE,
            entity_id=request.id,
            actor_id=actor.id,
            new_values=_snapshot(request),
        )
        logger.info(
            "User %s submitted %s request %s (%d day(s))",
            actor.id, request.category.value, request.id, number_of_days,
        )
        return request

    @staticmethod
    async def edit(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        changes: LeaveRequestEdit,
    ) -> LeaveRequest:
        """Change a still-pending request; approval state is left untouched."""
        repo = LeaveRepository(db)
        request, token = await repo.load_request(request_id)
        RequestWorkflowService._check_token(request, changes.version)
        RequestWorkflowService._guard_pending_mutation(request, actor, "edit")

        updates = changes.model_dump(exclude_unset=True, exclude={"version"})
        category = updates.get("category") or request.category
        start_date = updates.get("start_date") or request.start_date
        end_date = updates.get("end_date", request.end_date)
        if category in TIME_WINDOWED_CATEGORIES:
            start_time = updates.get("start_time", request.start_time)
            end_time = updates.get("end_time", request.end_time)
        else:
            # Full-day categories drop any stored window unless the edit sends one.
            start_time = updates.get("start_time")
            end_time = updates.get("end_time")
        reason = updates.get("reason", request.reason)

        end_date = RequestWorkflowService.validate_candidate(
            category, start_date, end_date, start_time, end_time,
        )
        number_of_days = compute_number_of_days(category, start_date, end_date)

        await RequestWorkflowService._check_admissible(
            repo,
            owner_id=request.owner_id,
            category=category,
            start_date=start_date,
            end_date=end_date,
            number_of_days=number_of_days,
            exclude_request_id=request.id,
        )

        old_values = _snapshot(request)
        request.category = category
        request.start_date = start_date
        request.end_date = end_date
        request.start_time = start_time
        request.end_time = end_time
        request.reason = reason
        request.number_of_days = number_of_days
        request.updated_at = datetime.now(timezone.utc)

        await repo.save_request_and_balance(request, token)

        await create_audit_entry(
            db,
            action="edit",
            entity_type=ENTITY_TYPE,
            entity_id=request.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=_snapshot(request),
        )
        logger.info("User %s edited request %s", actor.id, request.id)
        return request

    @staticmethod
    async def delete(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        expected_version: Optional[int] = None,
    ) -> None:
        """Remove a request; an admin may remove one in any state."""
        repo = LeaveRepository(db)
        request, token = await repo.load_request(request_id)
        RequestWorkflowService._check_token(request, expected_version)
        RequestWorkflowService._guard_pending_mutation(request, actor, "delete")

        old_values = _snapshot(request)
        balance: Optional[LeaveBalance] = None
        if request.balance_committed:
            if BalanceLedger.touches_ledger(request.category):
                balance = await repo.ensure_balance(request.owner_id)
            ApprovalStateMachine.unwind(request, balance)
            logger.info(
                "Reversed %d %s day(s) for user %s before deleting request %s",
                request.number_of_days, request.category.value,
                request.owner_id, request.id,
            )

        await repo.delete_request(request, token, balance)

        await create_audit_entry(
            db,
            action="delete",
            entity_type=ENTITY_TYPE,
            entity_id=request_id,
            actor_id=actor.id,
            old_values=old_values,
        )
        logger.info("User %s deleted request %s", actor.id, request_id)

    # ─────────────────────────────────────────────────────────────────
    # Approvals
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def transition(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
        action: ApprovalAction,
        remarks: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> LeaveRequest:
        """Apply a manager or HR decision.

        Checks run in order: concurrency token, transition legality,
        authorization, then the state machine (which may charge the ledger).
        Request and balance are flushed together; a stale write surfaces as
        ``ConcurrencyError`` and is not retried.
        """
        repo = LeaveRepository(db)
        request, token = await repo.load_request(request_id)
        RequestWorkflowService._check_token(request, expected_version)

        try:
            ApprovalStateMachine.ensure_legal(request, action)
        except IllegalStateTransitionError:
            logger.warning(
                "Illegal %s on request %s in state %s",
                action.value, request.id, request.state,
            )
            raise

        if not AuthorizationPolicy.can_transition(request, actor, action.stage):
            logger.warning(
                "User %s denied %s on request %s", actor.id, action.value, request.id,
            )
            raise ForbiddenException(
                f"You may not record the {action.stage.value} decision on this request.",
                action=action.value,
            )

        balance: Optional[LeaveBalance] = None
        if action is ApprovalAction.hr_approve and BalanceLedger.touches_ledger(
            request.category
        ):
            balance = await repo.ensure_balance(request.owner_id)

        old_values = _snapshot(request)
        old_state = request.state
        now = datetime.now(timezone.utc)
        ApprovalStateMachine.apply(
            request, action, actor_id=actor.id, remarks=remarks, balance=balance, now=now,
        )
        request.updated_at = now

        await repo.save_request_and_balance(request, token, balance)

        await create_audit_entry(
            db,
            action=action.value,
            entity_type=ENTITY_TYPE,
            entity_id=request.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=_snapshot(request),
        )
        logger.info(
            "Request %s moved %s -> %s by %s",
            request.id, old_state, request.state, actor.id,
        )
        return request

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        actor: Actor,
        request_id: uuid.UUID,
    ) -> LeaveRequest:
        request, _ = await LeaveRepository(db).load_request(request_id)
        if not AuthorizationPolicy.can_view(request, actor):
            raise ForbiddenException(
                "You may not view this leave request.", action="view",
            )
        return request

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        actor: Actor,
        params: PaginationParams,
        filters: Optional[LeaveRequestFilters] = None,
        sort: RequestSortKey = RequestSortKey.created_at_desc,
    ) -> tuple[Sequence[LeaveRequest], PaginationMeta]:
        """Requests visible to the actor, filtered, sorted and paginated."""
        filters = filters or LeaveRequestFilters()
        query = LeaveRepository(db).visible_requests_query(
            actor, **filters.model_dump(),
        )
        query = query.order_by(_SORT_COLUMNS[sort], LeaveRequest.id)
        return await paginate(db, query, params)

    @staticmethod
    async def get_balance_summary(
        db: AsyncSession,
        actor: Actor,
    ) -> BalanceSummaryOut:
        balance = await LeaveRepository(db).load_balance(actor.id)
        if balance is None:
            balance = LeaveBalance(user_id=actor.id)
        return BalanceSummaryOut(
            user_id=actor.id, balances=BalanceLedger.summary(balance),
        )
