"""Leave router — submit, edit, delete, manager/HR decisions, balances.

All endpoints require a bearer token. Who may do what is decided by the
workflow service, not by route-level role checks.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_actor
from leaveflow.common.constants import ApprovalAction, ApprovalStatus, LeaveCategory
from leaveflow.common.pagination import PaginatedResponse, PaginationParams
from leaveflow.database import get_db
from leaveflow.leave.models import LeaveRequest
from leaveflow.leave.policy import AuthorizationPolicy
from leaveflow.leave.schemas import (
    BalanceSummaryOut,
    LeaveDecision,
    LeaveRequestCreate,
    LeaveRequestEdit,
    LeaveRequestFilters,
    LeaveRequestOut,
    RequestSortKey,
)
from leaveflow.leave.service import RequestWorkflowService
from leaveflow.users.models import Actor

router = APIRouter(prefix="", tags=["leave"])


def _project(request: LeaveRequest, actor: Actor) -> LeaveRequestOut:
    out = LeaveRequestOut.model_validate(request)
    out.allowed_actions = AuthorizationPolicy.permitted_actions(request, actor)
    return out


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def submit_request(
    body: LeaveRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Checks overlaps, balance and the monthly cap."""
    created = await RequestWorkflowService.submit(db, actor, body)
    return _project(created, actor)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def list_requests(
    owner_id: Optional[uuid.UUID] = Query(None),
    department: Optional[str] = Query(None, max_length=100),
    category: Optional[LeaveCategory] = Query(None),
    manager_status: Optional[ApprovalStatus] = Query(None),
    hr_status: Optional[ApprovalStatus] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    sort: RequestSortKey = Query(RequestSortKey.created_at_desc),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Requests visible to the caller: own, own department for managers, all for HR/admin."""
    filters = LeaveRequestFilters(
        owner_id=owner_id,
        department=department,
        category=category,
        manager_status=manager_status,
        hr_status=hr_status,
        from_date=from_date,
        to_date=to_date,
    )
    rows, meta = await RequestWorkflowService.list_requests(
        db, actor, pagination, filters=filters, sort=sort,
    )
    return PaginatedResponse[LeaveRequestOut](
        data=[_project(row, actor) for row in rows], meta=meta,
    )


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    found = await RequestWorkflowService.get_request(db, actor, request_id)
    return _project(found, actor)


# ── PUT /requests/{id} ──────────────────────────────────────────────

@router.put("/requests/{request_id}", response_model=LeaveRequestOut)
async def edit_request(
    request_id: uuid.UUID,
    body: LeaveRequestEdit,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Edit a request that neither stage has decided yet."""
    updated = await RequestWorkflowService.edit(db, actor, request_id, body)
    return _project(updated, actor)


# ── DELETE /requests/{id} ───────────────────────────────────────────

@router.delete("/requests/{request_id}", status_code=204)
async def delete_request(
    request_id: uuid.UUID,
    version: Optional[int] = Query(None, description="Concurrency token"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete a pending request; admins may delete approved ones (balance is restored)."""
    await RequestWorkflowService.delete(db, actor, request_id, expected_version=version)
    return Response(status_code=204)


# ── PUT /requests/{id}/manager-decision ─────────────────────────────

@router.put("/requests/{request_id}/manager-decision", response_model=LeaveRequestOut)
async def manager_decision(
    request_id: uuid.UUID,
    body: LeaveDecision,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    action = ApprovalAction.manager_approve if body.approve else ApprovalAction.manager_reject
    updated = await RequestWorkflowService.transition(
        db, actor, request_id, action,
        remarks=body.comment if body.approve else body.reason,
        expected_version=body.version,
    )
    return _project(updated, actor)


# ── PUT /requests/{id}/hr-decision ──────────────────────────────────

@router.put("/requests/{request_id}/hr-decision", response_model=LeaveRequestOut)
async def hr_decision(
    request_id: uuid.UUID,
    body: LeaveDecision,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Final HR decision. Approval charges the owner's balance."""
    action = ApprovalAction.hr_approve if body.approve else ApprovalAction.hr_reject
    updated = await RequestWorkflowService.transition(
        db, actor, request_id, action,
        remarks=body.comment if body.approve else body.reason,
        expected_version=body.version,
    )
    return _project(updated, actor)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=BalanceSummaryOut)
async def my_balances(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Allocated / used / remaining per category for the caller."""
    return await RequestWorkflowService.get_balance_summary(db, actor)
