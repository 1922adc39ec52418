"""Persistence for leave requests and balances.

The repository only flushes; committing is left to the session owner
(``get_db``), so a request change and its balance change always land in the
same transaction. Concurrency tokens are the ``version`` columns maintained
by SQLAlchemy's ``version_id_col``.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from leaveflow.common.constants import ApprovalStatus, Capability, LeaveCategory
from leaveflow.common.exceptions import ConcurrencyError, NotFoundException
from leaveflow.leave.conflicts import ExistingLeave
from leaveflow.leave.models import LeaveBalance, LeaveRequest
from leaveflow.users.models import Actor, User

logger = logging.getLogger(__name__)


def _month_bounds(month_of: date) -> tuple[date, date]:
    last_day = calendar.monthrange(month_of.year, month_of.month)[1]
    return month_of.replace(day=1), month_of.replace(day=last_day)


class LeaveRepository:
    """Async data access bound to one ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Users ───────────────────────────────────────────────────────

    async def load_user(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundException("User", user_id)
        return user

    # ── Requests ────────────────────────────────────────────────────

    async def load_request(self, request_id: uuid.UUID) -> tuple[LeaveRequest, int]:
        """Return the request and the concurrency token it was read at."""
        request = await self.session.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return request, request.version

    async def add_request(self, request: LeaveRequest) -> int:
        self.session.add(request)
        await self.session.flush()
        await self.session.refresh(request)
        return request.version

    async def save_request_and_balance(
        self,
        request: LeaveRequest,
        token: int,
        balance: Optional[LeaveBalance] = None,
    ) -> int:
        """Flush *request* (and *balance*, if given) as one unit.

        Raises:
            ConcurrencyError: *token* is stale, either against the loaded row
                or against the row in the database at flush time.
        """
        self._check_token(request, token)
        if balance is not None:
            self.session.add(balance)
        await self._flush(request)
        return request.version

    async def delete_request(
        self,
        request: LeaveRequest,
        token: int,
        balance: Optional[LeaveBalance] = None,
    ) -> None:
        self._check_token(request, token)
        if balance is not None:
            self.session.add(balance)
        await self.session.delete(request)
        await self._flush(request)

    async def find_overlapping(
        self,
        user_id: uuid.UUID,
        categories: Iterable[LeaveCategory],
        start_date: date,
        end_date: Optional[date],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> list[ExistingLeave]:
        """Live (not rejected) requests of *user_id* touching the range."""
        end_date = end_date or start_date
        query = select(LeaveRequest).where(
            LeaveRequest.owner_id == user_id,
            LeaveRequest.category.in_(list(categories)),
            LeaveRequest.manager_status != ApprovalStatus.rejected,
            LeaveRequest.hr_status != ApprovalStatus.rejected,
            LeaveRequest.start_date <= end_date,
            func.coalesce(LeaveRequest.end_date, LeaveRequest.start_date) >= start_date,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)

        result = await self.session.execute(query.order_by(LeaveRequest.start_date))
        return [
            ExistingLeave(
                id=row.id,
                owner_id=row.owner_id,
                category=row.category,
                start_date=row.start_date,
                end_date=row.end_date,
                manager_status=row.manager_status,
                hr_status=row.hr_status,
            )
            for row in result.scalars().all()
        ]

    async def count_approved_in_month(
        self,
        user_id: uuid.UUID,
        category: LeaveCategory,
        month_of: date,
    ) -> int:
        """Fully approved requests of *category* starting in *month_of*'s month."""
        first, last = _month_bounds(month_of)
        result = await self.session.execute(
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.owner_id == user_id,
                LeaveRequest.category == category,
                LeaveRequest.manager_status == ApprovalStatus.approved,
                LeaveRequest.hr_status == ApprovalStatus.approved,
                LeaveRequest.start_date >= first,
                LeaveRequest.start_date <= last,
            )
        )
        return result.scalar_one()

    def visible_requests_query(
        self,
        actor: Actor,
        *,
        owner_id: Optional[uuid.UUID] = None,
        department: Optional[str] = None,
        category: Optional[LeaveCategory] = None,
        manager_status: Optional[ApprovalStatus] = None,
        hr_status: Optional[ApprovalStatus] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> Any:
        """Requests the actor may view, narrowed by the optional filters."""
        query = select(LeaveRequest)

        if not (actor.has(Capability.admin) or actor.has(Capability.hr)):
            visible = LeaveRequest.owner_id == actor.id
            if actor.has(Capability.manager) and actor.department:
                visible = or_(visible, LeaveRequest.department == actor.department)
            query = query.where(visible)

        if owner_id is not None:
            query = query.where(LeaveRequest.owner_id == owner_id)
        if department is not None:
            query = query.where(LeaveRequest.department == department)
        if category is not None:
            query = query.where(LeaveRequest.category == category)
        if manager_status is not None:
            query = query.where(LeaveRequest.manager_status == manager_status)
        if hr_status is not None:
            query = query.where(LeaveRequest.hr_status == hr_status)
        if from_date is not None:
            query = query.where(
                func.coalesce(LeaveRequest.end_date, LeaveRequest.start_date) >= from_date
            )
        if to_date is not None:
            query = query.where(LeaveRequest.start_date <= to_date)
        return query

    # ── Balances ────────────────────────────────────────────────────

    async def load_balance(self, user_id: uuid.UUID) -> Optional[LeaveBalance]:
        result = await self.session.execute(
            select(LeaveBalance).where(LeaveBalance.user_id == user_id)
        )
        return result.scalars().first()

    async def ensure_balance(self, user_id: uuid.UUID) -> LeaveBalance:
        """Return the user's balance row, creating an all-zero one if missing."""
        balance = await self.load_balance(user_id)
        if balance is None:
            balance = LeaveBalance(user_id=user_id)
            self.session.add(balance)
            await self.session.flush()
            await self.session.refresh(balance)
            logger.info("Created empty leave balance for user %s", user_id)
        return balance

    # ── Internals ───────────────────────────────────────────────────

    @staticmethod
    def _check_token(request: LeaveRequest, token: int) -> None:
        if request.version != token:
            raise ConcurrencyError(
                "LeaveRequest", request.id,
                expected_version=token, current_version=request.version,
            )

    async def _flush(self, request: LeaveRequest) -> None:
        request_id, version = request.id, request.version
        try:
            await self.session.flush()
        except StaleDataError as exc:
            logger.warning("Stale write on leave request %s: %s", request_id, exc)
            raise ConcurrencyError(
                "LeaveRequest", request_id, expected_version=version,
            ) from exc
