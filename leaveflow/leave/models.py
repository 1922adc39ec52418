"""Leave ORM models: LeaveRequest, LeaveBalance.

Both tables carry a ``version`` column registered as the mapper's
``version_id_col``: every UPDATE/DELETE is issued as
``... WHERE id = :id AND version = :loaded_version`` and bumps the value,
so a writer holding a stale row fails at flush time with ``StaleDataError``.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import TYPE_CHECKING, NamedTuple, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import ApprovalStatus, LeaveCategory
from leaveflow.database import Base

if TYPE_CHECKING:
    from leaveflow.users.models import User


class ApprovalState(NamedTuple):
    """The (ManagerStatus, HRStatus) pair."""

    manager: ApprovalStatus
    hr: ApprovalStatus

    def __str__(self) -> str:
        return f"({self.manager.value}, {self.hr.value})"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_leave_requests_date_order",
        ),
        sa.Index("ix_leave_requests_owner_dates", "owner_id", "start_date", "end_date"),
        sa.Index("ix_leave_requests_department", "department"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    category: Mapped[LeaveCategory] = mapped_column(
        sa.Enum(LeaveCategory, name="leave_category"), nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    start_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    end_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    # Snapshot of the owner's department at submission time
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    number_of_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    manager_status: Mapped[ApprovalStatus] = mapped_column(
        sa.Enum(ApprovalStatus, name="approval_status"),
        nullable=False,
        default=ApprovalStatus.pending,
    )
    manager_approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    manager_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    manager_decided_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    hr_status: Mapped[ApprovalStatus] = mapped_column(
        sa.Enum(ApprovalStatus, name="approval_status"),
        nullable=False,
        default=ApprovalStatus.pending,
    )
    hr_approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    hr_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    hr_rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    hr_decided_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    # Set once the ledger has been charged for this request
    balance_committed: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    owner: Mapped[User] = relationship(
        back_populates="leave_requests", foreign_keys=[owner_id]
    )

    @property
    def state(self) -> ApprovalState:
        return ApprovalState(self.manager_status, self.hr_status)

    @property
    def effective_end_date(self) -> date:
        return self.end_date or self.start_date

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.id} {self.category.value} "
            f"{self.start_date}..{self.effective_end_date} {self.state}>"
        )


class LeaveBalance(Base):
    """Per-user entitlement and consumption counters.

    Annual, emergency and permission have an allocation ceiling; unpaid and
    work-from-home only count usage.
    """

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.CheckConstraint(
            "annual_used >= 0 AND emergency_used >= 0 AND permission_used >= 0 "
            "AND unpaid_used >= 0 AND work_from_home_used >= 0",
            name="ck_leave_balances_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), unique=True, nullable=False
    )
    annual_allowed: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    annual_used: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    emergency_allowed: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    emergency_used: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    permission_allowed: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    permission_used: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    unpaid_used: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    work_from_home_used: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user: Mapped[User] = relationship(back_populates="leave_balance")
