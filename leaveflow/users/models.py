"""User ORM model and the read-only Actor derived from it.

Users are owned by an external directory; this service only reads them.
Role grants are stored as independent flags (a user may be both manager
and HR) and surfaced to the workflow as an explicit capability set.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import Capability
from leaveflow.database import Base

if TYPE_CHECKING:
    from leaveflow.leave.models import LeaveBalance, LeaveRequest


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    is_admin: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    is_manager: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    is_hr: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    leave_requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="owner", foreign_keys="LeaveRequest.owner_id",
    )
    leave_balance: Mapped[Optional[LeaveBalance]] = relationship(
        back_populates="user", uselist=False,
    )

    @property
    def capabilities(self) -> frozenset[Capability]:
        grants = set()
        if self.is_admin:
            grants.add(Capability.admin)
        if self.is_manager:
            grants.add(Capability.manager)
        if self.is_hr:
            grants.add(Capability.hr)
        return frozenset(grants)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.department})>"


@dataclass(frozen=True)
class Actor:
    """The user performing a workflow operation, passed explicitly."""

    id: uuid.UUID
    department: Optional[str] = None
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user: User) -> Actor:
        return cls(
            id=user.id,
            department=user.department,
            capabilities=user.capabilities,
        )

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities
