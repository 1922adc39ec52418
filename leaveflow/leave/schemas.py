"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Edit / *Decision  → request bodies (write)
  - *Out                         → response bodies (read)

Only shape and type checks live here; workflow rules (time windows, span
limits, conflicts, balances) are enforced by the service so they also apply
to callers that bypass HTTP.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leaveflow.common.constants import ApprovalStatus, LeaveCategory
from leaveflow.leave.ledger import BalanceSummary


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Write
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    category: LeaveCategory
    start_date: date = Field(..., description="First day of leave (inclusive)")
    end_date: Optional[date] = Field(
        None, description="Last day of leave (inclusive); defaults to start_date"
    )
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = Field(None, max_length=1000)


class LeaveRequestEdit(BaseModel):
    """Partial update of a pending request. Omitted fields keep their value."""

    category: Optional[LeaveCategory] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = Field(None, max_length=1000)
    version: Optional[int] = Field(
        None, description="Concurrency token the client last read"
    )


class LeaveDecision(BaseModel):
    """Manager or HR decision on a request."""

    approve: bool
    comment: Optional[str] = Field(None, max_length=500)
    reason: Optional[str] = Field(
        None, max_length=500, description="Required when approve is false"
    )
    version: Optional[int] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Read
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request projection, including both approval stages."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    category: LeaveCategory
    start_date: date
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None
    department: Optional[str] = None
    number_of_days: int

    manager_status: ApprovalStatus
    manager_approver_id: Optional[uuid.UUID] = None
    manager_comment: Optional[str] = None
    manager_rejection_reason: Optional[str] = None
    manager_decided_at: Optional[datetime] = None

    hr_status: ApprovalStatus
    hr_approver_id: Optional[uuid.UUID] = None
    hr_comment: Optional[str] = None
    hr_rejection_reason: Optional[str] = None
    hr_decided_at: Optional[datetime] = None

    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Enriched by the router for the calling user
    allowed_actions: list[str] = Field(default_factory=list)


class BalanceSummaryOut(BaseModel):
    """Balances of the acting user, one row per counted category."""

    user_id: uuid.UUID
    balances: list[BalanceSummary]


# ═════════════════════════════════════════════════════════════════════
# Listing
# ═════════════════════════════════════════════════════════════════════


class RequestSortKey(str, enum.Enum):
    """Accepted ``sort`` values for the request list; ``-`` means descending."""

    created_at = "created_at"
    created_at_desc = "-created_at"
    start_date = "start_date"
    start_date_desc = "-start_date"
    category = "category"
    category_desc = "-category"


class LeaveRequestFilters(BaseModel):
    """Optional narrowing of the request list."""

    owner_id: Optional[uuid.UUID] = None
    department: Optional[str] = None
    category: Optional[LeaveCategory] = None
    manager_status: Optional[ApprovalStatus] = None
    hr_status: Optional[ApprovalStatus] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
