"""Overlap detection between a candidate date range and existing requests."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Iterable, NamedTuple, Optional

from leaveflow.common.constants import (
    BLOCKING_CATEGORIES,
    ApprovalStatus,
    LeaveCategory,
)


class ExistingLeave(NamedTuple):
    """Projection of a stored request as seen by the detector."""

    id: uuid.UUID
    owner_id: uuid.UUID
    category: LeaveCategory
    start_date: date
    end_date: Optional[date]
    manager_status: ApprovalStatus
    hr_status: ApprovalStatus

    @property
    def effective_end_date(self) -> date:
        return self.end_date or self.start_date

    @property
    def is_rejected(self) -> bool:
        return ApprovalStatus.rejected in (self.manager_status, self.hr_status)

    def as_detail(self) -> dict[str, str]:
        return {
            "id": str(self.id),
            "category": self.category.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.effective_end_date.isoformat(),
        }


def ranges_overlap(
    a_start: date,
    a_end: Optional[date],
    b_start: date,
    b_end: Optional[date],
) -> bool:
    """Inclusive overlap; a missing end date equals its own start date."""
    a_end = a_end or a_start
    b_end = b_end or b_start
    return a_start <= b_end and a_end >= b_start


class ConflictDetector:
    """Decides whether a candidate range collides with a user's live requests."""

    @staticmethod
    def find_conflicts(
        existing: Iterable[ExistingLeave],
        *,
        user_id: uuid.UUID,
        category: LeaveCategory,
        start_date: date,
        end_date: Optional[date],
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> list[ExistingLeave]:
        if category not in BLOCKING_CATEGORIES:
            return []
        return [
            other
            for other in existing
            if other.owner_id == user_id
            and other.id != exclude_request_id
            and other.category in BLOCKING_CATEGORIES
            and not other.is_rejected
            and ranges_overlap(other.start_date, other.end_date, start_date, end_date)
        ]

    @staticmethod
    def has_conflict(
        existing: Iterable[ExistingLeave],
        *,
        user_id: uuid.UUID,
        category: LeaveCategory,
        start_date: date,
        end_date: Optional[date],
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> bool:
        return bool(
            ConflictDetector.find_conflicts(
                existing,
                user_id=user_id,
                category=category,
                start_date=start_date,
                end_date=end_date,
                exclude_request_id=exclude_request_id,
            )
        )
