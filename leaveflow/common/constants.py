"""Enums and constants for the leave workflow — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Actors ──────────────────────────────────────────────────────────

class Capability(str, enum.Enum):
    """Independent grants a user may hold. Plain employees hold none."""

    admin = "admin"
    manager = "manager"
    hr = "hr"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveCategory(str, enum.Enum):
    annual = "annual"
    emergency = "emergency"
    permission = "permission"
    unpaid = "unpaid"
    work_from_home = "work_from_home"
    external_assignment = "external_assignment"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApprovalStage(str, enum.Enum):
    manager = "manager"
    hr = "hr"


class ApprovalAction(str, enum.Enum):
    manager_approve = "manager_approve"
    manager_reject = "manager_reject"
    hr_approve = "hr_approve"
    hr_reject = "hr_reject"

    @property
    def stage(self) -> ApprovalStage:
        if self in (ApprovalAction.manager_approve, ApprovalAction.manager_reject):
            return ApprovalStage.manager
        return ApprovalStage.hr

    @property
    def is_rejection(self) -> bool:
        return self in (ApprovalAction.manager_reject, ApprovalAction.hr_reject)


# Categories whose live requests block overlapping requests of the same user
BLOCKING_CATEGORIES: frozenset[LeaveCategory] = frozenset({
    LeaveCategory.annual,
    LeaveCategory.emergency,
    LeaveCategory.unpaid,
    LeaveCategory.work_from_home,
})

# Categories with a fixed per-period allocation
CEILINGED_CATEGORIES: frozenset[LeaveCategory] = frozenset({
    LeaveCategory.annual,
    LeaveCategory.emergency,
    LeaveCategory.permission,
})

# Single-day categories that carry a time-of-day window
TIME_WINDOWED_CATEGORIES: frozenset[LeaveCategory] = frozenset({
    LeaveCategory.permission,
    LeaveCategory.external_assignment,
})


# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
