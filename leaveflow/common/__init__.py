"""Common module — shared utilities for the leave workflow service."""

from leaveflow.common.audit import AuditTrail, create_audit_entry
from leaveflow.common.constants import (
    BLOCKING_CATEGORIES,
    CEILINGED_CATEGORIES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TIME_WINDOWED_CATEGORIES,
    ApprovalAction,
    ApprovalStage,
    ApprovalStatus,
    Capability,
    LeaveCategory,
)
from leaveflow.common.exceptions import (
    AppException,
    ConcurrencyError,
    ConflictError,
    ForbiddenException,
    IllegalStateTransitionError,
    InsufficientBalanceError,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from leaveflow.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "ApprovalAction",
    "ApprovalStage",
    "ApprovalStatus",
    "Capability",
    "LeaveCategory",
    "BLOCKING_CATEGORIES",
    "CEILINGED_CATEGORIES",
    "TIME_WINDOWED_CATEGORIES",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConcurrencyError",
    "ConflictError",
    "ForbiddenException",
    "IllegalStateTransitionError",
    "InsufficientBalanceError",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
