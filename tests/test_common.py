"""Tests for common utilities — pagination, audit helper, problem details.

Exercises paginate(), create_audit_entry() and the exception hierarchy
used by the RFC 7807 handlers.
"""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.audit import AuditTrail, create_audit_entry
from leaveflow.common.exceptions import (
    AppException,
    ConcurrencyError,
    ConflictError,
    ForbiddenException,
    IllegalStateTransitionError,
    InsufficientBalanceError,
    NotFoundException,
    ValidationException,
)
from leaveflow.common.pagination import PaginationParams, paginate
from leaveflow.users.models import User
from tests.conftest import _seed_user


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPaginate:
    """Tests for paginate() over plain selects."""

    async def test_first_page(self, db: AsyncSession):
        for i in range(5):
            await _seed_user(db, full_name=f"User {i}")

        params = PaginationParams(page=1, page_size=2)
        rows, meta = await paginate(db, select(User).order_by(User.full_name), params)

        assert [u.full_name for u in rows] == ["User 0", "User 1"]
        assert meta.total == 5
        assert meta.total_pages == 3
        assert meta.has_next is True
        assert meta.has_prev is False

    async def test_last_page(self, db: AsyncSession):
        for i in range(5):
            await _seed_user(db, full_name=f"User {i}")

        params = PaginationParams(page=3, page_size=2)
        rows, meta = await paginate(db, select(User).order_by(User.full_name), params)

        assert [u.full_name for u in rows] == ["User 4"]
        assert meta.has_next is False
        assert meta.has_prev is True

    async def test_count_respects_where_clause(self, db: AsyncSession):
        await _seed_user(db, department="Finance")
        await _seed_user(db, department="Engineering")
        await _seed_user(db, department="Engineering")

        params = PaginationParams(page=1, page_size=10)
        rows, meta = await paginate(
            db, select(User).where(User.department == "Engineering"), params,
        )
        assert meta.total == 2
        assert len(rows) == 2

    async def test_empty_result(self, db: AsyncSession):
        params = PaginationParams(page=1, page_size=10)
        rows, meta = await paginate(db, select(User), params)
        assert list(rows) == []
        assert meta.total == 0
        assert meta.total_pages == 0
        assert meta.has_next is False

    def test_offset(self):
        assert PaginationParams(page=3, page_size=25).offset == 50


# ═════════════════════════════════════════════════════════════════════
# AUDIT TESTS
# ═════════════════════════════════════════════════════════════════════


class TestAuditTrail:

    async def test_entry_is_written_in_session(self, db: AsyncSession):
        user = await _seed_user(db)
        entity_id = uuid.uuid4()

        entry = await create_audit_entry(
            db,
            action="delete",
            entity_type="leave_request",
            entity_id=entity_id,
            actor_id=user.id,
            old_values={"category": "annual"},
        )

        result = await db.execute(select(AuditTrail).where(AuditTrail.id == entry.id))
        stored = result.scalars().one()
        assert stored.action == "delete"
        assert stored.entity_id == entity_id
        assert stored.old_values == {"category": "annual"}
        assert stored.new_values is None


# ═════════════════════════════════════════════════════════════════════
# EXCEPTION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestExceptions:

    def test_status_codes(self):
        cases = [
            (ValidationException({"f": ["bad"]}), 422),
            (ConflictError("annual", date(2026, 3, 1), date(2026, 3, 2), []), 409),
            (InsufficientBalanceError("annual", 5, 2), 422),
            (ForbiddenException(), 403),
            (IllegalStateTransitionError("rejected", "pending", "hr_approve"), 409),
            (ConcurrencyError("LeaveRequest", uuid.uuid4()), 412),
            (NotFoundException("LeaveRequest", uuid.uuid4()), 404),
        ]
        for exc, status in cases:
            assert isinstance(exc, AppException)
            assert exc.status_code == status

    def test_conflict_detail(self):
        exc = ConflictError(
            "annual", date(2026, 3, 1), date(2026, 3, 5),
            [{"id": "x", "category": "unpaid"}],
        )
        assert exc.errors["start_date"] == "2026-03-01"
        assert exc.errors["conflicts"] == [{"id": "x", "category": "unpaid"}]

    def test_monthly_cap_detail(self):
        exc = InsufficientBalanceError(
            "permission", 1, 0, reason="monthly_cap", limit=2,
        )
        assert "Monthly limit of 2" in exc.detail
        assert exc.errors["reason"] == "monthly_cap"

    def test_forbidden_carries_action(self):
        assert ForbiddenException(action="edit").errors == {"action": "edit"}
        assert ForbiddenException().errors is None
