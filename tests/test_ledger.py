"""BalanceLedger tests — routing, ceilings, commit/reverse arithmetic, summary."""

from __future__ import annotations

import itertools

import pytest

from leaveflow.common.constants import CEILINGED_CATEGORIES, LeaveCategory
from leaveflow.common.exceptions import InsufficientBalanceError
from leaveflow.leave.ledger import _ROUTING, BalanceLedger
from leaveflow.leave.models import LeaveBalance


def _balance(**counters: int) -> LeaveBalance:
    defaults = dict(
        annual_allowed=0, annual_used=0,
        emergency_allowed=0, emergency_used=0,
        permission_allowed=0, permission_used=0,
        unpaid_used=0, work_from_home_used=0,
    )
    defaults.update(counters)
    return LeaveBalance(**defaults)


class TestRouting:

    def test_every_category_has_a_route(self):
        assert set(_ROUTING) == set(LeaveCategory)

    def test_ceilinged_categories_have_ceiling(self):
        for category in LeaveCategory:
            assert BalanceLedger.has_ceiling(category) is (category in CEILINGED_CATEGORIES)
            assert (_ROUTING[category].allowed is not None) is (category in CEILINGED_CATEGORIES)

    def test_external_assignment_never_touches_ledger(self):
        assert BalanceLedger.touches_ledger(LeaveCategory.external_assignment) is False
        balance = _balance()
        BalanceLedger.commit(balance, LeaveCategory.external_assignment, 3)
        BalanceLedger.reverse(balance, LeaveCategory.external_assignment, 3)
        assert [row.used for row in BalanceLedger.summary(balance)] == [0, 0, 0, 0, 0]

    def test_missing_counters_read_as_zero(self):
        balance = LeaveBalance()
        assert BalanceLedger.remaining(balance, LeaveCategory.annual) == 0
        assert BalanceLedger.would_exceed(balance, LeaveCategory.annual, 1) is True


class TestWouldExceed:

    def test_within_allocation(self):
        balance = _balance(annual_allowed=15, annual_used=0)
        assert BalanceLedger.would_exceed(balance, LeaveCategory.annual, 5) is False

    def test_exactly_exhausting_allocation_is_allowed(self):
        balance = _balance(annual_allowed=10, annual_used=5)
        assert BalanceLedger.would_exceed(balance, LeaveCategory.annual, 5) is False

    def test_over_allocation(self):
        balance = _balance(annual_allowed=10, annual_used=8)
        assert BalanceLedger.would_exceed(balance, LeaveCategory.annual, 5) is True

    @pytest.mark.parametrize(
        "category",
        [LeaveCategory.unpaid, LeaveCategory.work_from_home, LeaveCategory.external_assignment],
    )
    def test_uncapped_categories_never_exceed(self, category):
        assert BalanceLedger.would_exceed(_balance(), category, 365) is False
        assert BalanceLedger.remaining(_balance(), category) is None


class TestCommit:

    def test_commit_adds_to_used(self):
        balance = _balance(annual_allowed=15)
        BalanceLedger.commit(balance, LeaveCategory.annual, 5)
        assert balance.annual_used == 5
        assert BalanceLedger.remaining(balance, LeaveCategory.annual) == 10

    def test_commit_routes_emergency_and_permission(self):
        balance = _balance(emergency_allowed=5, permission_allowed=4)
        BalanceLedger.commit(balance, LeaveCategory.emergency, 2)
        BalanceLedger.commit(balance, LeaveCategory.permission, 1)
        assert (balance.emergency_used, balance.permission_used) == (2, 1)
        assert balance.annual_used == 0

    def test_commit_usage_only_counters(self):
        balance = _balance()
        BalanceLedger.commit(balance, LeaveCategory.unpaid, 3)
        BalanceLedger.commit(balance, LeaveCategory.work_from_home, 2)
        assert (balance.unpaid_used, balance.work_from_home_used) == (3, 2)

    def test_commit_refuses_to_breach_ceiling(self):
        balance = _balance(annual_allowed=10, annual_used=8)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            BalanceLedger.commit(balance, LeaveCategory.annual, 5)
        assert exc_info.value.remaining == 2
        assert exc_info.value.requested == 5
        assert balance.annual_used == 8

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError):
            BalanceLedger.commit(_balance(annual_allowed=5), LeaveCategory.annual, -1)


class TestReverse:

    def test_reverse_gives_days_back(self):
        balance = _balance(annual_allowed=15, annual_used=5)
        BalanceLedger.reverse(balance, LeaveCategory.annual, 5)
        assert balance.annual_used == 0

    def test_reverse_floors_at_zero(self):
        balance = _balance(annual_allowed=15, annual_used=2)
        BalanceLedger.reverse(balance, LeaveCategory.annual, 5)
        assert balance.annual_used == 0

    def test_reverse_work_from_home_floors_at_zero(self):
        balance = _balance(work_from_home_used=1)
        BalanceLedger.reverse(balance, LeaveCategory.work_from_home, 3)
        assert balance.work_from_home_used == 0

    def test_remaining_never_negative_over_any_sequence(self):
        """Every interleaving of commits and reversals keeps allocation - used >= 0."""
        steps = [("commit", 4), ("commit", 7), ("reverse", 3), ("commit", 5), ("reverse", 20)]
        for order in itertools.permutations(steps):
            balance = _balance(annual_allowed=10)
            for op, days in order:
                if op == "commit":
                    try:
                        BalanceLedger.commit(balance, LeaveCategory.annual, days)
                    except InsufficientBalanceError:
                        pass
                else:
                    BalanceLedger.reverse(balance, LeaveCategory.annual, days)
                assert BalanceLedger.remaining(balance, LeaveCategory.annual) >= 0
                assert balance.annual_used >= 0


class TestSummary:

    def test_summary_rows(self):
        balance = _balance(annual_allowed=15, annual_used=5, unpaid_used=2)
        rows = {row.category: row for row in BalanceLedger.summary(balance)}

        assert set(rows) == {
            LeaveCategory.annual,
            LeaveCategory.emergency,
            LeaveCategory.permission,
            LeaveCategory.unpaid,
            LeaveCategory.work_from_home,
        }
        assert (rows[LeaveCategory.annual].allocated, rows[LeaveCategory.annual].used,
                rows[LeaveCategory.annual].remaining) == (15, 5, 10)
        assert rows[LeaveCategory.unpaid].allocated is None
        assert rows[LeaveCategory.unpaid].remaining is None
        assert rows[LeaveCategory.unpaid].used == 2
