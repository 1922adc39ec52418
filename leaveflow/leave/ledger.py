"""Balance ledger: pure arithmetic over a user's leave counters.

The ledger never touches the database. Callers pass a ``LeaveBalance`` (or
any object exposing the same counter attributes) and persist it themselves.

Routing:

=====================  ======================================  ==========
Category               Counters                                Ceiling
=====================  ======================================  ==========
annual                 annual_allowed / annual_used            yes
emergency              emergency_allowed / emergency_used      yes
permission             permission_allowed / permission_used    yes
unpaid                 unpaid_used                             no
work_from_home         work_from_home_used                     no
external_assignment    (none, informational only)              no
=====================  ======================================  ==========
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional

from pydantic import BaseModel

from leaveflow.common.constants import CEILINGED_CATEGORIES, LeaveCategory
from leaveflow.common.exceptions import InsufficientBalanceError


class _Counters(NamedTuple):
    allowed: Optional[str]
    used: Optional[str]


_ROUTING: dict[LeaveCategory, _Counters] = {
    LeaveCategory.annual: _Counters("annual_allowed", "annual_used"),
    LeaveCategory.emergency: _Counters("emergency_allowed", "emergency_used"),
    LeaveCategory.permission: _Counters("permission_allowed", "permission_used"),
    LeaveCategory.unpaid: _Counters(None, "unpaid_used"),
    LeaveCategory.work_from_home: _Counters(None, "work_from_home_used"),
    LeaveCategory.external_assignment: _Counters(None, None),
}


class BalanceSummary(BaseModel):
    """One row of the balances summary shown to the acting user."""

    category: LeaveCategory
    allocated: Optional[int] = None
    used: int = 0
    remaining: Optional[int] = None


class BalanceLedger:
    """Commit / reverse / would-exceed over per-category counters."""

    @staticmethod
    def _read(balance: Any, attr: str) -> int:
        return getattr(balance, attr) or 0

    @staticmethod
    def has_ceiling(category: LeaveCategory) -> bool:
        return category in CEILINGED_CATEGORIES

    @staticmethod
    def touches_ledger(category: LeaveCategory) -> bool:
        return _ROUTING[category].used is not None

    @staticmethod
    def remaining(balance: Any, category: LeaveCategory) -> Optional[int]:
        """``allocation − used`` for ceilinged categories, else ``None``."""
        route = _ROUTING[category]
        if route.allowed is None:
            return None
        return BalanceLedger._read(balance, route.allowed) - BalanceLedger._read(
            balance, route.used,
        )

    @staticmethod
    def would_exceed(balance: Any, category: LeaveCategory, days: int) -> bool:
        """True iff consuming *days* would take the category below zero."""
        remaining = BalanceLedger.remaining(balance, category)
        if remaining is None:
            return False
        return remaining - days < 0

    @staticmethod
    def commit(balance: Any, category: LeaveCategory, days: int) -> None:
        """Charge *days* to the category's used counter.

        Raises:
            InsufficientBalanceError: the ceiling would be breached.
        """
        if days < 0:
            raise ValueError("days must be non-negative")
        route = _ROUTING[category]
        if route.used is None:
            return
        if BalanceLedger.would_exceed(balance, category, days):
            raise InsufficientBalanceError(
                category.value,
                requested=days,
                remaining=BalanceLedger.remaining(balance, category),
            )
        setattr(balance, route.used, BalanceLedger._read(balance, route.used) + days)

    @staticmethod
    def reverse(balance: Any, category: LeaveCategory, days: int) -> None:
        """Give *days* back; ``used`` never drops below zero."""
        if days < 0:
            raise ValueError("days must be non-negative")
        route = _ROUTING[category]
        if route.used is None:
            return
        current = BalanceLedger._read(balance, route.used)
        setattr(balance, route.used, max(0, current - days))

    @staticmethod
    def summary(balance: Any) -> list[BalanceSummary]:
        """Allocated / used / remaining for every category that has a counter."""
        rows: list[BalanceSummary] = []
        for category, route in _ROUTING.items():
            if route.used is None:
                continue
            rows.append(
                BalanceSummary(
                    category=category,
                    allocated=(
                        BalanceLedger._read(balance, route.allowed)
                        if route.allowed else None
                    ),
                    used=BalanceLedger._read(balance, route.used),
                    remaining=BalanceLedger.remaining(balance, category),
                )
            )
        return rows
