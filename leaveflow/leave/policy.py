"""Authorization policy for leave requests.

Every decision is a pure function of (request, actor[, stage]). The request
argument only needs ``owner_id``, ``department``, ``manager_status`` and
``hr_status``; the actor is passed explicitly by the caller.

Summary of the rules:

* edit / delete: owner while both stages are pending; admin always
* manager stage: manager of the request's department, or admin, while the
  manager stage is pending; never the owner
* hr stage: HR or admin, once the manager approved and HR is pending;
  never the owner
* view: owner, admin and HR always; a manager for their own department
"""

from __future__ import annotations

from typing import Any

from leaveflow.common.constants import ApprovalStage, ApprovalStatus, Capability
from leaveflow.users.models import Actor


def _is_owner(request: Any, actor: Actor) -> bool:
    return request.owner_id == actor.id


def _manages_department(request: Any, actor: Actor) -> bool:
    return (
        actor.has(Capability.manager)
        and bool(actor.department)
        and actor.department == request.department
    )


def _fully_pending(request: Any) -> bool:
    return (
        request.manager_status == ApprovalStatus.pending
        and request.hr_status == ApprovalStatus.pending
    )


class AuthorizationPolicy:
    """Pure allow/deny decisions; no I/O."""

    @staticmethod
    def can_edit(request: Any, actor: Actor) -> bool:
        if actor.has(Capability.admin):
            return True
        return _is_owner(request, actor) and _fully_pending(request)

    @staticmethod
    def can_delete(request: Any, actor: Actor) -> bool:
        if actor.has(Capability.admin):
            return True
        return _is_owner(request, actor) and _fully_pending(request)

    @staticmethod
    def can_transition(request: Any, actor: Actor, stage: ApprovalStage) -> bool:
        if _is_owner(request, actor):
            return False

        if stage is ApprovalStage.manager:
            if request.manager_status != ApprovalStatus.pending:
                return False
            return actor.has(Capability.admin) or _manages_department(request, actor)

        if stage is ApprovalStage.hr:
            if (
                request.manager_status != ApprovalStatus.approved
                or request.hr_status != ApprovalStatus.pending
            ):
                return False
            return actor.has(Capability.admin) or actor.has(Capability.hr)

        raise ValueError(f"Unknown approval stage: {stage!r}")

    @staticmethod
    def can_view(request: Any, actor: Actor) -> bool:
        if _is_owner(request, actor):
            return True
        if actor.has(Capability.admin) or actor.has(Capability.hr):
            return True
        return _manages_department(request, actor)

    @staticmethod
    def permitted_actions(request: Any, actor: Actor) -> list[str]:
        """Actions the actor may currently take, for rendering controls."""
        actions: list[str] = []
        if AuthorizationPolicy.can_edit(request, actor) and _fully_pending(request):
            actions.append("edit")
        if AuthorizationPolicy.can_delete(request, actor):
            actions.append("delete")
        for stage in ApprovalStage:
            if AuthorizationPolicy.can_transition(request, actor, stage):
                actions.append(f"{stage.value}_decision")
        return actions
