"""
Pure approval-step rules.

`evaluate_step` decides whether a step is resolved from its recorded approver
entries and quorum rule. `can_act` decides whether a principal is entitled to
approve or reject a step. Neither function mutates its arguments.

Quorum policy:
    Explicitly assigned users form a closed set. With ``all_approvers_required``
    every assigned user must approve. Role/department selectors describe an
    open gate that any single qualified approval clears, even when
    ``all_approvers_required`` is set.
"""

from typing import Optional

from src.core.documents.models import (
    ApprovalStepRecord,
    ApproverDecision,
    ExplicitUsersTarget,
    Principal,
    RoleDepartmentTarget,
    StepResolution,
    StepTarget,
    UsersOrRoleTarget,
)


def evaluate_step(step: ApprovalStepRecord) -> StepResolution:
    if not step.approvers:
        return StepResolution.PENDING

    if any(entry.decision == ApproverDecision.REJECTED for entry in step.approvers):
        return StepResolution.REJECTED

    approved_ids = {
        entry.user_id for entry in step.approvers if entry.decision == ApproverDecision.APPROVED
    }
    assigned_ids = assigned_user_ids(step.target)
    if step.all_approvers_required and assigned_ids:
        if assigned_ids <= approved_ids:
            return StepResolution.APPROVED
        return StepResolution.PENDING

    return StepResolution.APPROVED if approved_ids else StepResolution.PENDING


def can_act(principal: Principal, step: ApprovalStepRecord) -> bool:
    target = step.target
    if isinstance(target, ExplicitUsersTarget):
        return principal.user_id in target.user_ids
    if isinstance(target, RoleDepartmentTarget):
        return _role_matches(principal, role=target.role, department=target.department)
    if isinstance(target, UsersOrRoleTarget):
        return principal.user_id in target.user_ids or _role_matches(
            principal, role=target.role, department=target.department
        )
    raise TypeError(f"unsupported step target: {type(target).__name__}")


def has_acted(principal: Principal, step: ApprovalStepRecord) -> bool:
    return step.entry_for(principal.user_id) is not None


def assigned_user_ids(target: StepTarget) -> set[str]:
    if isinstance(target, (ExplicitUsersTarget, UsersOrRoleTarget)):
        return set(target.user_ids)
    if isinstance(target, RoleDepartmentTarget):
        return set()
    raise TypeError(f"unsupported step target: {type(target).__name__}")


def _role_matches(principal: Principal, *, role: str, department: Optional[str]) -> bool:
    if principal.role != role:
        return False
    return department is None or department == principal.department
