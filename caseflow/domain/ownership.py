from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from caseflow.domain.models import Actor, CaseTask
from caseflow.domain.state_machine import TaskAction, expected_status


class DenialReason(StrEnum):
    NOT_OWNER = "NOT_OWNER"
    INVALID_STATE = "INVALID_STATE"


@dataclass(frozen=True)
class AuthorizationResult:
    allowed: bool
    reason: DenialReason | None = None
    detail: str | None = None


ALLOWED = AuthorizationResult(allowed=True)


def _owner_of(task: CaseTask, action: TaskAction) -> str:
    # The requester confirms finished work; the assignee does everything else.
    if action == TaskAction.ACKNOWLEDGE:
        return task.assigned_by
    return task.assigned_to


def authorize(actor: Actor, task: CaseTask, action: TaskAction) -> AuthorizationResult:
    if _owner_of(task, action) != actor.id:
        return AuthorizationResult(
            allowed=False,
            reason=DenialReason.NOT_OWNER,
            detail=f"actor {actor.id} may not {action.lower()} task {task.id}",
        )
    required = expected_status(action)
    if task.status != required:
        return AuthorizationResult(
            allowed=False,
            reason=DenialReason.INVALID_STATE,
            detail=f"cannot {action.lower()} task in status {task.status}; expected {required}",
        )
    return ALLOWED
