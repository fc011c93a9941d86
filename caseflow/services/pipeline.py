from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

from caseflow.domain.models import CaseRole, TaskCompletionPayload, TaskType
from caseflow.infra.schedule import DRAWING_DEADLINE_HOURS
from caseflow.services.errors import TaskValidationError

PayloadValidator = Callable[[TaskCompletionPayload], None]


def no_requirements(_payload: TaskCompletionPayload) -> None:
    return None


def require_km_travelled(payload: TaskCompletionPayload) -> None:
    km = payload.km_travelled
    if km is None:
        raise TaskValidationError("km_travelled", "distance travelled is required for site inspection")
    if not (math.isfinite(km) and km > 0):
        raise TaskValidationError("km_travelled", "distance travelled must be a finite number greater than zero")


def require_boq_uploaded(payload: TaskCompletionPayload) -> None:
    if payload.boq_uploaded is not True:
        raise TaskValidationError("boq_uploaded", "BOQ upload is required for drawing task")


@dataclass(frozen=True)
class TransitionRule:
    validate: PayloadValidator = no_requirements
    successor_type: TaskType | None = None
    successor_role: CaseRole | None = None
    deadline_hours: int | None = None
    completion_notify_role: CaseRole | None = None


PIPELINE_RULES: dict[TaskType, TransitionRule] = {
    TaskType.SALES_CONTACT: TransitionRule(
        successor_type=TaskType.SITE_INSPECTION,
        successor_role=CaseRole.SITE_ENGINEER,
    ),
    TaskType.SITE_INSPECTION: TransitionRule(
        validate=require_km_travelled,
        successor_type=TaskType.DRAWING_TASK,
        successor_role=CaseRole.DRAWING_TEAM,
        deadline_hours=DRAWING_DEADLINE_HOURS,
    ),
    TaskType.DRAWING_TASK: TransitionRule(
        validate=require_boq_uploaded,
        successor_type=TaskType.QUOTATION_TASK,
        successor_role=CaseRole.QUOTATION_TEAM,
    ),
    TaskType.QUOTATION_TASK: TransitionRule(
        successor_type=TaskType.PROCUREMENT_AUDIT,
        successor_role=CaseRole.PROCUREMENT_TEAM,
    ),
    TaskType.PROCUREMENT_AUDIT: TransitionRule(completion_notify_role=CaseRole.ADMIN),
    TaskType.PROCUREMENT_BIDDING: TransitionRule(completion_notify_role=CaseRole.ADMIN),
    TaskType.EXECUTION_TASK: TransitionRule(),
}

SUCCESSOR_TITLES: dict[TaskType, str] = {
    TaskType.SITE_INSPECTION: "New Site Inspection Task",
    TaskType.DRAWING_TASK: "New Drawing Task",
    TaskType.QUOTATION_TASK: "New Quotation Task",
    TaskType.PROCUREMENT_AUDIT: "New Procurement Audit Task",
}


def rule_for(task_type: TaskType) -> TransitionRule:
    return PIPELINE_RULES.get(task_type, TransitionRule())


def successor_title(task_type: TaskType) -> str:
    return SUCCESSOR_TITLES.get(task_type, "New Task Assigned")
