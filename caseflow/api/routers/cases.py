from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from caseflow.api.deps import get_current_actor, require_perm
from caseflow.api.routers.tasks import Service, handle_error, task_read
from caseflow.domain.models import (
    Actor,
    CaseActivityRead,
    CaseCreate,
    CaseRead,
    CaseRole,
    CaseRoleAssignRequest,
    TaskRead,
)
from caseflow.domain.permissions import PERM_CASE_WRITE
from caseflow.infra.activity import SqlActivityLog
from caseflow.services.case_service import CaseService
from caseflow.services.errors import TaskFlowError

router = APIRouter()


def get_case_service() -> CaseService:
    return CaseService()


def get_activity_log() -> SqlActivityLog:
    return SqlActivityLog()


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Cases = Annotated[CaseService, Depends(get_case_service)]
ActivityLog = Annotated[SqlActivityLog, Depends(get_activity_log)]


@router.post(
    "",
    response_model=CaseRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_CASE_WRITE))],
)
def create_case(payload: CaseCreate, cases: Cases) -> CaseRead:
    return CaseRead.model_validate(cases.create_case(payload))


@router.get("/{case_id}", response_model=CaseRead)
def get_case(case_id: str, _actor: CurrentActor, cases: Cases) -> CaseRead:
    try:
        return CaseRead.model_validate(cases.get_case(case_id))
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.put(
    "/{case_id}/roles/{role}",
    response_model=CaseRead,
    dependencies=[Depends(require_perm(PERM_CASE_WRITE))],
)
def assign_case_role(
    case_id: str,
    role: CaseRole,
    payload: CaseRoleAssignRequest,
    cases: Cases,
) -> CaseRead:
    try:
        return CaseRead.model_validate(cases.assign_role(case_id, role, payload.user_id))
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.get("/{case_id}/tasks", response_model=list[TaskRead])
def list_case_tasks(case_id: str, _actor: CurrentActor, service: Service) -> list[TaskRead]:
    try:
        return [task_read(item) for item in service.list_case_tasks(case_id)]
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.get("/{case_id}/activities", response_model=list[CaseActivityRead])
def list_case_activities(
    case_id: str,
    _actor: CurrentActor,
    cases: Cases,
    activity: ActivityLog,
) -> list[CaseActivityRead]:
    try:
        cases.get_case(case_id)
    except TaskFlowError as exc:
        handle_error(exc)
        raise
    return [CaseActivityRead.model_validate(item) for item in activity.list_for_case(case_id)]
