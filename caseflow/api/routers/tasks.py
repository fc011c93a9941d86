from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from caseflow.api.deps import get_current_actor, require_perm
from caseflow.domain.models import (
    Actor,
    CaseTask,
    TaskCompleteRead,
    TaskCompletionPayload,
    TaskCreate,
    TaskRead,
    ensure_utc,
    now_utc,
)
from caseflow.domain.permissions import PERM_TASK_CREATE
from caseflow.domain.state_machine import TaskStatus, is_open
from caseflow.services.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    NotOwnerError,
    TaskFlowError,
    TaskValidationError,
)
from caseflow.services.transition_service import TransitionService

router = APIRouter()


def get_transition_service() -> TransitionService:
    return TransitionService()


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Service = Annotated[TransitionService, Depends(get_transition_service)]


def task_read(row: CaseTask) -> TaskRead:
    read = TaskRead.model_validate(row)
    if row.deadline is not None and is_open(row.status):
        read.is_overdue = ensure_utc(row.deadline) < now_utc()
    return read


def handle_error(exc: TaskFlowError) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, NotOwnerError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, (ConflictError, InvalidStateError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, TaskValidationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"field": exc.field, "message": exc.message},
        ) from exc
    raise exc


@router.post(
    "",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_TASK_CREATE))],
)
def create_task(payload: TaskCreate, actor: CurrentActor, service: Service) -> TaskRead:
    try:
        return task_read(service.create_task(payload, actor))
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.get("/assigned", response_model=list[TaskRead])
def list_assigned_tasks(
    actor: CurrentActor,
    service: Service,
    status_filter: Annotated[list[TaskStatus] | None, Query(alias="status")] = None,
) -> list[TaskRead]:
    rows = service.list_assigned(actor.id, statuses=set(status_filter) if status_filter else None)
    return [task_read(item) for item in rows]


@router.get("/{task_id}", response_model=TaskRead)
def get_task(task_id: str, _actor: CurrentActor, service: Service) -> TaskRead:
    try:
        return task_read(service.get_task(task_id))
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.post("/{task_id}/start", response_model=TaskRead)
def start_task(task_id: str, actor: CurrentActor, service: Service) -> TaskRead:
    try:
        return task_read(service.start(task_id, actor))
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.post("/{task_id}/complete", response_model=TaskCompleteRead)
def complete_task(
    task_id: str,
    actor: CurrentActor,
    service: Service,
    payload: TaskCompletionPayload | None = None,
) -> TaskCompleteRead:
    try:
        result = service.complete(task_id, actor, payload)
    except TaskFlowError as exc:
        handle_error(exc)
        raise
    return TaskCompleteRead(task=task_read(result.task), next_task_id=result.next_task_id)


@router.post("/{task_id}/acknowledge", response_model=TaskRead)
def acknowledge_task(task_id: str, actor: CurrentActor, service: Service) -> TaskRead:
    try:
        return task_read(service.acknowledge(task_id, actor))
    except TaskFlowError as exc:
        handle_error(exc)
        raise


@router.post("/{task_id}/resume", response_model=TaskCompleteRead)
def resume_task_completion(task_id: str, actor: CurrentActor, service: Service) -> TaskCompleteRead:
    try:
        result = service.resume_completion(task_id, actor)
    except TaskFlowError as exc:
        handle_error(exc)
        raise
    return TaskCompleteRead(task=task_read(result.task), next_task_id=result.next_task_id)
