from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from caseflow.domain.deadlines import BusinessWindow, compute_deadline
from caseflow.domain.models import (
    Actor,
    CaseRole,
    CaseTask,
    NotificationLevel,
    TaskCompletionPayload,
    TaskCreate,
    TaskType,
    ensure_utc,
    now_utc,
)
from caseflow.domain.ownership import AuthorizationResult, DenialReason, authorize
from caseflow.domain.state_machine import TaskAction, TaskStatus, expected_status, target_status
from caseflow.infra import events
from caseflow.infra.activity import ActivitySink, SqlActivityLog, record_safely
from caseflow.infra.events import EventBus, event_bus
from caseflow.infra.notifications import NotificationSink, default_notifier, notify_safely
from caseflow.infra.schedule import get_business_timezone, get_business_window
from caseflow.services.case_service import CaseDirectory, CaseService
from caseflow.services.errors import (
    ConflictError,
    InvalidStateError,
    NotOwnerError,
)
from caseflow.services.pipeline import TransitionRule, rule_for, successor_title
from caseflow.services.task_repository import TaskRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class CompletionResult:
    task: CaseTask
    next_task_id: str | None
    successor_created: bool = False


class TransitionService:
    """Start, complete and acknowledge case tasks, spawning pipeline successors.

    The conditional status update is the only atomic step. Successor creation is
    a second write keyed by ``source_task_id``; ``resume_completion`` finishes a
    completion whose successor write failed. Activity, notification and event
    writes happen after the transition and never fail it.
    """

    def __init__(
        self,
        repository: TaskRepository | None = None,
        cases: CaseDirectory | None = None,
        activity: ActivitySink | None = None,
        notifier: NotificationSink | None = None,
        *,
        bus: EventBus | None = None,
        window: BusinessWindow | None = None,
        timezone: tzinfo | None = None,
        clock: Clock = now_utc,
    ) -> None:
        self._repository = repository or TaskRepository()
        self._cases = cases or CaseService()
        self._activity = activity or SqlActivityLog()
        self._notifier = notifier or default_notifier()
        self._bus = bus or event_bus
        self._window = window or get_business_window()
        self._timezone = timezone or get_business_timezone()
        self._clock = clock

    @staticmethod
    def _raise_denied(result: AuthorizationResult) -> None:
        if result.reason == DenialReason.NOT_OWNER:
            raise NotOwnerError(result.detail or "actor does not own task")
        raise InvalidStateError(result.detail or "action not allowed in current status")

    def _publish_safely(self, event_type: str, actor: Actor, payload: dict[str, Any]) -> None:
        try:
            self._bus.publish_dict(event_type, payload, actor_id=actor.id, correlation_id=payload.get("case_id"))
        except Exception:
            logger.exception("event publish failed: %s", event_type)

    def _resolve_assignee(self, task: CaseTask, role: CaseRole, actor: Actor) -> str:
        user_id = self._cases.get_case_role_assignment(task.case_id, role)
        if user_id is None:
            logger.info(
                "case %s has no %s assigned; successor of task %s falls back to %s",
                task.case_id,
                role,
                task.id,
                actor.id,
            )
            return actor.id
        return user_id

    def compute_successor_deadline(self, rule: TransitionRule, completed_at: datetime) -> datetime | None:
        if rule.deadline_hours is None:
            return None
        local = ensure_utc(completed_at).astimezone(self._timezone)
        deadline = compute_deadline(local, rule.deadline_hours, self._window)
        return deadline.astimezone(UTC)

    def _create_successor(
        self,
        completed: CaseTask,
        rule: TransitionRule,
        actor: Actor,
        assignee: str,
        completed_at: datetime,
    ) -> tuple[CaseTask, bool]:
        if rule.successor_type is None:
            raise ValueError(f"{completed.type} has no successor")

        linked = self._repository.find_successor(completed.id)
        if linked is not None:
            return linked, False
        already_open = self._repository.find_open_by_type(completed.case_id, rule.successor_type)
        if already_open is not None:
            logger.info(
                "case %s already has open %s task %s; not creating another",
                completed.case_id,
                rule.successor_type,
                already_open.id,
            )
            return already_open, False

        row = CaseTask(
            case_id=completed.case_id,
            type=rule.successor_type,
            status=TaskStatus.PENDING,
            assigned_to=assignee,
            assigned_by=actor.id,
            source_task_id=completed.id,
            deadline=self.compute_successor_deadline(rule, completed_at),
        )
        try:
            return self._repository.create(row), True
        except ConflictError:
            # Lost to a writer that linked this completion or opened the same type first.
            winner = self._repository.find_successor(completed.id) or self._repository.find_open_by_type(
                completed.case_id, rule.successor_type
            )
            if winner is None:
                raise
            return winner, False

    def _announce_successor(self, completed: CaseTask, successor: CaseTask, actor: Actor) -> None:
        record_safely(self._activity, completed.case_id, f"{successor.type} task created", actor.id)
        message = f"{successor.type} task assigned for case {completed.case_id}"
        if successor.deadline is not None:
            message += f", due {ensure_utc(successor.deadline).astimezone(self._timezone):%Y-%m-%d %H:%M}"
        notify_safely(
            self._notifier,
            successor.assigned_to,
            successor_title(successor.type),
            message,
            case_id=successor.case_id,
            task_id=successor.id,
        )
        self._publish_safely(
            events.TASK_CREATED,
            actor,
            {
                "task_id": successor.id,
                "case_id": successor.case_id,
                "type": successor.type,
                "assigned_to": successor.assigned_to,
                "source_task_id": completed.id,
            },
        )

    def _notify_completion_role(self, completed: CaseTask, rule: TransitionRule) -> None:
        if rule.completion_notify_role is None:
            return
        try:
            user_id = self._cases.get_case_role_assignment(completed.case_id, rule.completion_notify_role)
        except Exception:
            logger.exception("role lookup failed for case %s", completed.case_id)
            return
        if user_id is None:
            logger.warning(
                "case %s has no %s to notify about %s completion",
                completed.case_id,
                rule.completion_notify_role,
                completed.type,
            )
            return
        notify_safely(
            self._notifier,
            user_id,
            "Procurement Task Completed",
            f"{completed.type} completed for case {completed.case_id}",
            level=NotificationLevel.SUCCESS,
            case_id=completed.case_id,
            task_id=completed.id,
        )

    @staticmethod
    def _completion_message(task: CaseTask) -> str:
        if task.type == TaskType.SITE_INSPECTION and task.km_travelled is not None:
            return f"{task.type} completed ({task.km_travelled:g} km travelled)"
        if task.type == TaskType.DRAWING_TASK and task.boq_uploaded:
            return f"{task.type} completed (BOQ uploaded)"
        return f"{task.type} completed"

    def create_task(self, payload: TaskCreate, actor: Actor) -> CaseTask:
        self._cases.get_case(payload.case_id)
        already_open = self._repository.find_open_by_type(payload.case_id, payload.type)
        if already_open is not None:
            raise ConflictError(f"case already has an open {payload.type} task")
        row = self._repository.create(
            CaseTask(
                case_id=payload.case_id,
                type=payload.type,
                status=TaskStatus.PENDING,
                assigned_to=payload.assigned_to,
                assigned_by=actor.id,
                notes=payload.notes,
            )
        )
        logger.info("task %s (%s) created in case %s by %s", row.id, row.type, row.case_id, actor.id)
        record_safely(self._activity, row.case_id, f"Task created: {row.type}", actor.id)
        notify_safely(
            self._notifier,
            row.assigned_to,
            "New Task Assigned",
            f"You have been assigned a {row.type} task",
            case_id=row.case_id,
            task_id=row.id,
        )
        self._publish_safely(
            events.TASK_CREATED,
            actor,
            {"task_id": row.id, "case_id": row.case_id, "type": row.type, "assigned_to": row.assigned_to},
        )
        return row

    def get_task(self, task_id: str) -> CaseTask:
        return self._repository.get(task_id)

    def list_assigned(self, user_id: str, *, statuses: set[TaskStatus] | None = None) -> list[CaseTask]:
        return self._repository.list_by_assignee(user_id, statuses=statuses)

    def list_case_tasks(self, case_id: str) -> list[CaseTask]:
        self._cases.get_case(case_id)
        return self._repository.list_by_case(case_id)

    def start(self, task_id: str, actor: Actor) -> CaseTask:
        task = self._repository.get(task_id)
        result = authorize(actor, task, TaskAction.START)
        if not result.allowed:
            self._raise_denied(result)

        started = self._repository.conditional_update(
            task.id,
            expected_status(TaskAction.START),
            {"status": target_status(TaskAction.START), "started_at": self._clock()},
        )
        logger.info("task %s started by %s", started.id, actor.id)
        record_safely(self._activity, started.case_id, f"{started.type} started", actor.id)
        self._publish_safely(
            events.TASK_STARTED,
            actor,
            {"task_id": started.id, "case_id": started.case_id, "type": started.type},
        )
        return started

    def complete(
        self,
        task_id: str,
        actor: Actor,
        payload: TaskCompletionPayload | None = None,
    ) -> CompletionResult:
        payload = payload or TaskCompletionPayload()
        task = self._repository.get(task_id)
        rule = rule_for(task.type)

        result = authorize(actor, task, TaskAction.COMPLETE)
        if not result.allowed:
            self._raise_denied(result)

        rule.validate(payload)
        assignee: str | None = None
        if rule.successor_role is not None:
            assignee = self._resolve_assignee(task, rule.successor_role, actor)

        completed_at = self._clock()
        mutation: dict[str, Any] = {"status": target_status(TaskAction.COMPLETE), "completed_at": completed_at}
        mutation.update(payload.model_dump(exclude_none=True))
        completed = self._repository.conditional_update(task.id, expected_status(TaskAction.COMPLETE), mutation)
        logger.info("task %s (%s) completed by %s", completed.id, completed.type, actor.id)

        successor: CaseTask | None = None
        created = False
        if rule.successor_type is not None and assignee is not None:
            try:
                successor, created = self._create_successor(completed, rule, actor, assignee, completed_at)
            except SQLAlchemyError:
                logger.exception(
                    "successor creation failed after task %s completed; resume_completion will finish it",
                    completed.id,
                )
                raise

        record_safely(self._activity, completed.case_id, self._completion_message(completed), actor.id)
        if successor is not None and created:
            self._announce_successor(completed, successor, actor)
        self._notify_completion_role(completed, rule)
        self._publish_safely(
            events.TASK_COMPLETED,
            actor,
            {
                "task_id": completed.id,
                "case_id": completed.case_id,
                "type": completed.type,
                "next_task_id": successor.id if successor is not None else None,
            },
        )
        return CompletionResult(
            task=completed,
            next_task_id=successor.id if successor is not None else None,
            successor_created=created,
        )

    def resume_completion(self, task_id: str, actor: Actor) -> CompletionResult:
        """Create the successor of a COMPLETED task whose successor write never landed.

        ``complete`` never does this itself: a second ``complete`` that reads the
        task between another call's status write and its successor insert must
        fail rather than race that call.
        """
        task = self._repository.get(task_id)
        if task.assigned_to != actor.id:
            raise NotOwnerError(f"actor {actor.id} may not resume task {task.id}")
        if task.status != TaskStatus.COMPLETED:
            raise InvalidStateError(f"cannot resume task in status {task.status}; expected COMPLETED")
        rule = rule_for(task.type)
        if rule.successor_type is None or rule.successor_role is None:
            raise InvalidStateError(f"{task.type} has no successor to resume")
        if self._repository.find_successor(task.id) is not None:
            raise InvalidStateError("successor already exists")
        if self._repository.find_open_by_type(task.case_id, rule.successor_type) is not None:
            raise InvalidStateError(f"case already has an open {rule.successor_type} task")

        assignee = self._resolve_assignee(task, rule.successor_role, actor)
        completed_at = ensure_utc(task.completed_at) if task.completed_at is not None else self._clock()
        successor, created = self._create_successor(task, rule, actor, assignee, completed_at)
        if not created:
            raise InvalidStateError("successor already exists")
        logger.info("resumed completion of task %s: created successor %s", task.id, successor.id)
        self._announce_successor(task, successor, actor)
        return CompletionResult(task=task, next_task_id=successor.id, successor_created=True)

    def acknowledge(self, task_id: str, actor: Actor) -> CaseTask:
        task = self._repository.get(task_id)
        result = authorize(actor, task, TaskAction.ACKNOWLEDGE)
        if not result.allowed:
            self._raise_denied(result)

        acknowledged = self._repository.conditional_update(
            task.id,
            expected_status(TaskAction.ACKNOWLEDGE),
            {"status": target_status(TaskAction.ACKNOWLEDGE), "acknowledged_at": self._clock()},
        )
        record_safely(self._activity, acknowledged.case_id, f"{acknowledged.type} acknowledged", actor.id)
        self._publish_safely(
            events.TASK_ACKNOWLEDGED,
            actor,
            {"task_id": acknowledged.id, "case_id": acknowledged.case_id, "type": acknowledged.type},
        )
        return acknowledged
