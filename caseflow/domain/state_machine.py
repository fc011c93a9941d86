from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    PENDING = "PENDING"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    ACKNOWLEDGED = "ACKNOWLEDGED"


class TaskAction(StrEnum):
    START = "START"
    COMPLETE = "COMPLETE"
    ACKNOWLEDGE = "ACKNOWLEDGE"


ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.STARTED},
    TaskStatus.STARTED: {TaskStatus.COMPLETED},
    TaskStatus.COMPLETED: {TaskStatus.ACKNOWLEDGED},
    TaskStatus.ACKNOWLEDGED: set(),
}

ACTION_TRANSITIONS: dict[TaskAction, tuple[TaskStatus, TaskStatus]] = {
    TaskAction.START: (TaskStatus.PENDING, TaskStatus.STARTED),
    TaskAction.COMPLETE: (TaskStatus.STARTED, TaskStatus.COMPLETED),
    TaskAction.ACKNOWLEDGE: (TaskStatus.COMPLETED, TaskStatus.ACKNOWLEDGED),
}

OPEN_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.PENDING, TaskStatus.STARTED})


def can_transition(source: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())


def expected_status(action: TaskAction) -> TaskStatus:
    return ACTION_TRANSITIONS[action][0]


def target_status(action: TaskAction) -> TaskStatus:
    return ACTION_TRANSITIONS[action][1]


def is_open(status: TaskStatus) -> bool:
    return status in OPEN_STATUSES
