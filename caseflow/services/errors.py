from __future__ import annotations


class TaskFlowError(Exception):
    pass


class NotFoundError(TaskFlowError):
    pass


class ConflictError(TaskFlowError):
    pass


class NotOwnerError(TaskFlowError):
    pass


class InvalidStateError(TaskFlowError):
    pass


class TaskValidationError(TaskFlowError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
