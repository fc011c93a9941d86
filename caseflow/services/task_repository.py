from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from caseflow.domain.models import CaseTask, TaskType
from caseflow.domain.state_machine import OPEN_STATUSES, TaskStatus, can_transition
from caseflow.infra.db import get_engine
from caseflow.services.errors import ConflictError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset({"id", "case_id", "type", "assigned_to", "assigned_by", "source_task_id", "created_at"})


class TaskRepository:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def get(self, task_id: str) -> CaseTask:
        with self._session() as session:
            row = session.get(CaseTask, task_id)
            if row is None:
                raise NotFoundError("task not found")
            return row

    def list_by_assignee(
        self,
        user_id: str,
        *,
        statuses: set[TaskStatus] | None = None,
    ) -> list[CaseTask]:
        with self._session() as session:
            statement = select(CaseTask).where(CaseTask.assigned_to == user_id)
            if statuses:
                statement = statement.where(col(CaseTask.status).in_(statuses))
            statement = statement.order_by(col(CaseTask.created_at).desc(), col(CaseTask.id))
            return list(session.exec(statement).all())

    def list_by_case(self, case_id: str) -> list[CaseTask]:
        with self._session() as session:
            statement = (
                select(CaseTask)
                .where(CaseTask.case_id == case_id)
                .order_by(col(CaseTask.created_at), col(CaseTask.id))
            )
            return list(session.exec(statement).all())

    def find_successor(self, source_task_id: str) -> CaseTask | None:
        with self._session() as session:
            return session.exec(
                select(CaseTask).where(CaseTask.source_task_id == source_task_id)
            ).first()

    def find_open_by_type(self, case_id: str, task_type: TaskType) -> CaseTask | None:
        with self._session() as session:
            return session.exec(
                select(CaseTask)
                .where(CaseTask.case_id == case_id)
                .where(CaseTask.type == task_type)
                .where(col(CaseTask.status).in_(OPEN_STATUSES))
                .order_by(col(CaseTask.created_at))
            ).first()

    def create(self, task: CaseTask) -> CaseTask:
        with self._session() as session:
            session.add(task)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("task create conflict") from exc
            session.refresh(task)
            return task

    def conditional_update(
        self,
        task_id: str,
        expected_status: TaskStatus,
        mutation: dict[str, Any],
    ) -> CaseTask:
        """Apply ``mutation`` only while the stored status equals ``expected_status``.

        The status check and the write are one ``UPDATE ... WHERE status = ?``
        statement, so of two racing writers exactly one matches a row.
        """
        forbidden = IMMUTABLE_FIELDS.intersection(mutation)
        if forbidden:
            raise ValueError(f"immutable task fields in mutation: {sorted(forbidden)}")
        new_status = mutation.get("status")
        if new_status is not None and not can_transition(expected_status, TaskStatus(new_status)):
            raise InvalidStateError(f"illegal transition: {expected_status} -> {new_status}")

        with self._session() as session:
            result = session.execute(
                update(CaseTask)
                .where(col(CaseTask.id) == task_id)
                .where(col(CaseTask.status) == expected_status)
                .values(**mutation)
            )
            if result.rowcount != 1:
                session.rollback()
                current = session.get(CaseTask, task_id)
                if current is None:
                    raise NotFoundError("task not found")
                logger.info(
                    "conditional update lost on task %s: expected %s, found %s",
                    task_id,
                    expected_status,
                    current.status,
                )
                raise ConflictError(f"task status changed: expected {expected_status}, found {current.status}")
            session.commit()
            row = session.get(CaseTask, task_id)
            if row is None:
                raise NotFoundError("task not found")
            session.refresh(row)
            return row
