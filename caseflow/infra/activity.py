"""Append-only case activity trail.

Writes are best-effort from the engine's point of view: a failed insert is
logged and never undoes the task transition that triggered it.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlmodel import Session, select

from caseflow.domain.models import CaseActivity
from caseflow.infra.db import get_engine

logger = logging.getLogger(__name__)


class ActivitySink(Protocol):
    def record(self, case_id: str, message: str, actor_id: str | None) -> None: ...


def write_activity(*, case_id: str, message: str, actor_id: str | None) -> CaseActivity:
    row = CaseActivity(case_id=case_id, action=message, actor_id=actor_id)
    with Session(get_engine(), expire_on_commit=False) as session:
        session.add(row)
        session.commit()
    return row


class SqlActivityLog:
    def record(self, case_id: str, message: str, actor_id: str | None) -> None:
        write_activity(case_id=case_id, message=message, actor_id=actor_id)

    def list_for_case(self, case_id: str) -> list[CaseActivity]:
        with Session(get_engine(), expire_on_commit=False) as session:
            statement = (
                select(CaseActivity)
                .where(CaseActivity.case_id == case_id)
                .order_by(CaseActivity.ts, CaseActivity.id)
            )
            return list(session.exec(statement).all())


def record_safely(sink: ActivitySink, case_id: str, message: str, actor_id: str | None) -> bool:
    try:
        sink.record(case_id, message, actor_id)
    except Exception:
        logger.exception("activity log write failed for case %s: %s", case_id, message)
        return False
    return True
