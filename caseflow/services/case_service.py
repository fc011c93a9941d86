from __future__ import annotations

from typing import Protocol

from sqlmodel import Session

from caseflow.domain.models import Case, CaseCreate, CaseRole
from caseflow.infra.db import get_engine
from caseflow.services.errors import NotFoundError


class CaseDirectory(Protocol):
    def get_case(self, case_id: str) -> Case: ...

    def get_case_role_assignment(self, case_id: str, role: CaseRole) -> str | None: ...


class CaseService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_case(self, session: Session, case_id: str) -> Case:
        row = session.get(Case, case_id)
        if row is None:
            raise NotFoundError("case not found")
        return row

    def create_case(self, payload: CaseCreate) -> Case:
        with self._session() as session:
            row = Case(
                title=payload.title,
                client_name=payload.client_name,
                role_assignments={str(role): user_id for role, user_id in payload.role_assignments.items()},
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def get_case(self, case_id: str) -> Case:
        with self._session() as session:
            return self._get_case(session, case_id)

    def assign_role(self, case_id: str, role: CaseRole, user_id: str) -> Case:
        with self._session() as session:
            row = self._get_case(session, case_id)
            # JSON columns are not mutation-tracked; assign a new dict.
            row.role_assignments = {**row.role_assignments, str(role): user_id}
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def get_case_role_assignment(self, case_id: str, role: CaseRole) -> str | None:
        with self._session() as session:
            row = self._get_case(session, case_id)
            user_id = row.role_assignments.get(str(role))
            if isinstance(user_id, str) and user_id.strip():
                return user_id
            return None
