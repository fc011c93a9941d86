from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from caseflow.domain.deadlines import BusinessWindow
from caseflow.domain.models import Actor, CaseCreate, CaseRole, NotificationLevel
from caseflow.infra import db
from caseflow.infra.events import EventBus
from caseflow.services.case_service import CaseService
from caseflow.services.task_repository import TaskRepository
from caseflow.services.transition_service import TransitionService

# Monday, after the 18:00 business hour has started.
FIXED_NOW = datetime(2026, 3, 2, 18, 30, tzinfo=UTC)


@pytest.fixture()
def sqlite_engine(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[Engine, None, None]:
    db_path = tmp_path / "caseflow_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    yield test_engine
    test_engine.dispose()


@dataclass
class SentNotification:
    user_id: str
    title: str
    message: str
    level: NotificationLevel
    case_id: str | None
    task_id: str | None


@dataclass
class RecordingNotifier:
    sent: list[SentNotification] = field(default_factory=list)

    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        *,
        level: NotificationLevel = NotificationLevel.INFO,
        case_id: str | None = None,
        task_id: str | None = None,
    ) -> None:
        self.sent.append(SentNotification(user_id, title, message, level, case_id, task_id))

    def recipients(self) -> list[str]:
        return [item.user_id for item in self.sent]


class FailingNotifier:
    def notify(self, user_id: str, title: str, message: str, **_kwargs: object) -> None:
        raise RuntimeError("notification backend down")


@dataclass
class RecordingActivity:
    entries: list[tuple[str, str, str | None]] = field(default_factory=list)

    def record(self, case_id: str, message: str, actor_id: str | None) -> None:
        self.entries.append((case_id, message, actor_id))

    def messages(self) -> list[str]:
        return [message for _case_id, message, _actor_id in self.entries]


class FailingActivity:
    def record(self, case_id: str, message: str, actor_id: str | None) -> None:
        raise RuntimeError("activity store down")


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def activity() -> RecordingActivity:
    return RecordingActivity()


@pytest.fixture()
def make_service(
    sqlite_engine: Engine,
    notifier: RecordingNotifier,
    activity: RecordingActivity,
) -> Callable[..., TransitionService]:
    def _make(**overrides: object) -> TransitionService:
        options: dict[str, object] = {
            "repository": TaskRepository(),
            "cases": CaseService(),
            "activity": activity,
            "notifier": notifier,
            "bus": EventBus(),
            "window": BusinessWindow(start_hour=10, end_hour=19),
            "timezone": UTC,
            "clock": lambda: FIXED_NOW,
        }
        options.update(overrides)
        return TransitionService(**options)  # type: ignore[arg-type]

    return _make


@pytest.fixture()
def service(make_service: Callable[..., TransitionService]) -> TransitionService:
    return make_service()


@pytest.fixture()
def case_id(sqlite_engine: Engine) -> str:
    row = CaseService().create_case(
        CaseCreate(
            title="Villa interiors",
            client_name="Mehta",
            role_assignments={
                CaseRole.SALES: "sales-1",
                CaseRole.SITE_ENGINEER: "engineer-1",
                CaseRole.DRAWING_TEAM: "drafter-1",
                CaseRole.QUOTATION_TEAM: "quoter-1",
                CaseRole.PROCUREMENT_TEAM: "buyer-1",
                CaseRole.ADMIN: "admin-1",
            },
        )
    )
    return row.id


def actor(user_id: str) -> Actor:
    return Actor(id=user_id)
