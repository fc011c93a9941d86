from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, DateTime, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel

from caseflow.domain.state_machine import TaskStatus

OPEN_STATUS_SQL = "status IN ('PENDING', 'STARTED')"


def now_utc() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class TaskType(StrEnum):
    SALES_CONTACT = "SALES_CONTACT"
    SITE_INSPECTION = "SITE_INSPECTION"
    DRAWING_TASK = "DRAWING_TASK"
    QUOTATION_TASK = "QUOTATION_TASK"
    PROCUREMENT_AUDIT = "PROCUREMENT_AUDIT"
    PROCUREMENT_BIDDING = "PROCUREMENT_BIDDING"
    EXECUTION_TASK = "EXECUTION_TASK"


class CaseRole(StrEnum):
    SALES = "SALES"
    SITE_ENGINEER = "SITE_ENGINEER"
    DRAWING_TEAM = "DRAWING_TEAM"
    QUOTATION_TEAM = "QUOTATION_TEAM"
    PROCUREMENT_TEAM = "PROCUREMENT_TEAM"
    EXECUTION_TEAM = "EXECUTION_TEAM"
    ADMIN = "ADMIN"


class NotificationLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True, sa_type=DateTime(timezone=True))
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class Case(SQLModel, table=True):
    __tablename__ = "cases"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str = Field(index=True)
    client_name: str | None = None
    role_assignments: dict[str, str] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True, sa_type=DateTime(timezone=True))


class CaseTask(SQLModel, table=True):
    __tablename__ = "case_tasks"
    __table_args__ = (
        UniqueConstraint("source_task_id", name="uq_case_tasks_source_task_id"),
        # One open task per type per case.
        Index(
            "uq_case_tasks_open_type",
            "case_id",
            "type",
            unique=True,
            postgresql_where=text(OPEN_STATUS_SQL),
            sqlite_where=text(OPEN_STATUS_SQL),
        ),
        Index("ix_case_tasks_case_created", "case_id", "created_at"),
        Index("ix_case_tasks_assignee_created", "assigned_to", "created_at"),
        Index("ix_case_tasks_case_type_status", "case_id", "type", "status"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    case_id: str = Field(foreign_key="cases.id", index=True)
    type: TaskType = Field(index=True)
    status: TaskStatus = Field(default=TaskStatus.PENDING, index=True)
    assigned_to: str = Field(index=True)
    assigned_by: str
    source_task_id: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=now_utc, index=True, sa_type=DateTime(timezone=True))
    started_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    completed_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    acknowledged_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    deadline: datetime | None = Field(default=None, index=True, sa_type=DateTime(timezone=True))
    km_travelled: float | None = None
    boq_uploaded: bool | None = None
    two_d_uploaded: bool | None = None
    pdf_uploaded: bool | None = None
    notes: str | None = None


class CaseActivity(SQLModel, table=True):
    __tablename__ = "case_activities"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    case_id: str = Field(index=True)
    action: str
    actor_id: str | None = Field(default=None, index=True)
    ts: datetime = Field(default_factory=now_utc, index=True, sa_type=DateTime(timezone=True))


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    title: str
    message: str
    level: NotificationLevel = Field(default=NotificationLevel.INFO)
    case_id: str | None = Field(default=None, index=True)
    task_id: str | None = Field(default=None, index=True)
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=now_utc, index=True, sa_type=DateTime(timezone=True))


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class Actor(BaseModel):
    """Identity performing a command; always passed explicitly."""

    model_config = ConfigDict(frozen=True)

    id: str


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CaseCreate(BaseModel):
    title: str
    client_name: str | None = None
    role_assignments: dict[CaseRole, str] = PydanticField(default_factory=dict)


class CaseRoleAssignRequest(BaseModel):
    user_id: str


class CaseRead(ORMReadModel):
    id: str
    title: str
    client_name: str | None
    role_assignments: dict[str, str]
    created_at: datetime


class TaskCreate(BaseModel):
    case_id: str
    type: TaskType
    assigned_to: str
    notes: str | None = None


class TaskCompletionPayload(BaseModel):
    km_travelled: float | None = PydanticField(default=None, allow_inf_nan=False)
    boq_uploaded: bool | None = None
    two_d_uploaded: bool | None = None
    pdf_uploaded: bool | None = None
    notes: str | None = None


class TaskRead(ORMReadModel):
    id: str
    case_id: str
    type: TaskType
    status: TaskStatus
    assigned_to: str
    assigned_by: str
    source_task_id: str | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    acknowledged_at: datetime | None
    deadline: datetime | None
    km_travelled: float | None
    boq_uploaded: bool | None
    two_d_uploaded: bool | None
    pdf_uploaded: bool | None
    notes: str | None
    is_overdue: bool = False

    @field_validator("created_at", "started_at", "completed_at", "acknowledged_at", "deadline")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class TaskCompleteRead(BaseModel):
    task: TaskRead
    next_task_id: str | None


class CaseActivityRead(ORMReadModel):
    id: str
    case_id: str
    action: str
    actor_id: str | None
    ts: datetime


class NotificationRead(ORMReadModel):
    id: str
    user_id: str
    title: str
    message: str
    level: NotificationLevel
    case_id: str | None
    task_id: str | None
    read: bool
    created_at: datetime
