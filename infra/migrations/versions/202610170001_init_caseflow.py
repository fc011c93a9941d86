"""init caseflow tables

Revision ID: 202610170001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610170001"
down_revision = None
branch_labels = None
depends_on = None

OPEN_STATUS_SQL = "status IN ('PENDING', 'STARTED')"

# Enum members are stored by name.
task_type = sa.Enum(
    "SALES_CONTACT",
    "SITE_INSPECTION",
    "DRAWING_TASK",
    "QUOTATION_TASK",
    "PROCUREMENT_AUDIT",
    "PROCUREMENT_BIDDING",
    "EXECUTION_TASK",
    name="tasktype",
)
task_status = sa.Enum("PENDING", "STARTED", "COMPLETED", "ACKNOWLEDGED", name="taskstatus")
notification_level = sa.Enum("INFO", "SUCCESS", "WARNING", "ERROR", name="notificationlevel")


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("correlation_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_correlation_id", "events", ["correlation_id"])

    op.create_table(
        "cases",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=True),
        sa.Column("role_assignments", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cases_title", "cases", ["title"])
    op.create_index("ix_cases_created_at", "cases", ["created_at"])

    op.create_table(
        "case_tasks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("case_id", sa.String(), nullable=False),
        sa.Column("type", task_type, nullable=False),
        sa.Column("status", task_status, nullable=False),
        sa.Column("assigned_to", sa.String(), nullable=False),
        sa.Column("assigned_by", sa.String(), nullable=False),
        sa.Column("source_task_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("km_travelled", sa.Float(), nullable=True),
        sa.Column("boq_uploaded", sa.Boolean(), nullable=True),
        sa.Column("two_d_uploaded", sa.Boolean(), nullable=True),
        sa.Column("pdf_uploaded", sa.Boolean(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_task_id", name="uq_case_tasks_source_task_id"),
    )
    op.create_index("ix_case_tasks_case_id", "case_tasks", ["case_id"])
    op.create_index("ix_case_tasks_type", "case_tasks", ["type"])
    op.create_index("ix_case_tasks_status", "case_tasks", ["status"])
    op.create_index("ix_case_tasks_assigned_to", "case_tasks", ["assigned_to"])
    op.create_index("ix_case_tasks_created_at", "case_tasks", ["created_at"])
    op.create_index("ix_case_tasks_deadline", "case_tasks", ["deadline"])
    op.create_index("ix_case_tasks_case_created", "case_tasks", ["case_id", "created_at"])
    op.create_index("ix_case_tasks_assignee_created", "case_tasks", ["assigned_to", "created_at"])
    op.create_index("ix_case_tasks_case_type_status", "case_tasks", ["case_id", "type", "status"])
    op.create_index(
        "uq_case_tasks_open_type",
        "case_tasks",
        ["case_id", "type"],
        unique=True,
        postgresql_where=sa.text(OPEN_STATUS_SQL),
        sqlite_where=sa.text(OPEN_STATUS_SQL),
    )

    op.create_table(
        "case_activities",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("case_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_activities_case_id", "case_activities", ["case_id"])
    op.create_index("ix_case_activities_actor_id", "case_activities", ["actor_id"])
    op.create_index("ix_case_activities_ts", "case_activities", ["ts"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("level", notification_level, nullable=False),
        sa.Column("case_id", sa.String(), nullable=True),
        sa.Column("task_id", sa.String(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_case_id", "notifications", ["case_id"])
    op.create_index("ix_notifications_task_id", "notifications", ["task_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_index("ix_notifications_task_id", table_name="notifications")
    op.drop_index("ix_notifications_case_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_case_activities_ts", table_name="case_activities")
    op.drop_index("ix_case_activities_actor_id", table_name="case_activities")
    op.drop_index("ix_case_activities_case_id", table_name="case_activities")
    op.drop_table("case_activities")

    op.drop_index("uq_case_tasks_open_type", table_name="case_tasks")
    op.drop_index("ix_case_tasks_case_type_status", table_name="case_tasks")
    op.drop_index("ix_case_tasks_assignee_created", table_name="case_tasks")
    op.drop_index("ix_case_tasks_case_created", table_name="case_tasks")
    op.drop_index("ix_case_tasks_deadline", table_name="case_tasks")
    op.drop_index("ix_case_tasks_created_at", table_name="case_tasks")
    op.drop_index("ix_case_tasks_assigned_to", table_name="case_tasks")
    op.drop_index("ix_case_tasks_status", table_name="case_tasks")
    op.drop_index("ix_case_tasks_type", table_name="case_tasks")
    op.drop_index("ix_case_tasks_case_id", table_name="case_tasks")
    op.drop_table("case_tasks")

    op.drop_index("ix_cases_created_at", table_name="cases")
    op.drop_index("ix_cases_title", table_name="cases")
    op.drop_table("cases")

    op.drop_index("ix_events_correlation_id", table_name="events")
    op.drop_index("ix_events_actor_id", table_name="events")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")

    bind = op.get_bind()
    for enum_type in (notification_level, task_status, task_type):
        enum_type.drop(bind, checkfirst=True)
