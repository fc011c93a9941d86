"""Assignment alerts.

Every sink here is fire-and-forget from the engine's point of view. The default
sink stores one row per user alert; ``RedisNotificationSink`` additionally
pushes the alert onto a pub/sub channel so a UI can refresh without polling.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from typing import Protocol

from redis import Redis
from sqlmodel import Session, col, select

from caseflow.domain.models import Notification, NotificationLevel
from caseflow.infra.db import get_engine
from caseflow.infra.redis_state import get_redis

logger = logging.getLogger(__name__)

NOTIFY_REDIS_CHANNEL = os.getenv("NOTIFY_REDIS_CHANNEL")


class NotificationSink(Protocol):
    def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        *,
        level: NotificationLevel = NotificationLevel.INFO,
        case_id: str | None = None,
        task_id: str | None = None,
    ) -> None: ...


class SqlNotificationSink:
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
        row = Notification(
            user_id=user_id,
            title=title,
            message=message,
            level=level,
            case_id=case_id,
            task_id=task_id,
        )
        with Session(get_engine()) as session:
            session.add(row)
            session.commit()

    def list_for_user(self, user_id: str, *, unread_only: bool = False) -> list[Notification]:
        with Session(get_engine(), expire_on_commit=False) as session:
            statement = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                statement = statement.where(col(Notification.read).is_(False))
            statement = statement.order_by(col(Notification.created_at).desc())
            return list(session.exec(statement).all())


class RedisNotificationSink:
    def __init__(self, channel: str, client: Redis | None = None) -> None:
        self._channel = channel
        self._client = client

    def _redis(self) -> Redis:
        return self._client if self._client is not None else get_redis()

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
        body = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "level": str(level),
            "case_id": case_id,
            "task_id": task_id,
        }
        self._redis().publish(self._channel, json.dumps(body))


class FanoutNotificationSink:
    """Deliver to every sink; one failing sink does not stop the others."""

    def __init__(self, sinks: Sequence[NotificationSink]) -> None:
        self._sinks = list(sinks)

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
        for sink in self._sinks:
            notify_safely(
                sink,
                user_id,
                title,
                message,
                level=level,
                case_id=case_id,
                task_id=task_id,
            )


def default_notifier() -> NotificationSink:
    sinks: list[NotificationSink] = [SqlNotificationSink()]
    if NOTIFY_REDIS_CHANNEL:
        sinks.append(RedisNotificationSink(NOTIFY_REDIS_CHANNEL))
    return FanoutNotificationSink(sinks)


def notify_safely(
    sink: NotificationSink,
    user_id: str,
    title: str,
    message: str,
    *,
    level: NotificationLevel = NotificationLevel.INFO,
    case_id: str | None = None,
    task_id: str | None = None,
) -> bool:
    if not user_id or not user_id.strip():
        logger.warning("skipping notification %r: empty user id", title)
        return False
    try:
        sink.notify(user_id, title, message, level=level, case_id=case_id, task_id=task_id)
    except Exception:
        logger.exception("notification delivery failed for user %s: %s", user_id, title)
        return False
    return True
