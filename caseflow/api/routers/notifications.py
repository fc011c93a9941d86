from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from caseflow.api.deps import get_current_actor
from caseflow.domain.models import Actor, NotificationRead
from caseflow.infra.notifications import SqlNotificationSink

router = APIRouter()


def get_notification_store() -> SqlNotificationSink:
    return SqlNotificationSink()


@router.get("", response_model=list[NotificationRead])
def list_my_notifications(
    actor: Annotated[Actor, Depends(get_current_actor)],
    store: Annotated[SqlNotificationSink, Depends(get_notification_store)],
    unread_only: bool = False,
) -> list[NotificationRead]:
    rows = store.list_for_user(actor.id, unread_only=unread_only)
    return [NotificationRead.model_validate(item) for item in rows]
