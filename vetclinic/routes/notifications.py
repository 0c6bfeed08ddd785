from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..deps import admin_only, get_actor
from ..schemas import NotificationIn, NotificationStatusIn
from ..services import notifications
from ..services.access import Actor

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
def api_my_notifications(
    limit: int = Query(20, ge=1, le=200),
    user_id: str | None = Query(None),
    actor: Actor = Depends(get_actor),
) -> dict:
    # only admins may read someone else's inbox
    target = user_id if (user_id and actor.is_admin) else actor.user_id
    return {
        "notifications": notifications.list_for_user(target, limit),
        "unread": notifications.unread_count(target),
    }


@router.get("/pending", dependencies=[Depends(admin_only)])
def api_pending(limit: int = Query(50, ge=1, le=500)) -> list[dict]:
    return notifications.pending_notifications(limit)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(admin_only)])
def api_create_notification(payload: NotificationIn) -> dict:
    return notifications.create_notification(**payload.model_dump())


@router.patch("/{notification_id}")
def api_update_notification(
    notification_id: str,
    payload: NotificationStatusIn,
    actor: Actor = Depends(get_actor),
) -> dict:
    return notifications.update_status(
        notification_id,
        delivery_status=payload.delivery_status,
        acting_user_id=actor.user_id,
        is_admin=actor.is_admin,
        error_message=payload.error_message,
    )
