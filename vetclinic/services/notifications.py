from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth_models import User
from ..db import db_session
from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..models import NotificationLog, NotificationStatus, NotificationType

logger = logging.getLogger(__name__)


def notification_flat(n: NotificationLog) -> dict:
    return {
        "id": n.id,
        "recipient_id": n.recipient_id,
        "notification_type": n.notification_type.value,
        "subject": n.subject,
        "content": n.content,
        "delivery_status": n.delivery_status.value,
        "sent_at": n.sent_at.isoformat(),
        "delivered_at": n.delivered_at.isoformat() if n.delivered_at else None,
        "error_message": n.error_message,
        "related_entity_type": n.related_entity_type,
        "related_entity_id": n.related_entity_id,
    }


def queue_notification(
    s: Session,
    recipient_id: str,
    notification_type: NotificationType,
    content: str,
    subject: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> NotificationLog:
    """Add a pending notification inside the caller's transaction."""
    n = NotificationLog(
        recipient_id=recipient_id,
        notification_type=notification_type,
        subject=subject,
        content=content,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        delivery_status=NotificationStatus.PENDING,
    )
    s.add(n)
    return n


def create_notification(
    recipient_id: str,
    notification_type: str,
    content: str,
    subject: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> dict:
    if not recipient_id or not notification_type or not (content or "").strip():
        raise ValidationError("Recipient ID, notification type, and content are required.")
    try:
        ntype = NotificationType(notification_type)
    except ValueError:
        raise ValidationError(f"Invalid notification type: {notification_type}") from None

    with db_session() as s:
        if s.get(User, recipient_id) is None:
            raise NotFoundError("Recipient not found.")
        n = queue_notification(s, recipient_id, ntype, content.strip(), subject, related_entity_type, related_entity_id)
        s.flush()
        return notification_flat(n)


def list_for_user(user_id: str, limit: int = 20) -> list[dict]:
    with db_session() as s:
        q = (
            select(NotificationLog)
            .where(NotificationLog.recipient_id == user_id)
            .order_by(NotificationLog.sent_at.desc())
            .limit(limit)
        )
        return [notification_flat(n) for n in s.scalars(q)]


def unread_count(user_id: str) -> int:
    with db_session() as s:
        q = select(func.count(NotificationLog.id)).where(
            NotificationLog.recipient_id == user_id,
            NotificationLog.delivery_status != NotificationStatus.DELIVERED,
        )
        return int(s.scalar(q) or 0)


def update_status(notification_id: str, delivery_status: str | None = None, acting_user_id: str | None = None,
                  is_admin: bool = False, error_message: str | None = None) -> dict:
    """Default transition is to ``delivered`` (the bell marks as read)."""
    try:
        status = NotificationStatus(delivery_status or NotificationStatus.DELIVERED.value)
    except ValueError:
        raise ValidationError(f"Invalid delivery status: {delivery_status}") from None

    with db_session() as s:
        n = s.get(NotificationLog, notification_id)
        if not n:
            raise NotFoundError("Notification not found.")
        if not is_admin and acting_user_id is not None and n.recipient_id != acting_user_id:
            raise PermissionDenied("Not your notification.")

        n.delivery_status = status
        if status == NotificationStatus.DELIVERED:
            n.delivered_at = datetime.now()
        if status == NotificationStatus.FAILED:
            n.error_message = error_message
        return notification_flat(n)


def pending_notifications(limit: int = 50) -> list[dict]:
    """Queue read by the dispatcher (CLI ``notifications``)."""
    with db_session() as s:
        q = (
            select(NotificationLog)
            .where(NotificationLog.delivery_status == NotificationStatus.PENDING)
            .order_by(NotificationLog.sent_at.asc())
            .limit(limit)
        )
        return [notification_flat(n) for n in s.scalars(q)]


def mark_sent(notification_id: str) -> bool:
    with db_session() as s:
        n = s.get(NotificationLog, notification_id)
        if not n or n.delivery_status != NotificationStatus.PENDING:
            return False
        n.delivery_status = NotificationStatus.SENT
        return True
