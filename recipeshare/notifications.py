"""Notification fan-out and read-acknowledgment.

Notifications are written as a side effect of another user's action and are
owned by their recipient. Nobody is ever notified about their own action:
:func:`notify` drops those centrally so callers do not repeat the check.
"""

from sqlmodel import Session

from recipeshare.config import settings
from recipeshare.exceptions import Forbidden, NotFound
from recipeshare.logging import logger
from recipeshare.metrics import notifications_created_total
from recipeshare.models import NotificationRow, NotificationType
from recipeshare.repository import Repository
from recipeshare.types import NotificationView


def notify(
    session: Session,
    recipient_id: str,
    actor_id: str,
    type: NotificationType,
    message: str,
    related_recipe_id: str | None = None,
) -> NotificationRow | None:
    """Write one notification for ``recipient_id`` about ``actor_id``'s action.

    Args:
        session: Session of the current unit of work
        recipient_id: User who receives the notification
        actor_id: User whose action triggered it; stored as related_user_id
        type: Notification kind
        message: Human-readable text
        related_recipe_id: Recipe the action was about, if any

    Returns:
        The new row, or None when recipient and actor are the same user
    """
    if recipient_id == actor_id:
        return None

    row = Repository(session, NotificationRow).add(
        NotificationRow(
            user_id=recipient_id,
            type=type.value,
            message=message,
            related_recipe_id=related_recipe_id,
            related_user_id=actor_id,
        )
    )
    notifications_created_total.labels(type=type.value).inc()
    logger.debug(f"Notified {recipient_id} ({type.value})")
    return row


def to_view(row: NotificationRow) -> NotificationView:
    return {
        "id": row.id,
        "type": row.type,
        "message": row.message,
        "is_read": row.is_read,
        "related_recipe_id": row.related_recipe_id,
        "related_user_id": row.related_user_id,
        "created_at": row.created_at,
    }


def list_notifications(
    session: Session,
    user_id: str,
    limit: int | None = None,
) -> list[NotificationView]:
    """Return the newest notifications of a user, read or not.

    Args:
        session: Session of the current unit of work
        user_id: Recipient
        limit: Maximum rows (defaults to settings.notification_limit)
    """
    rows = Repository(session, NotificationRow).find_by(
        order_by=NotificationRow.created_at.desc(),
        limit=limit or settings.notification_limit,
        user_id=user_id,
    )
    return [to_view(row) for row in rows]


def unread_count(session: Session, user_id: str, limit: int | None = None) -> int:
    """Count unread entries within the listing the user actually sees."""
    return sum(1 for note in list_notifications(session, user_id, limit) if not note["is_read"])


def mark_read(session: Session, notification_id: str, caller_id: str) -> None:
    """Mark a notification read on behalf of its recipient.

    Raises:
        NotFound: If the notification does not exist
        Forbidden: If the caller is not the recipient
    """
    notifications = Repository(session, NotificationRow)
    row = notifications.get(notification_id)
    if row is None:
        raise NotFound("Notification not found")
    if row.user_id != caller_id:
        raise Forbidden("Not authorized")
    if not row.is_read:
        row.is_read = True
        notifications.add(row)


__all__ = ["notify", "list_notifications", "unread_count", "mark_read", "to_view"]
