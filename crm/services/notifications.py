import logging
from typing import Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from crm.models import Notification, User

logger = logging.getLogger(__name__)


def group_for(user_id: int) -> str:
    return f"notifications.{user_id}"


def serialize_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'type': n.type,
        'message': n.message,
        'relatedId': n.related_id or None,
        'isRead': n.is_read,
        'createdAt': n.created_at.isoformat(),
    }


def notify(user: User, message: str, *, type: str = 'general', related_id=None) -> Notification:
    """Persist a notification and push it to the user's open sockets."""
    n = Notification.objects.create(
        user=user, message=message[:512], type=type,
        related_id=str(related_id) if related_id is not None else '',
    )
    channel_layer = get_channel_layer()
    if channel_layer is not None:
        async_to_sync(channel_layer.group_send)(
            group_for(user.id),
            {"type": "notification.push", "payload": serialize_notification(n)},
        )
    return n


def list_notifications(user: User, *, unread_only: bool = False, limit: int = 50):
    qs = Notification.objects.filter(user=user)
    if unread_only:
        qs = qs.filter(is_read=False)
    unread = Notification.objects.filter(user=user, is_read=False).count()
    return [serialize_notification(n) for n in qs.order_by('-created_at', '-id')[:limit]], unread


def mark_read(user: User, ids: Optional[Iterable[int]] = None) -> int:
    qs = Notification.objects.filter(user=user, is_read=False)
    if ids:
        qs = qs.filter(id__in=list(ids))
    return qs.update(is_read=True)


def delete_notification(user: User, notification_id: int) -> bool:
    deleted, _ = Notification.objects.filter(user=user, id=notification_id).delete()
    return bool(deleted)


def clear_all(user: User) -> int:
    deleted, _ = Notification.objects.filter(user=user).delete()
    logger.info("cleared %d notifications for user %s", deleted, user.id)
    return deleted
