from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.services import notifications as notification_service
from crm.views.base import fail, ok


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_notifications(request):
    unread_only = request.query_params.get('unread') in ('1', 'true')
    try:
        limit = min(200, max(1, int(request.query_params.get('limit') or 50)))
    except ValueError:
        return fail('limit must be a number')
    items, unread = notification_service.list_notifications(request.user, unread_only=unread_only, limit=limit)
    return ok(notifications=items, unreadCount=unread)


@api_view(['POST', 'PUT'])
@permission_classes([IsAuthenticated])
def mark_read(request):
    ids = request.data.get('ids')
    if ids is None and request.data.get('id') is not None:
        ids = [request.data.get('id')]
    if ids is not None:
        if not isinstance(ids, list):
            return fail('ids must be an array')
        try:
            ids = [int(i) for i in ids]
        except (TypeError, ValueError):
            return fail('ids must be numbers')
    updated = notification_service.mark_read(request.user, ids)
    return ok(updated=updated)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def delete_notification(request):
    try:
        nid = int(request.query_params.get('id'))
    except (TypeError, ValueError):
        return fail('Notification id is required')
    if not notification_service.delete_notification(request.user, nid):
        return fail('Notification not found', 404)
    return ok('Notification deleted')


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def clear_all(request):
    deleted = notification_service.clear_all(request.user)
    return ok('All notifications cleared', deleted=deleted)
