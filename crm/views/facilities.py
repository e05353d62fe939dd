"""Rooms and departments share one CRUD shape."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.permissions import IsClinicSide, ModulePermission
from crm.services import facilities
from crm.views.base import ok, service_errors, tenant


def _item_id(request, kind):
    key = f'{kind}Id'
    return (request.query_params.get('id') or request.query_params.get(key)
            or request.data.get('id') or request.data.get(key))


def _handle(request, kind):
    clinic = tenant(request)
    label = kind.capitalize()
    if request.method == 'GET':
        return ok(**{f'{kind}s': facilities.list_items(kind, clinic)})
    if request.method == 'POST':
        obj = facilities.create_item(kind, request.user, clinic, request.data.get('name'))
        return ok(f'{label} created successfully', status_code=201, **{kind: facilities.serialize(obj)})
    if request.method == 'PUT':
        obj = facilities.rename_item(kind, request.user, clinic, _item_id(request, kind), request.data.get('name'))
        return ok(f'{label} updated successfully', **{kind: facilities.serialize(obj)})
    facilities.delete_item(kind, request.user, clinic, _item_id(request, kind))
    return ok(f'{label} deleted successfully')


@api_view(['GET', 'POST', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('room_management')])
@service_errors
def rooms(request):
    return _handle(request, 'room')


@api_view(['GET', 'POST', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('room_management')])
@service_errors
def departments(request):
    return _handle(request, 'department')
