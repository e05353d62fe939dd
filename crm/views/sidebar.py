from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.models import NavigationItem
from crm.permissions import IsAdminRole, IsClinicSide
from crm.services import sidebar as sidebar_service
from crm.services.audit import log_action
from crm.views.base import ok, service_errors


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicSide])
@service_errors
def clinic_sidebar(request):
    data = sidebar_service.cached_sidebar('clinic', request.user, sidebar_service.clinic_sidebar)
    return ok(**data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@service_errors
def agent_sidebar(request):
    data = sidebar_service.cached_sidebar('agent', request.user, sidebar_service.agent_sidebar)
    return ok(**data)


def _nav_payload(item):
    return {
        'id': item.id,
        'role': item.role,
        'label': item.label,
        'path': item.path,
        'icon': item.icon,
        'description': item.description,
        'order': item.order,
        'moduleKey': item.module_key,
        'subModules': item.sub_modules,
        'isActive': item.is_active,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
@service_errors
def navigation_items(request):
    """List navigation items of a role, or create/update one by ``moduleKey``."""
    if request.method == 'GET':
        qs = NavigationItem.objects.all()
        role = request.query_params.get('role')
        if role:
            qs = qs.filter(role=role)
        return ok(data=[_nav_payload(i) for i in qs])

    item, created = sidebar_service.save_navigation_item(request.data)
    log_action(user=request.user, action='navigation_save', object_type='navigation_item', object_id=item.id)
    return ok(data=_nav_payload(item), status_code=201 if created else 200)
