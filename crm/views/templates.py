import logging

import requests
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.permissions import HasRole, ModulePermission
from crm.serializers.templates import TemplateSerializer
from crm.services import templates as template_service
from crm.views.base import fail, ok, service_errors, tenant

logger = logging.getLogger(__name__)

TEMPLATE_ROLES = HasRole('admin', 'clinic', 'agent', 'doctor')


@api_view(['GET'])
@permission_classes([IsAuthenticated, TEMPLATE_ROLES, ModulePermission('all_templates', 'read')])
@service_errors
def list_templates(request):
    clinic = tenant(request)
    return ok(data=template_service.list_templates(clinic, request.query_params.get('templateType')))


@api_view(['POST'])
@permission_classes([IsAuthenticated, TEMPLATE_ROLES, ModulePermission('all_templates', 'create')])
@service_errors
def create_template(request):
    clinic = tenant(request)
    s = TemplateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        t = template_service.create_template(request.user, clinic, s.validated_data)
    except (RuntimeError, requests.RequestException) as e:
        logger.warning("whatsapp template creation failed for clinic %s: %s", clinic.id, e)
        return fail(str(e), 502)
    return ok('Template created successfully.', status_code=201, data=template_service.serialize_template(t))


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, TEMPLATE_ROLES, ModulePermission('all_templates')])
@service_errors
def edit_template(request, template_id):
    clinic = tenant(request)
    t = template_service.get_template(clinic, template_id)
    if request.method == 'GET':
        return ok(data=template_service.serialize_template(t))
    s = TemplateSerializer(t, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    try:
        t = template_service.update_template(request.user, clinic, t, s.validated_data)
    except (RuntimeError, requests.RequestException) as e:
        logger.warning("whatsapp template update failed for clinic %s: %s", clinic.id, e)
        return fail(str(e), 502)
    return ok('Template updated successfully', data=template_service.serialize_template(t))
