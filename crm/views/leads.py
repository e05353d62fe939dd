"""
Lead management views.

All endpoints are tenant scoped: the clinic comes from the caller, or
from ``clinicId`` for admins.  Module grants are checked through
:func:`crm.permissions.ModulePermission`.
"""
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated

from crm.models import Lead
from crm.permissions import IsClinicSide, ModulePermission
from crm.serializers.leads import (
    LeadAssignSerializer,
    LeadCreateSerializer,
    LeadFilterSerializer,
    LeadImportSerializer,
)
from crm.services import leads as lead_service
from crm.views.base import fail, ok, service_errors, tenant


def _get_lead(clinic, lead_id):
    try:
        lead_id = int(lead_id)
    except (TypeError, ValueError):
        raise ValueError('Valid leadId is required')
    lead = Lead.objects.filter(clinic=clinic, id=lead_id).first()
    if lead is None:
        raise LookupError('Lead not found')
    return lead


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('lead', 'create', 'Create Lead')])
@service_errors
def create_lead(request):
    clinic = tenant(request)
    s = LeadCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    lead = lead_service.create_lead(request.user, clinic, s.validated_data)
    return ok('Lead created successfully', status_code=201, lead=lead_service.serialize_lead(lead))


@api_view(['POST'])
@parser_classes([MultiPartParser, FormParser])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('lead', 'create')])
@service_errors
def import_leads(request):
    upload = request.FILES.get('file')
    if upload is None:
        return fail('No file uploaded')
    clinic = tenant(request)
    s = LeadImportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = lead_service.import_leads(request.user, clinic, upload, s.validated_data)
    if not result['created']:
        return fail('No valid leads to import', skipped=result['skipped'])
    return ok(f"{result['created']} leads imported", status_code=201, **result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('lead', 'read')])
@service_errors
def lead_filter(request):
    clinic = tenant(request)
    q = LeadFilterSerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, pagination = lead_service.filter_leads(
        clinic,
        treatment=vd.get('treatment'),
        offer=vd.get('offer'),
        source=vd.get('source'),
        status=vd.get('status'),
        name=vd.get('name'),
        start_date=vd.get('startDate'),
        end_date=vd.get('endDate'),
        page=vd.get('page'),
        limit=vd.get('limit'),
    )
    return ok(leads=items, pagination=pagination)


def _assign(request, replace):
    clinic = tenant(request)
    s = LeadAssignSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    lead = _get_lead(clinic, s.validated_data['leadId'])
    lead_service.assign_lead(request.user, clinic, lead, s.validated_data['assignedTo'], replace=replace)
    lead = Lead.objects.prefetch_related('notes', 'follow_ups', 'assignments__user').get(id=lead.id)
    return ok('Lead reassigned' if replace else 'Lead assigned', lead=lead_service.serialize_lead(lead))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('lead', 'update')])
@service_errors
def assign_lead(request):
    return _assign(request, replace=False)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('lead', 'update')])
@service_errors
def reassign_lead(request):
    return _assign(request, replace=True)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('lead', 'delete')])
@service_errors
def delete_lead(request):
    clinic = tenant(request)
    lead_id = request.query_params.get('leadId') or request.data.get('leadId')
    lead = _get_lead(clinic, lead_id)
    lead_service.delete_lead(request.user, clinic, lead)
    return ok('Lead deleted successfully')
