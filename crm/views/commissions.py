from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.permissions import HasRole
from crm.services import commissions as commission_service
from crm.services.permissions import check_user_permission
from crm.views.base import fail, ok, service_errors, tenant

COMMISSION_ROLES = HasRole('admin', 'clinic', 'agent', 'doctor', 'doctorStaff')


def _int_param(request, name, default):
    try:
        return int(request.query_params.get(name) or default)
    except ValueError:
        raise ValueError(f'{name} must be a number')


@api_view(['GET'])
@permission_classes([IsAuthenticated, COMMISSION_ROLES])
@service_errors
def commissions_by_person(request):
    clinic = tenant(request)
    result = check_user_permission(request.user, 'clinic_commission', 'read', clinic=clinic)
    if not result.allowed:
        return fail(result.error or 'Permission denied', 403)
    qp = request.query_params
    data = commission_service.by_person(
        clinic, qp.get('source') or '', referral_id=qp.get('referralId'), staff_id=qp.get('staffId'),
    )
    return ok(**data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, COMMISSION_ROLES])
@service_errors
def commission_trends(request):
    """Totals per period; callers without the grant get an empty series."""
    clinic = tenant(request)
    if not check_user_permission(request.user, 'clinic_commission', 'read', clinic=clinic).allowed:
        return ok(items=[])
    qp = request.query_params
    items = commission_service.trends(
        clinic,
        source=qp.get('source') or None,
        period=qp.get('period') or 'monthly',
        months=_int_param(request, 'months', 0) or None,
        limit=min(365, max(1, _int_param(request, 'limit', 30))),
    )
    return ok(items=items)
