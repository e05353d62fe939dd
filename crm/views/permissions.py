"""
Permission document endpoints.

Admins grant module permissions to clinics per portal role; clinic
owners, doctors and admins narrow them down for the agents they manage.
Clinic-side users can read the flags that apply to them, which the
portals use to hide buttons.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.models import AgentPermission, ClinicPermission, User
from crm.permissions import HasRole, IsAdminRole, IsClinicSide
from crm.serializers.permissions import AgentPermissionSerializer, ClinicPermissionSerializer
from crm.services.audit import log_action
from crm.services.permissions import (
    CRUD_ACTIONS,
    agent_permission_doc,
    clinic_permission_doc,
    clinic_role_for,
    effective_actions,
    find_module,
)
from crm.services.sidebar import invalidate_sidebars
from crm.services.tenancy import AGENT_ROLES, resolve_clinic
from crm.views.base import fail, ok, service_errors, tenant


def _doc_payload(doc):
    if doc is None:
        return None
    return {
        'id': doc.id,
        'permissions': doc.permissions,
        'isActive': doc.is_active,
        'updatedAt': (getattr(doc, 'updated_at', None) or doc.last_modified).isoformat(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicSide])
@service_errors
def clinic_permissions(request):
    """Flags that apply to the caller.

    With ``moduleKey`` the CRUD flags for that module (and optional
    ``subModuleName``) are returned, otherwise the whole document.
    """
    user = request.user
    module_key = request.query_params.get('moduleKey')
    sub_name = request.query_params.get('subModuleName')
    if user.role == 'admin':
        if module_key:
            return ok(permissions={a: True for a in CRUD_ACTIONS}, isAdmin=True)
        return ok(data=None, isAdmin=True)

    clinic = resolve_clinic(user)
    doc, configured = clinic_permission_doc(clinic, clinic_role_for(user))
    if not module_key:
        return ok(data=_doc_payload(doc), configured=configured)

    if doc is None:
        # an unconfigured clinic is not restricted
        flags = {a: not configured for a in CRUD_ACTIONS}
    elif find_module(doc.permissions, module_key) is None:
        flags = {a: True for a in CRUD_ACTIONS}
    else:
        flags = effective_actions(doc.permissions, module_key, sub_name)
    if user.role in AGENT_ROLES:
        agent_doc = agent_permission_doc(user)
        agent_flags = effective_actions(agent_doc.permissions if agent_doc else [], module_key, sub_name)
        flags = {a: flags[a] and agent_flags[a] for a in CRUD_ACTIONS}
    return ok(permissions=flags, moduleKey=module_key, subModuleName=sub_name)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
@service_errors
def admin_clinic_permissions(request):
    if request.method == 'GET':
        clinic = tenant(request)
        docs = ClinicPermission.objects.filter(clinic=clinic).order_by('role')
        return ok(data=[{**_doc_payload(d), 'role': d.role} for d in docs], clinicId=clinic.id)

    s = ClinicPermissionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    clinic = tenant(request)
    doc, created = ClinicPermission.objects.update_or_create(
        clinic=clinic, role=vd['role'],
        defaults={'permissions': vd['permissions'], 'is_active': True, 'granted_by': request.user},
    )
    log_action(user=request.user, action='clinic_permissions_set', object_type='clinic_permission',
               object_id=doc.id, clinic=clinic, detail={'role': vd['role'], 'modules': len(vd['permissions'])})
    invalidate_sidebars()
    return ok('Permissions saved', status_code=201 if created else 200, data={**_doc_payload(doc), 'role': doc.role})


def _managed_agent(user, agent_id):
    """The agent ``user`` may grant permissions to."""
    agent = User.objects.filter(id=agent_id, role__in=AGENT_ROLES).first()
    if agent is None:
        raise LookupError('Agent not found')
    if user.role == 'admin' or agent.created_by_id == user.id:
        return agent
    clinic = resolve_clinic(user)
    if clinic is not None and agent.clinic_id == clinic.id:
        return agent
    raise PermissionError('You can only manage permissions of agents in your clinic')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasRole('admin', 'clinic', 'doctor', 'agent', 'doctorStaff')])
@service_errors
def agent_permissions(request):
    user = request.user
    if request.method == 'GET':
        agent_id = request.query_params.get('agentId')
        if user.role in AGENT_ROLES:
            if agent_id and str(agent_id) != str(user.id):
                return fail('Access denied', 403)
            agent = user
        else:
            if not agent_id:
                return fail('agentId is required')
            agent = _managed_agent(user, agent_id)
        doc = AgentPermission.objects.filter(agent=agent).first()
        return ok(data=_doc_payload(doc), agentId=agent.id)

    if user.role in AGENT_ROLES:
        return fail('Access denied', 403)
    s = AgentPermissionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    agent = _managed_agent(user, vd['agentId'])
    doc, created = AgentPermission.objects.update_or_create(
        agent=agent,
        defaults={'permissions': vd['permissions'], 'is_active': True, 'granted_by': user},
    )
    log_action(user=user, action='agent_permissions_set', object_type='agent_permission', object_id=doc.id,
               clinic=agent.clinic, detail={'agent': agent.id, 'modules': len(vd['permissions'])})
    invalidate_sidebars()
    return ok('Permissions saved', status_code=201 if created else 200, data=_doc_payload(doc))
