from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.permissions import HasRole, ModulePermission
from crm.serializers.agents import AgentActionSerializer, AgentCreateSerializer
from crm.services import agents as agent_service
from crm.views.base import ok, service_errors, tenant

MANAGER_ROLES = HasRole('admin', 'clinic', 'doctor')


@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated, MANAGER_ROLES, ModulePermission('create_agent')])
@service_errors
def agents(request):
    """List, create and approve/decline the agents and doctorStaff of a tenant."""
    clinic = tenant(request, required=False)
    if request.method == 'GET':
        qs = agent_service.members_for(request.user, clinic, request.query_params.get('role'))
        return ok(agents=[agent_service.serialize_agent(a) for a in qs])

    if request.method == 'POST':
        s = AgentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        agent = agent_service.create_agent(request.user, clinic, s.validated_data)
        return ok('Agent created successfully', status_code=201, agent=agent_service.serialize_agent(agent))

    s = AgentActionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    agent = agent_service.get_member(request.user, clinic, vd['agentId'])
    agent = agent_service.update_member(request.user, agent, vd['action'], vd.get('newPassword'))
    return ok(agent=agent_service.serialize_agent(agent))


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, MANAGER_ROLES, ModulePermission('create_agent')])
@service_errors
def delete_agent(request):
    clinic = tenant(request, required=False)
    agent_id = request.query_params.get('agentId') or request.data.get('agentId')
    agent = agent_service.get_member(request.user, clinic, agent_id)
    deleted = agent_service.delete_member(request.user, agent)
    return ok('Agent deleted successfully', deletedUser=deleted)
