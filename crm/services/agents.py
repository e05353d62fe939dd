"""Agent and doctorStaff accounts managed by clinic-side users."""
import logging
from typing import Optional

from django.db import transaction

from crm.models import AgentPermission, Clinic, User
from crm.services.audit import log_action
from crm.services.tenancy import AGENT_ROLES

logger = logging.getLogger(__name__)

MEMBER_ACTIONS = ('approve', 'decline', 'resetPassword')


def serialize_agent(u: User) -> dict:
    return {
        '_id': u.id,
        'id': u.id,
        'name': u.display_name,
        'email': u.email,
        'phone': u.phone,
        'role': u.role,
        'clinicId': u.clinic_id,
        'isApproved': u.is_active,
        'createdBy': u.created_by_id,
        'createdAt': u.date_joined.isoformat(),
    }


@transaction.atomic
def create_agent(creator: User, clinic: Optional[Clinic], data: dict) -> User:
    role = data.get('role') or User.ROLE_AGENT
    if role not in AGENT_ROLES:
        raise ValueError('Role must be agent or doctorStaff')
    if role == User.ROLE_DOCTOR_STAFF and creator.role == User.ROLE_DOCTOR:
        raise PermissionError('Doctors can only create agents')
    email = data['email'].strip().lower()
    if User.objects.filter(username__iexact=email).exists() or User.objects.filter(email__iexact=email).exists():
        raise ValueError('A user with this email already exists')
    first, _, last = data['name'].strip().partition(' ')
    agent = User(
        username=email,
        email=email,
        first_name=first,
        last_name=last.strip(),
        phone=data.get('phone') or '',
        role=role,
        clinic=clinic,
        created_by=creator,
    )
    agent.set_password(data['password'])
    agent.save()
    AgentPermission.objects.create(agent=agent, permissions=[], granted_by=creator)
    log_action(user=creator, action='agent_create', object_type='user', object_id=agent.id,
               clinic=clinic, detail={'role': role})
    return agent


def members_for(user: User, clinic: Optional[Clinic], role: Optional[str] = None):
    """Agents visible to ``user``: the clinic's members, or for admin, the ones they created."""
    qs = User.objects.filter(role__in=AGENT_ROLES)
    if clinic is not None:
        qs = qs.filter(clinic=clinic)
    else:
        qs = qs.filter(created_by=user)
    if role:
        qs = qs.filter(role=role)
    return qs.order_by('-date_joined', '-id')


def get_member(user: User, clinic: Optional[Clinic], agent_id) -> User:
    try:
        agent_id = int(agent_id)
    except (TypeError, ValueError):
        raise ValueError('agentId is required')
    agent = members_for(user, clinic).filter(id=agent_id).first()
    if agent is None:
        raise LookupError('Agent not found')
    return agent


def update_member(user: User, agent: User, action: str, new_password: Optional[str] = None) -> User:
    if action not in MEMBER_ACTIONS:
        raise ValueError('Invalid action')
    if action == 'resetPassword':
        if not new_password or len(new_password) < 6:
            raise ValueError('Password must be at least 6 characters')
        agent.set_password(new_password)
        agent.save(update_fields=['password'])
    else:
        agent.is_active = action == 'approve'
        agent.save(update_fields=['is_active'])
    log_action(user=user, action=f'agent_{action}', object_type='user', object_id=agent.id, clinic=agent.clinic)
    return agent


def delete_member(user: User, agent: User) -> dict:
    snapshot = serialize_agent(agent)
    agent.delete()
    log_action(user=user, action='agent_delete', object_type='user', object_id=snapshot['id'],
               detail={'role': snapshot['role']})
    logger.info("user %s deleted %s %s", user.id, snapshot['role'], snapshot['id'])
    return snapshot
