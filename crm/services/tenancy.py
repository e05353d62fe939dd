"""
Tenant resolution.

Clinic owners reach their clinic through ``Clinic.owner``; doctors,
doctorStaff, staff and agents through ``User.clinic``.  Admins are not
bound to a tenant and may name one explicitly with ``clinicId``.
"""
from __future__ import annotations

from typing import Optional

from django.db.models import Q

from crm.models import Clinic, User

CLINIC_SIDE_ROLES = ('clinic', 'doctor', 'doctorStaff', 'staff', 'agent')
AGENT_ROLES = ('agent', 'doctorStaff')

_UNLINKED = {
    'doctor': 'Doctor is not linked to any clinic',
    'doctorStaff': 'User is not linked to any clinic',
    'staff': 'User is not linked to any clinic',
    'agent': 'Agent not linked to any clinic',
}


class TenancyError(Exception):
    """The caller cannot be mapped to a clinic."""

    def __init__(self, message: str, status: int = 403):
        super().__init__(message)
        self.status = status


def resolve_clinic(user: User, clinic_id=None) -> Optional[Clinic]:
    """Return the clinic ``user`` acts for, or None for an unscoped admin."""
    role = getattr(user, 'role', None)
    if role == 'admin':
        if clinic_id in (None, ''):
            return None
        try:
            clinic = Clinic.objects.filter(id=int(clinic_id)).first()
        except (TypeError, ValueError):
            raise TenancyError('Invalid clinicId', status=400)
        if clinic is None:
            raise TenancyError('Clinic not found', status=404)
        return clinic
    if role == 'clinic':
        clinic = Clinic.objects.filter(owner=user).first()
        if clinic is None:
            raise TenancyError('Clinic not found for this user', status=404)
        return clinic
    if role in _UNLINKED:
        if not user.clinic_id:
            raise TenancyError(_UNLINKED[role])
        return user.clinic
    raise TenancyError('Invalid user role')


def require_clinic(user: User, clinic_id=None) -> Clinic:
    """Like :func:`resolve_clinic` but admins must name a clinic."""
    clinic = resolve_clinic(user, clinic_id)
    if clinic is None:
        raise TenancyError('Admin must provide clinicId', status=400)
    return clinic


def clinic_users(clinic: Clinic):
    """Users that belong to ``clinic``, owner included."""
    return User.objects.filter(Q(clinic=clinic) | Q(owned_clinic=clinic))


def navigation_role(user: User) -> str:
    """Portal an agent or doctorStaff account navigates in.

    It is the role of whoever created the account; accounts created by
    another agent, or without a creator, fall back to ``clinic``.
    """
    role = getattr(user, 'role', None)
    if role not in AGENT_ROLES:
        return role
    creator = user.created_by
    if creator is not None and creator.role in ('admin', 'clinic', 'doctor'):
        return creator.role
    return 'clinic'
