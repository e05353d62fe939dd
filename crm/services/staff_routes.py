"""
Staff portal route table.

The staff portal serves pages of the clinic, doctor and admin portals
under ``/staff/<slug>``.  The slug decides which portal's context the
request runs in (:func:`route_info`), and :data:`STAFF_ROUTES` names the
view that renders it.  Views are imported on first use only, so a broken
or missing handler affects its own slug and nothing else.
"""
from __future__ import annotations

import logging
from typing import Callable, NamedTuple, Optional

from django.conf import settings
from django.utils.module_loading import import_string

from crm.models import User
from crm.services.tenancy import AGENT_ROLES, navigation_role

logger = logging.getLogger(__name__)

CLINIC_PREFIXES = ('clinic-', 'clinic-staff-', 'lead-', 'marketingalltype-')
DOCTOR_PREFIXES = ('doctor-', 'doctor-staff-')
ADMIN_SLUGS = frozenset({
    'AdminClinicApproval', 'approve-doctors', 'add-treatment', 'analytics',
    'get-in-touch', 'manage-clinic-permissions', 'create-agent', 'create-staff',
    'admin-add-service', 'patient-report', 'dashboard-admin', 'seed-navigation',
    'all-clinic', 'register-clinic',
})

TOKEN_KEYS = {
    'clinic': 'clinicToken',
    'doctor': 'doctorToken',
    'admin': 'adminToken',
    'unknown': None,
}


class RouteInfo(NamedTuple):
    type: str
    token_key: Optional[str]


class StaffRoute(NamedTuple):
    handler: str
    module_key: Optional[str] = None


def route_info(slug: str) -> RouteInfo:
    """Portal a staff slug belongs to.

    Clinic prefixes are checked first, so ``lead-*`` slugs run in the
    clinic portal.
    """
    slug = slug or ''
    if slug.startswith(CLINIC_PREFIXES):
        kind = 'clinic'
    elif slug.startswith(DOCTOR_PREFIXES):
        kind = 'doctor'
    elif slug.startswith('admin-') or slug in ADMIN_SLUGS:
        kind = 'admin'
    else:
        kind = 'unknown'
    return RouteInfo(kind, TOKEN_KEYS[kind])


STAFF_ROUTES: dict[str, StaffRoute] = {
    # admin
    'manage-clinic-permissions': StaffRoute('crm.views.permissions.admin_clinic_permissions', 'admin_staff_management'),
    'create-agent': StaffRoute('crm.views.agents.agents', 'admin_staff_management'),
    'seed-navigation': StaffRoute('crm.views.sidebar.navigation_items', 'admin_staff_management'),
    # clinic
    'clinic-add-room': StaffRoute('crm.views.facilities.rooms', 'room_management'),
    'clinic-add-department': StaffRoute('crm.views.facilities.departments', 'room_management'),
    'clinic-get-Enquiry': StaffRoute('crm.views.enquiries.list_enquiries', 'enquiry'),
    'clinic-appointment': StaffRoute('crm.views.appointments.appointments', 'appointment'),
    'clinic-all-appointment': StaffRoute('crm.views.appointments.all_appointments', 'appointment'),
    'clinic-appointment-reports': StaffRoute('crm.views.reports.appointment_reports', 'appointment'),
    'clinic-patient-registration': StaffRoute('crm.views.patients.patient_registration', 'patient_registration'),
    'clinic-assigned-leads': StaffRoute('crm.views.leads.lead_filter', 'create_lead'),
    'clinic-create-offer': StaffRoute('crm.views.offers.offers', 'create_offers'),
    'clinic-commissions': StaffRoute('crm.views.commissions.commissions_by_person', 'clinic_commission'),
    'clinic-commission-trends': StaffRoute('crm.views.commissions.commission_trends', 'clinic_commission'),
    'clinic-inbox': StaffRoute('crm.views.whatsapp.conversations', 'whatsapp_chat'),
    'clinic-all-templates': StaffRoute('crm.views.templates.list_templates', 'all_templates'),
    'lead-create-lead': StaffRoute('crm.views.leads.create_lead', 'lead'),
    'lead-import-leads': StaffRoute('crm.views.leads.import_leads', 'lead'),
    'marketingalltype-whatsapp-marketing-chat': StaffRoute('crm.views.whatsapp.conversations', 'whatsapp_chat'),
    # doctor
    'doctor-appointment': StaffRoute('crm.views.appointments.appointments', 'appointment'),
    'doctor-all-appointment': StaffRoute('crm.views.appointments.all_appointments', 'appointment'),
    'doctor-patient-registration': StaffRoute('crm.views.patients.patient_registration', 'patient_registration'),
    'doctor-add-room': StaffRoute('crm.views.facilities.rooms', 'room_management'),
    # portal independent
    'create-lead': StaffRoute('crm.views.leads.create_lead', 'lead'),
    'create-offer': StaffRoute('crm.views.offers.offers', 'create_offers'),
    'assigned-leads': StaffRoute('crm.views.leads.lead_filter', 'create_lead'),
    'get-Enquiry': StaffRoute('crm.views.enquiries.list_enquiries', 'enquiry'),
}


def all_routes() -> dict[str, StaffRoute]:
    routes = dict(STAFF_ROUTES)
    for slug, spec in (getattr(settings, 'STAFF_ROUTE_OVERRIDES', None) or {}).items():
        routes[slug] = StaffRoute(spec['handler'], spec.get('module_key'))
    return routes


def get_route(slug: str) -> Optional[StaffRoute]:
    return all_routes().get(slug)


_handler_cache: dict[str, Callable] = {}


def load_handler(route: StaffRoute) -> Optional[Callable]:
    """Import the route's view on first use; None if it cannot be loaded."""
    handler = _handler_cache.get(route.handler)
    if handler is not None:
        return handler
    try:
        handler = import_string(route.handler)
    except ImportError:
        logger.warning("staff route handler %s could not be imported", route.handler)
        return None
    _handler_cache[route.handler] = handler
    return handler


PORTAL_OWNERS = {
    'clinic': ('clinic', 'staff'),
    'doctor': ('doctor',),
    'admin': ('admin',),
}


def can_enter(user: User, info: RouteInfo) -> bool:
    """Whether ``user`` may act in the portal ``info`` points at.

    Portal owners enter their own portal, admins enter any.  Agents and
    doctorStaff enter the portal of whoever created them.  Slugs with no
    portal prefix run in the caller's own context.
    """
    role = getattr(user, 'role', None)
    if role == 'admin' or info.type == 'unknown':
        return True
    if role in PORTAL_OWNERS.get(info.type, ()):
        return True
    if role in AGENT_ROLES:
        return navigation_role(user) == info.type
    return False
