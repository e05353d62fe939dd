"""
URL mappings for the clinic CRM API.

Paths mirror the ones the clinic, doctor, agent and admin portals call,
without trailing slashes.  The ``api/staff/<slug>`` catch-all must stay
after the explicit ``api/staff/...`` routes.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view
from .views import (
    agents,
    appointments,
    commissions,
    enquiries,
    facilities,
    health,
    leads,
    notifications,
    offers,
    patients,
    permissions,
    reports,
    sidebar,
    staff,
    templates,
    whatsapp,
)

urlpatterns = [
    # Ops
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    # Auth
    path('api/auth/login', login_view),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/logout', jwt_logout_view),

    # Permissions & navigation
    path('api/clinic/permissions', permissions.clinic_permissions),
    path('api/admin/permissions/clinic', permissions.admin_clinic_permissions),
    path('api/agent/permissions', permissions.agent_permissions),
    path('api/clinic/sidebar-permissions', sidebar.clinic_sidebar),
    path('api/agent/sidebar-permissions', sidebar.agent_sidebar),
    path('api/admin/navigation', sidebar.navigation_items),

    # Staff portal
    path('api/staff/sidebar-permissions', sidebar.agent_sidebar),
    path('api/staff/patient-registration', patients.patient_registration),
    path('api/staff/routes/<str:slug>', staff.describe_route),
    path('api/staff/<str:slug>', staff.dispatch),

    # Agents
    path('api/lead-ms/create-agent', agents.agents),
    path('api/lead-ms/get-agents', agents.agents),
    path('api/lead-ms/delete-agent', agents.delete_agent),

    # Leads
    path('api/lead-ms/create-lead', leads.create_lead),
    path('api/lead-ms/import-leads', leads.import_leads),
    path('api/lead-ms/leadFilter', leads.lead_filter),
    path('api/lead-ms/assign-lead', leads.assign_lead),
    path('api/lead-ms/reassign-lead', leads.reassign_lead),
    path('api/lead-ms/lead-delete', leads.delete_lead),

    # Offers
    path('api/lead-ms/create-offer', offers.offers),
    path('api/lead-ms/get-create-offer', offers.offers),
    path('api/lead-ms/update-offer', offers.update_offer),
    path('api/lead-ms/delete-offer', offers.delete_offer),

    # Rooms & departments
    path('api/clinic/rooms', facilities.rooms),
    path('api/clinic/departments', facilities.departments),

    # Appointments & vitals
    path('api/clinic/appointments', appointments.appointments),
    path('api/clinic/update-appointment/<int:appointment_id>', appointments.update_appointment),
    path('api/clinic/all-appointments', appointments.all_appointments),
    path('api/clinic/appointment-reports', reports.appointment_reports),
    path('api/clinic/patient-complaints', reports.patient_complaints),
    path('api/clinic/import-patients', patients.import_patients),

    # Enquiries
    path('api/clinics/enquiries', enquiries.submit_enquiry),
    path('api/clinics/getEnquiries', enquiries.list_enquiries),

    # Notifications
    path('api/push-notification/reply-notifications', notifications.list_notifications),
    path('api/push-notification/mark-read', notifications.mark_read),
    path('api/push-notification/delete-notification', notifications.delete_notification),
    path('api/push-notification/clearAll-notification', notifications.clear_all),

    # Commissions
    path('api/clinic/commissions/by-person', commissions.commissions_by_person),
    path('api/clinic/commissions/trends', commissions.commission_trends),

    # WhatsApp
    path('api/webhooks/whatsapp', whatsapp.webhook),
    path('api/marketing/send-whatsapp', whatsapp.send_whatsapp),
    path('api/conversations', whatsapp.conversations),
    path('api/conversations/<int:conversation_id>/messages', whatsapp.conversation_messages),
    path('api/conversations/assign-conversation/<int:conversation_id>', whatsapp.assign_conversation),

    # Message templates
    path('api/all-templates', templates.list_templates),
    path('api/all-templates/create-template', templates.create_template),
    path('api/all-templates/edit-template/<int:template_id>', templates.edit_template),
]
