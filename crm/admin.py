"""
Django admin registrations for the clinic CRM models.

Lets superusers inspect tenants, permission documents and navigation
under ``/admin/`` while the portals are being wired up.
"""

from django.contrib import admin

from .models import (
    AgentPermission,
    Appointment,
    AppointmentReport,
    AuditEvent,
    Clinic,
    ClinicPermission,
    Commission,
    Conversation,
    Department,
    Enquiry,
    Lead,
    MessageTemplate,
    NavigationItem,
    Notification,
    Offer,
    Patient,
    PatientComplaint,
    Referral,
    Room,
    User,
    WhatsAppMessage,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'clinic', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'email', 'first_name', 'last_name')


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'owner', 'is_approved', 'declined', 'created_at')
    list_filter = ('is_approved', 'declined')
    search_fields = ('name', 'owner__username')


@admin.register(ClinicPermission)
class ClinicPermissionAdmin(admin.ModelAdmin):
    list_display = ('clinic', 'role', 'is_active', 'granted_by', 'updated_at')
    list_filter = ('role', 'is_active')


@admin.register(AgentPermission)
class AgentPermissionAdmin(admin.ModelAdmin):
    list_display = ('agent', 'is_active', 'granted_by', 'last_modified')


@admin.register(NavigationItem)
class NavigationItemAdmin(admin.ModelAdmin):
    list_display = ('role', 'order', 'label', 'module_key', 'path', 'is_active')
    list_filter = ('role', 'is_active')
    ordering = ('role', 'order')


@admin.register(Room, Department)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ('id', 'clinic', 'name', 'created_at')
    search_fields = ('name',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('emr_number', 'first_name', 'last_name', 'mobile_number', 'clinic')
    search_fields = ('emr_number', 'first_name', 'last_name', 'mobile_number')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'clinic', 'doctor', 'patient', 'start_date', 'from_time', 'to_time', 'status')
    list_filter = ('status', 'start_date')


admin.site.register(AppointmentReport)
admin.site.register(PatientComplaint)


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'phone', 'source', 'status', 'clinic', 'created_at')
    list_filter = ('status', 'source')
    search_fields = ('name', 'phone')


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ('title', 'clinic', 'type', 'value', 'status', 'starts_at', 'ends_at')
    list_filter = ('status', 'type')


@admin.register(Enquiry)
class EnquiryAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'phone', 'clinic', 'created_at')
    search_fields = ('name', 'email', 'phone')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'type', 'message', 'is_read', 'created_at')
    list_filter = ('is_read', 'type')


admin.site.register(Referral)


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ('id', 'clinic', 'source', 'commission_amount', 'created_at')
    list_filter = ('source',)


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ('phone', 'clinic', 'owner', 'status', 'unread_count', 'last_message_at')
    search_fields = ('phone',)


@admin.register(WhatsAppMessage)
class WhatsAppMessageAdmin(admin.ModelAdmin):
    list_display = ('wa_id', 'conversation', 'direction', 'status', 'timestamp')
    list_filter = ('direction', 'status')


@admin.register(MessageTemplate)
class MessageTemplateAdmin(admin.ModelAdmin):
    list_display = ('unique_name', 'clinic', 'template_type', 'category', 'status')
    list_filter = ('template_type', 'status')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'clinic', 'object_type', 'object_id', 'created_at')
    list_filter = ('action',)
