"""
Database models for the clinic CRM backend.

A :class:`Clinic` is the tenant.  Every portal user except ``admin`` is
tied to exactly one clinic, either as its owner (role ``clinic``) or via
``User.clinic``.  Permission documents are stored as JSON lists of
module entries so that the portals can send and receive them unchanged::

    [{"module": "lead",
      "actions": {"all": false, "create": true, "read": true, ...},
      "subModules": [{"name": "Create Lead", "actions": {...}}]}]
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Portal account.

    ``clinic`` links doctors, staff and agents to their tenant; clinic
    owners are resolved through :attr:`Clinic.owner` instead.
    ``created_by`` records who created an agent or doctorStaff account,
    which decides the portal the agent navigates in.
    """
    ROLE_ADMIN = 'admin'
    ROLE_CLINIC = 'clinic'
    ROLE_DOCTOR = 'doctor'
    ROLE_DOCTOR_STAFF = 'doctorStaff'
    ROLE_STAFF = 'staff'
    ROLE_AGENT = 'agent'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_CLINIC, 'Clinic owner'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_DOCTOR_STAFF, 'Doctor staff'),
        (ROLE_STAFF, 'Staff'),
        (ROLE_AGENT, 'Agent'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_AGENT, db_index=True)
    phone = models.CharField(max_length=32, blank=True)
    clinic = models.ForeignKey(
        'Clinic', null=True, blank=True, on_delete=models.SET_NULL, related_name='members'
    )
    created_by = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.SET_NULL, related_name='created_users'
    )

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Clinic(models.Model):
    name = models.CharField(max_length=255)
    owner = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='owned_clinic'
    )
    address = models.CharField(max_length=512, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    is_approved = models.BooleanField(default=False)
    declined = models.BooleanField(default=False)
    # WhatsApp Cloud API number id that routes inbound messages to this clinic
    whatsapp_phone_number_id = models.CharField(max_length=64, blank=True, db_index=True)
    # business account that owns the clinic's message templates
    whatsapp_business_account_id = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


# ---------------------------------------------------------------------------
# Permissions & navigation
# ---------------------------------------------------------------------------

class ClinicPermission(models.Model):
    """Module permissions an admin granted to a clinic, per portal role."""
    ROLE_CHOICES = [
        ('clinic', 'Clinic'),
        ('doctor', 'Doctor'),
        ('agent', 'Agent'),
        ('admin', 'Admin'),
    ]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='permission_sets')
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='clinic')
    permissions = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    granted_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='granted_clinic_permissions'
    )
    updated_at = models.DateTimeField(auto_now=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('clinic', 'role')]
        indexes = [models.Index(fields=['clinic', 'role', 'is_active'])]

    def __str__(self) -> str:
        return f"perms(clinic={self.clinic_id}, role={self.role})"


class AgentPermission(models.Model):
    """Module permissions granted to a single agent or doctorStaff account."""
    agent = models.OneToOneField(User, on_delete=models.CASCADE, related_name='agent_permission')
    permissions = models.JSONField(default=list, blank=True)
    granted_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='granted_agent_permissions'
    )
    is_active = models.BooleanField(default=True)
    last_modified = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"agent-perms({self.agent_id})"


class NavigationItem(models.Model):
    ROLE_CHOICES = [
        ('admin', 'Admin'),
        ('clinic', 'Clinic'),
        ('doctor', 'Doctor'),
        ('agent', 'Agent'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, db_index=True)
    label = models.CharField(max_length=128)
    path = models.CharField(max_length=255, blank=True)
    icon = models.CharField(max_length=64, blank=True)
    description = models.CharField(max_length=255, blank=True)
    order = models.PositiveIntegerField(default=0)
    module_key = models.CharField(max_length=64)
    # [{"name", "path", "icon", "order"}]
    sub_modules = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['order', 'id']
        unique_together = [('role', 'module_key')]

    def __str__(self) -> str:
        return f"{self.role}:{self.module_key}"


# ---------------------------------------------------------------------------
# Facilities
# ---------------------------------------------------------------------------

class Room(models.Model):
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='rooms')
    name = models.CharField(max_length=128)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('clinic', 'name')]
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return self.name


class Department(models.Model):
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='departments')
    name = models.CharField(max_length=128)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('clinic', 'name')]
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return self.name


# ---------------------------------------------------------------------------
# Patients & appointments
# ---------------------------------------------------------------------------

class Patient(models.Model):
    GENDER_CHOICES = [('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='patients')
    emr_number = models.CharField(max_length=32, blank=True, db_index=True)
    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128, blank=True)
    gender = models.CharField(max_length=16, choices=GENDER_CHOICES, blank=True)
    email = models.EmailField(blank=True)
    mobile_number = models.CharField(max_length=32)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['clinic', 'mobile_number'])]
        constraints = [
            models.UniqueConstraint(fields=['clinic', 'emr_number'], condition=~models.Q(emr_number=''),
                                    name='unique_clinic_emr_number'),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} ({self.emr_number})"


class Appointment(models.Model):
    STATUS_CHOICES = [
        ('booked', 'Booked'),
        ('enquiry', 'Enquiry'),
        ('Discharge', 'Discharge'),
        ('Arrived', 'Arrived'),
        ('Consultation', 'Consultation'),
        ('Cancelled', 'Cancelled'),
        ('Approved', 'Approved'),
        ('Rescheduled', 'Rescheduled'),
        ('Waiting', 'Waiting'),
        ('Rejected', 'Rejected'),
        ('Completed', 'Completed'),
    ]
    FOLLOW_TYPE_CHOICES = [
        ('first time', 'First time'),
        ('follow up', 'Follow up'),
        ('repeat', 'Repeat'),
    ]
    BOOKED_FROM_CHOICES = [('doctor', 'Doctor'), ('room', 'Room')]

    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='appointments')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='doctor_appointments')
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name='appointments')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, db_index=True)
    follow_type = models.CharField(max_length=16, choices=FOLLOW_TYPE_CHOICES)
    start_date = models.DateField(db_index=True)
    from_time = models.TimeField()
    to_time = models.TimeField()
    referral = models.CharField(max_length=64, default='direct')
    emergency = models.CharField(max_length=8, default='no')
    notes = models.TextField(blank=True)
    booked_from = models.CharField(max_length=8, choices=BOOKED_FROM_CHOICES, default='doctor')
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['clinic', 'start_date']),
            models.Index(fields=['doctor', 'start_date', 'from_time']),
        ]

    def __str__(self) -> str:
        return f"appt {self.id} d={self.doctor_id} {self.start_date} {self.from_time}-{self.to_time}"


class AppointmentReport(models.Model):
    """Vitals captured for an appointment."""
    appointment = models.OneToOneField(Appointment, on_delete=models.CASCADE, related_name='report')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='reports')
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='appointment_reports')
    doctor = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    temperature_celsius = models.DecimalField(max_digits=4, decimal_places=1)
    pulse_bpm = models.PositiveIntegerField()
    systolic_bp = models.PositiveIntegerField()
    diastolic_bp = models.PositiveIntegerField()
    height_cm = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    weight_kg = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    waist_cm = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    hip_circumference = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    head_circumference = models.DecimalField(max_digits=5, decimal_places=1, null=True, blank=True)
    respiratory_rate = models.PositiveIntegerField(null=True, blank=True)
    spo2_percent = models.PositiveIntegerField(null=True, blank=True)
    bmi = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    sugar = models.CharField(max_length=64, blank=True)
    urinalysis = models.CharField(max_length=255, blank=True)
    other_details = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"report appt={self.appointment_id}"


class PatientComplaint(models.Model):
    """Presenting complaints noted against an appointment's vitals."""
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='patient_complaints')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='complaints')
    doctor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='+')
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='complaints')
    report = models.ForeignKey(AppointmentReport, on_delete=models.CASCADE, related_name='complaints')
    complaints = models.TextField()
    items = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']


# ---------------------------------------------------------------------------
# Leads & offers
# ---------------------------------------------------------------------------

class Lead(models.Model):
    GENDER_CHOICES = [('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')]
    SOURCE_CHOICES = [
        ('Instagram', 'Instagram'),
        ('Facebook', 'Facebook'),
        ('Google', 'Google'),
        ('WhatsApp', 'WhatsApp'),
        ('Walk-in', 'Walk-in'),
        ('Other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('New', 'New'),
        ('Contacted', 'Contacted'),
        ('Booked', 'Booked'),
        ('Visited', 'Visited'),
        ('Follow-up', 'Follow-up'),
        ('Not Interested', 'Not Interested'),
        ('Other', 'Other'),
    ]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='leads')
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, db_index=True)
    gender = models.CharField(max_length=16, choices=GENDER_CHOICES, blank=True)
    age = models.PositiveIntegerField(null=True, blank=True)
    # [{"treatment": str, "subTreatment": str | None}]
    treatments = models.JSONField(default=list, blank=True)
    source = models.CharField(max_length=32, choices=SOURCE_CHOICES)
    custom_source = models.CharField(max_length=128, blank=True)
    offer_tag = models.CharField(max_length=128, blank=True)
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default='New', db_index=True)
    custom_status = models.CharField(max_length=128, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['clinic', 'status', 'created_at'])]

    def __str__(self) -> str:
        return f"{self.name} ({self.phone})"


class LeadNote(models.Model):
    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name='notes')
    text = models.TextField()
    added_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)


class LeadFollowUp(models.Model):
    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name='follow_ups')
    date = models.DateTimeField()
    added_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')


class LeadAssignment(models.Model):
    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='lead_assignments')
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('lead', 'user')]


class Offer(models.Model):
    TYPE_CHOICES = [('percentage', 'Percentage'), ('fixed', 'Fixed')]
    STATUS_CHOICES = [('draft', 'Draft'), ('active', 'Active'), ('expired', 'Expired')]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='offers')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, default='percentage')
    value = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=8, default='AED')
    code = models.CharField(max_length=64, blank=True)
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='draft', db_index=True)
    treatments = models.JSONField(default=list, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    uses_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.title


# ---------------------------------------------------------------------------
# Enquiries, notifications, commissions
# ---------------------------------------------------------------------------

class Enquiry(models.Model):
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='enquiries')
    name = models.CharField(max_length=128)
    email = models.EmailField()
    phone = models.CharField(max_length=32)
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self) -> str:
        return f"enquiry {self.name} -> {self.clinic_id}"


class Notification(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=32, default='general')
    message = models.CharField(max_length=512)
    related_id = models.CharField(max_length=64, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['user', 'is_read', 'created_at'])]

    def __str__(self) -> str:
        return f"notif {self.id} u={self.user_id}"


class Referral(models.Model):
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='referrals')
    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Commission(models.Model):
    SOURCE_CHOICES = [('referral', 'Referral'), ('staff', 'Staff')]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='commissions')
    source = models.CharField(max_length=16, choices=SOURCE_CHOICES)
    referral = models.ForeignKey(Referral, null=True, blank=True, on_delete=models.CASCADE, related_name='commissions')
    staff = models.ForeignKey(User, null=True, blank=True, on_delete=models.CASCADE, related_name='commissions')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='commissions')
    appointment = models.ForeignKey(Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='commissions')
    invoice_number = models.CharField(max_length=64, blank=True)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    commission_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    invoiced_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['clinic', 'source', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"commission {self.id} {self.source} {self.commission_amount}"


# ---------------------------------------------------------------------------
# WhatsApp
# ---------------------------------------------------------------------------

class Conversation(models.Model):
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='conversations')
    lead = models.ForeignKey(Lead, null=True, blank=True, on_delete=models.SET_NULL, related_name='conversations')
    owner = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL,
                              related_name='owned_conversations')
    phone = models.CharField(max_length=32, db_index=True)
    status = models.CharField(max_length=16, default='open')
    unread_count = models.PositiveIntegerField(default=0)
    recent_message = models.CharField(max_length=512, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('clinic', 'phone')]
        indexes = [models.Index(fields=['clinic', 'last_message_at'])]

    def __str__(self) -> str:
        return f"conv {self.phone} clinic={self.clinic_id}"


class WhatsAppMessage(models.Model):
    DIRECTION_CHOICES = [('in', 'Incoming'), ('out', 'Outgoing')]
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    wa_id = models.CharField(max_length=128, blank=True, db_index=True)
    direction = models.CharField(max_length=4, choices=DIRECTION_CHOICES)
    text = models.TextField(blank=True)
    status = models.CharField(max_length=16, default='received')
    error_code = models.CharField(max_length=32, blank=True)
    error_message = models.CharField(max_length=255, blank=True)
    sender = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    timestamp = models.DateTimeField()

    class Meta:
        indexes = [models.Index(fields=['conversation', 'timestamp'])]

    def __str__(self) -> str:
        return f"wamsg {self.wa_id} {self.direction} {self.status}"


class MessageTemplate(models.Model):
    """Reusable SMS, email or WhatsApp message body of a clinic.

    WhatsApp templates are also registered with the Cloud API, which
    reviews them; ``status`` mirrors that review.
    """
    TYPE_CHOICES = [('sms', 'SMS'), ('email', 'Email'), ('whatsapp', 'WhatsApp')]
    CATEGORY_CHOICES = [
        ('marketing', 'Marketing'),
        ('utility', 'Utility'),
        ('authentication', 'Authentication'),
    ]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='message_templates')
    template_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    name = models.CharField(max_length=255)
    unique_name = models.CharField(max_length=255)
    category = models.CharField(max_length=32, choices=CATEGORY_CHOICES, blank=True)
    language = models.CharField(max_length=16, default='en')
    subject = models.CharField(max_length=255, blank=True)
    content = models.TextField(blank=True)
    variables = models.JSONField(default=list, blank=True)
    body_samples = models.JSONField(default=list, blank=True)
    header_text = models.CharField(max_length=255, blank=True)
    header_samples = models.JSONField(default=list, blank=True)
    footer = models.CharField(max_length=255, blank=True)
    buttons = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=16, default='approved')
    # id the Cloud API assigned to a WhatsApp template
    external_id = models.CharField(max_length=64, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('clinic', 'template_type', 'unique_name')]

    def __str__(self) -> str:
        return f"{self.template_type}:{self.unique_name}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    clinic = models.ForeignKey(Clinic, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]
