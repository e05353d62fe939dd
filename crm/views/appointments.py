from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.models import Appointment
from crm.permissions import HasRole, ModulePermission
from crm.serializers.appointments import (
    AllAppointmentsQuerySerializer,
    AppointmentQuerySerializer,
    AppointmentSerializer,
)
from crm.services import appointments as appt_service
from crm.views.base import fail, ok, service_errors, tenant

APPOINTMENT_ROLES = HasRole('admin', 'clinic', 'agent', 'doctor', 'doctorStaff')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, APPOINTMENT_ROLES, ModulePermission('appointment')])
@service_errors
def appointments(request):
    clinic = tenant(request)
    if request.method == 'GET':
        q = AppointmentQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        items = appt_service.list_appointments(
            clinic, day=vd.get('date'), doctor_id=vd.get('doctorId'), room_id=vd.get('roomId'),
        )
        return ok(appointments=items)

    appt_service.check_required(request.data)
    s = AppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = appt_service.book_appointment(request.user, clinic, s.validated_data)
    return ok('Appointment booked successfully', status_code=201,
              appointment=appt_service.serialize_appointment(appt))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, APPOINTMENT_ROLES, ModulePermission('appointment', 'update')])
@service_errors
def update_appointment(request, appointment_id):
    clinic = tenant(request)
    appt = Appointment.objects.filter(clinic=clinic, id=appointment_id).first()
    if appt is None:
        return fail('Appointment not found', 404)
    s = AppointmentSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    appt = appt_service.update_appointment(request.user, clinic, appt, dict(s.validated_data))
    return ok('Appointment updated successfully', appointment=appt_service.serialize_appointment(appt))


@api_view(['GET'])
@permission_classes([IsAuthenticated, APPOINTMENT_ROLES, ModulePermission('appointment', 'read')])
@service_errors
def all_appointments(request):
    clinic = tenant(request)
    q = AllAppointmentsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, pagination = appt_service.all_appointments(
        clinic,
        status=vd.get('status'),
        start=vd.get('fromDate'),
        end=vd.get('toDate'),
        doctor_id=vd.get('doctorId'),
        search=vd.get('search'),
        page=vd.get('page'),
        limit=vd.get('limit'),
    )
    return ok(appointments=items, pagination=pagination)
