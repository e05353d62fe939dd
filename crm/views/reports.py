from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.models import AppointmentReport
from crm.permissions import HasRole, ModulePermission
from crm.serializers.reports import ComplaintSerializer, ComplaintUpdateSerializer, ReportSerializer
from crm.services import reports as report_service
from crm.views.base import ok, service_errors, tenant


@api_view(['GET', 'POST'])
@permission_classes([
    IsAuthenticated,
    HasRole('admin', 'clinic', 'agent', 'doctor', 'doctorStaff'),
    ModulePermission('appointment'),
])
@service_errors
def appointment_reports(request):
    """Read or upsert the vitals of an appointment."""
    clinic = tenant(request)
    if request.method == 'GET':
        appt = report_service.get_appointment(clinic, request.query_params.get('appointmentId'))
        report = AppointmentReport.objects.filter(appointment=appt).first()
        return ok(
            report=report_service.serialize_report(report) if report else None,
            patient={'id': appt.patient_id, 'name': appt.patient.full_name, 'emrNumber': appt.patient.emr_number},
        )

    s = ReportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = report_service.get_appointment(clinic, s.validated_data['appointmentId'])
    report = report_service.save_report(request.user, clinic, appt, s.validated_data)
    return ok('Vitals saved successfully', report=report_service.serialize_report(report))


@api_view(['GET', 'POST', 'PATCH', 'DELETE'])
@permission_classes([
    IsAuthenticated,
    HasRole('admin', 'clinic', 'agent', 'doctor', 'doctorStaff'),
    ModulePermission('appointment'),
])
@service_errors
def patient_complaints(request):
    """Complaints noted against appointment vitals."""
    clinic = tenant(request)
    if request.method == 'GET':
        qp = request.query_params
        return ok(complaints=report_service.list_complaints(
            clinic,
            appointment_id=qp.get('appointmentId'),
            patient_id=qp.get('patientId'),
            report_id=qp.get('appointmentReportId'),
        ))

    if request.method == 'POST':
        s = ComplaintSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        complaint = report_service.add_complaint(request.user, clinic, s.validated_data)
        return ok('Complaint saved successfully', status_code=201,
                  complaint=report_service.serialize_complaint(complaint))

    if request.method == 'PATCH':
        s = ComplaintUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        complaint = report_service.get_complaint(clinic, s.validated_data['complaintId'])
        complaint = report_service.update_complaint(request.user, complaint, s.validated_data)
        return ok('Complaint updated successfully', complaint=report_service.serialize_complaint(complaint))

    complaint = report_service.get_complaint(clinic, request.query_params.get('complaintId'))
    report_service.delete_complaint(request.user, complaint)
    return ok('Complaint deleted successfully')
