from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated

from crm.permissions import IsClinicSide, ModulePermission
from crm.serializers.patients import PatientImportSerializer, PatientRegistrationSerializer
from crm.services import patients as patient_service
from crm.views.base import fail, ok, service_errors, tenant


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('patient_registration')])
@service_errors
def patient_registration(request):
    clinic = tenant(request)
    if request.method == 'GET':
        return ok(patients=patient_service.search_patients(clinic, request.query_params.get('search')))
    s = PatientRegistrationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = patient_service.register_patient(request.user, clinic, s.validated_data)
    return ok('Patient registered successfully', status_code=201,
              patient=patient_service.serialize_patient(patient))


@api_view(['POST'])
@parser_classes([MultiPartParser, FormParser])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('patient_registration', 'create')])
@service_errors
def import_patients(request):
    upload = request.FILES.get('file')
    if upload is None:
        return fail('File is required for import')
    clinic = tenant(request)
    s = PatientImportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = patient_service.import_patients(request.user, clinic, upload, s.validated_data.get('columnMapping'))
    if not result['imported']:
        return fail('All rows have validation errors', data=result)
    return ok(f"Imported {result['imported']} patients. {result['failed']} failed.", data=result)
