from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from crm.permissions import IsClinicSide, ModulePermission
from crm.serializers.enquiries import EnquirySerializer
from crm.services import enquiries as enquiry_service
from crm.throttles import EnquiryThrottle
from crm.views.base import ok, service_errors, tenant


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([EnquiryThrottle])
@service_errors
def submit_enquiry(request):
    """Public contact form of a clinic's listing page."""
    s = EnquirySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    enquiry = enquiry_service.submit_enquiry(s.validated_data)
    return ok('Enquiry submitted successfully', status_code=201, enquiry=enquiry_service.serialize_enquiry(enquiry))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('enquiry', 'read')])
@service_errors
def list_enquiries(request):
    clinic = tenant(request)
    return ok(enquiries=enquiry_service.list_enquiries(clinic))
