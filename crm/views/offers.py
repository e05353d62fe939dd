from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.permissions import IsClinicSide, ModulePermission
from crm.serializers.offers import OfferSerializer
from crm.services import offers as offer_service
from crm.views.base import fail, ok, service_errors, tenant


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('create_offers')])
@service_errors
def offers(request):
    clinic = tenant(request)
    if request.method == 'GET':
        items = offer_service.list_offers(clinic, request.query_params.get('status'))
        return ok(offers=items)
    s = OfferSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    offer = offer_service.create_offer(request.user, clinic, s.validated_data)
    return ok('Offer created successfully', status_code=201, offer=offer_service.serialize_offer(offer))


def _offer_id(request):
    oid = request.query_params.get('id') or request.query_params.get('offerId')
    if not oid and request.method != 'GET':
        oid = request.data.get('id') or request.data.get('offerId')
    return oid


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('create_offers')])
@service_errors
def update_offer(request):
    """Fetch (expiring it if past its end) or update a single offer."""
    oid = _offer_id(request)
    if not oid:
        return fail('Offer id is required')
    clinic = tenant(request, required=False)
    offer = offer_service.get_offer_for(clinic, oid)
    if request.method == 'GET':
        offer_service.expire_if_past(offer)
        return ok(offer=offer_service.serialize_offer(offer))

    s = OfferSerializer(offer, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    offer = offer_service.update_offer(request.user, offer, s.validated_data)
    offer_service.expire_if_past(offer)
    return ok('Offer updated successfully', offer=offer_service.serialize_offer(offer))


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsClinicSide, ModulePermission('create_offers', 'delete')])
@service_errors
def delete_offer(request):
    oid = _offer_id(request)
    if not oid:
        return fail('Offer id is required')
    clinic = tenant(request, required=False)
    offer = offer_service.get_offer_for(clinic, oid)
    offer_service.delete_offer(request.user, offer)
    return ok('Offer deleted successfully')
