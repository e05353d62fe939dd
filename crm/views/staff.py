"""
Staff portal entry points.

``/api/staff/<slug>`` lets an agent (or a clinic/doctor/admin user
browsing the staff portal) reach the handler of another portal's page.
The slug decides the portal, the portal decides which roles may enter,
and the handler itself is imported only when first requested.
"""
import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from crm.services import staff_routes
from crm.services.sidebar import agent_has_module
from crm.services.tenancy import AGENT_ROLES
from crm.views.base import fail, ok

logger = logging.getLogger(__name__)

ALL_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def describe_route(request, slug):
    route = staff_routes.get_route(slug)
    if route is None:
        return fail('Page not found', 404)
    info = staff_routes.route_info(slug)
    return ok(data={
        'slug': slug,
        'type': info.type,
        'tokenKey': info.token_key,
        'moduleKey': route.module_key,
        'available': staff_routes.load_handler(route) is not None,
        'canEnter': staff_routes.can_enter(request.user, info),
    })


@api_view(ALL_METHODS)
@permission_classes([IsAuthenticated])
def dispatch(request, slug):
    """Run the handler behind ``slug`` in the portal the slug belongs to."""
    route = staff_routes.get_route(slug)
    if route is None:
        return fail('Page not found', 404)
    info = staff_routes.route_info(slug)
    user = request.user
    if not staff_routes.can_enter(user, info):
        logger.warning("user %s (%s) refused entry to %s portal via %s", user.id, user.role, info.type, slug)
        return fail('You do not have access to this page', 403)
    if user.role in AGENT_ROLES and route.module_key and not agent_has_module(user, route.module_key):
        return fail('You do not have access to this page', 403)

    handler = staff_routes.load_handler(route)
    if handler is None:
        return fail('Page not found', 404)

    # the handler re-parses the body, so request.data must stay untouched here
    return handler(request._request)
