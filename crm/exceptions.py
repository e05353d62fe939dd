import logging

from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception("unhandled error in %s", context.get('view').__class__.__name__, exc_info=exc)
        return Response(
            {'success': False, 'message': 'Internal Server Error',
             'error': {'code': 'server_error', 'message': 'Internal Server Error'}},
            status=500,
        )
    code = getattr(exc, 'default_code', None) or 'api_error'
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response(
        {'success': False, 'message': str(detail) if not isinstance(detail, (dict, list)) else 'Validation failed',
         'error': {'code': code, 'message': detail}},
        status=resp.status_code,
    )
