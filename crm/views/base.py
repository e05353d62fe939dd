"""Response helpers shared by the API views."""
import functools
import logging

from rest_framework import status
from rest_framework.response import Response

from crm.services.appointments import AppointmentError
from crm.services.tenancy import TenancyError, require_clinic, resolve_clinic

logger = logging.getLogger(__name__)


def ok(message=None, status_code=status.HTTP_200_OK, **data):
    body = {'success': True}
    if message:
        body['message'] = message
    body.update(data)
    return Response(body, status=status_code)


def fail(message, status_code=status.HTTP_400_BAD_REQUEST, **extra):
    return Response({'success': False, 'message': message, **extra}, status=status_code)


def clinic_id_param(request):
    cid = request.query_params.get('clinicId')
    if cid in (None, '') and request.method not in ('GET', 'HEAD', 'OPTIONS'):
        data = request.data
        if hasattr(data, 'get'):
            cid = data.get('clinicId')
    return cid


def tenant(request, *, required=True):
    """Clinic the request acts on; admins name it with ``clinicId``."""
    finder = require_clinic if required else resolve_clinic
    return finder(request.user, clinic_id_param(request))


def service_errors(view):
    """Translate service-layer exceptions into JSON error responses."""
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except TenancyError as e:
            return fail(str(e), e.status)
        except AppointmentError as e:
            return fail(str(e), **e.payload)
        except PermissionError as e:
            return fail(str(e) or 'Access denied', status.HTTP_403_FORBIDDEN)
        except LookupError as e:
            if isinstance(e, (KeyError, IndexError)):
                raise
            return fail(str(e) or 'Not found', status.HTTP_404_NOT_FOUND)
        except ValueError as e:
            return fail(str(e))
    return wrapper
