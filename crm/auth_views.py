"""
Authentication views.

Login issues both a legacy DRF token and a JWT pair whose claims carry
the portal role and clinic, so the portals can route without another
round trip.  Kept apart from :mod:`crm.authentication` to avoid import
cycles while DRF initialises its settings.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from crm.authentication import issue_portal_tokens
from crm.serializers.auth import LoginSerializer
from crm.services.audit import log_action
from crm.throttles import LoginThrottle

# roles each portal's login form accepts
PORTAL_ROLES = {
    'admin': {'admin'},
    'clinic': {'clinic'},
    'doctor': {'doctor'},
    'agent': {'agent', 'doctorStaff'},
    'staff': {'staff', 'agent', 'doctorStaff'},
}


def _clinic_id(user):
    if user.role == 'clinic':
        clinic = getattr(user, 'owned_clinic', None)
        return clinic.id if clinic else None
    return user.clinic_id


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginThrottle])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    user = authenticate(request, username=vd['username'], password=vd['password'])
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': vd['username'], 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'success': False, 'message': 'Invalid username or password'}, status=400)

    portal = vd.get('portal')
    if portal and user.role not in PORTAL_ROLES[portal]:
        log_action(user=user, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'wrong_portal', 'portal': portal})
        return Response({'success': False, 'message': f'This account cannot sign in to the {portal} portal'},
                        status=403)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = issue_portal_tokens(user)
    return Response({
        'success': True,
        'token': token_obj.key,
        'access': str(refresh.access_token),
        'refresh': str(refresh),
        'role': user.role,
        'user': {
            'id': user.id,
            'username': user.username,
            'name': user.display_name,
            'email': user.email,
            'role': user.role,
            'clinicId': _clinic_id(user),
        },
    }, status=200)


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response) and resp.status_code == 200:
        return Response({'success': True, **resp.data}, status=200)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the user."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            token = RefreshToken(refresh)
        except TokenError as e:
            return Response({'success': False, 'message': str(e)}, status=400)
        if str(token.get('user_id')) != str(request.user.id):
            return Response({'success': False, 'message': 'Token does not belong to this user'}, status=403)
        token.blacklist()
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count})
    return Response({'success': True, 'blacklisted': count})
