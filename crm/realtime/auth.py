"""
WebSocket authentication.

Browsers cannot set an ``Authorization`` header on a WebSocket, so the
portals pass their token as ``?token=``.  Both JWT access tokens and
legacy DRF tokens are accepted; without a token the session user (if
any) from :class:`channels.auth.AuthMiddleware` is kept.
"""
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from crm.models import User


@database_sync_to_async
def user_for_token(raw: str):
    try:
        access = AccessToken(raw)
    except TokenError:
        token = Token.objects.select_related('user').filter(key=raw).first()
        if token is None or not token.user.is_active:
            return AnonymousUser()
        return token.user
    user = User.objects.filter(id=access.get('user_id'), is_active=True).first()
    if user is None:
        return AnonymousUser()
    claimed = access.get('role')
    if claimed and claimed != user.role:
        return AnonymousUser()
    return user


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs((scope.get('query_string') or b'').decode())
        raw = (params.get('token') or [''])[0]
        if raw:
            scope = dict(scope, user=await user_for_token(raw))
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(TokenAuthMiddleware(inner))
