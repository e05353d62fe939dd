"""
Authentication backends for the portals.

Kept apart from the views so that DRF can import them while it
initialises its settings without pulling in any view module.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.tokens import RefreshToken


class TokenAuthentication(authentication.TokenAuthentication):
    """Legacy ``Authorization: Token <key>`` header."""

    keyword = 'Token'


class PortalJWTAuthentication(JWTAuthentication):
    """``Authorization: Bearer <jwt>`` issued by :func:`issue_portal_tokens`.

    Tokens carry the role the user had at login.  A token minted before a
    role change is rejected so that a demoted account cannot keep using
    its old portal.
    """

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        claimed = validated_token.get('role')
        if claimed and claimed != getattr(user, 'role', None):
            raise exceptions.AuthenticationFailed('Token role no longer matches the account', code='role_changed')
        return user


def issue_portal_tokens(user) -> RefreshToken:
    """Return a refresh token whose access token carries portal claims."""
    refresh = RefreshToken.for_user(user)
    if user.role == 'clinic':
        clinic = getattr(user, 'owned_clinic', None)
        clinic_id = clinic.id if clinic else None
    else:
        clinic_id = user.clinic_id
    # access tokens copy these claims from the refresh token
    refresh['role'] = user.role
    refresh['clinicId'] = clinic_id
    return refresh
