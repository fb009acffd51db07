"""
Bearer-token request authentication helpers.

Endpoints are declared with `auth=None` and call these helpers directly,
so the error envelope is the same for missing, bad and expired tokens.
"""
from typing import Optional

from django.http import HttpRequest

from apps.core.exceptions import AuthenticationFailed, PermissionDenied, ErrorCode
from .jwt_auth import get_user_id_from_token
from .models import User
from .permissions import get_user_permissions


def get_bearer_token(request: HttpRequest) -> Optional[str]:
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def get_current_user(request: HttpRequest) -> Optional[User]:
    """
    Resolve the user from the Authorization header.

    Returns None when no bearer token is present. A present but invalid or
    expired token raises AuthenticationFailed.
    """
    token = get_bearer_token(request)
    if not token:
        return None

    user_id = get_user_id_from_token(token)
    try:
        return User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        raise AuthenticationFailed("Account is not active", code=ErrorCode.TOKEN_INVALID)


def require_auth(request: HttpRequest) -> User:
    """
    Require authentication. Raises 401 if not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise AuthenticationFailed("Authentication required")
    request.user = user
    return user


def require_permission(request: HttpRequest, permission: str) -> User:
    """Require a specific permission. Raises 401/403."""
    user = require_auth(request)
    if permission not in get_user_permissions(user):
        raise PermissionDenied(details={"required": permission})
    return user
