"""
JWT Authentication utilities for Taskflow.

Provides token generation and validation for stateless bearer
authentication. Refresh tokens carry a `jti` that ties them to an
AuthSession row so they can be rotated and revoked.
"""
import uuid
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID
from django.conf import settings

from apps.core.exceptions import AuthenticationFailed, ErrorCode


# JWT Configuration
JWT_ALGORITHM = 'HS256'
ACCESS_TOKEN_EXPIRE_MINUTES = settings.JWT_ACCESS_TOKEN_MINUTES
REFRESH_TOKEN_EXPIRE_DAYS = settings.JWT_REFRESH_TOKEN_DAYS

ACCESS = 'access'
REFRESH = 'refresh'


def _secret() -> str:
    return settings.JWT_SECRET


def create_access_token(user_id: UUID, role: str) -> str:
    """
    Create a short-lived access token.

    Contains user_id and role for request authorization.
    """
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'role': role,
        'exp': now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        'iat': now,
        'type': ACCESS,
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: UUID, jti: Optional[str] = None) -> Tuple[str, str, datetime]:
    """
    Create a long-lived refresh token.

    Returns:
        (token, jti, expires_at)
    """
    now = datetime.now(timezone.utc)
    jti = jti or uuid.uuid4().hex
    expires_at = now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        'sub': str(user_id),
        'jti': jti,
        'exp': expires_at,
        'iat': now,
        'type': REFRESH,
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM), jti, expires_at


def decode_token(token: str, token_type: str = ACCESS) -> dict:
    """
    Decode and validate a JWT token of the expected type.

    Raises:
        AuthenticationFailed: TOKEN_EXPIRED or TOKEN_INVALID.
    """
    try:
        payload = jwt.decode(token, _secret(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed(code=ErrorCode.TOKEN_EXPIRED)
    except jwt.InvalidTokenError:
        raise AuthenticationFailed(code=ErrorCode.TOKEN_INVALID)

    if payload.get('type') != token_type or 'sub' not in payload:
        raise AuthenticationFailed(code=ErrorCode.TOKEN_INVALID)
    return payload


def get_user_id_from_token(token: str, token_type: str = ACCESS) -> UUID:
    """
    Extract the user id from a valid token.
    """
    payload = decode_token(token, token_type)
    try:
        return UUID(payload['sub'])
    except ValueError:
        raise AuthenticationFailed(code=ErrorCode.TOKEN_INVALID)


def access_token_ttl_seconds() -> int:
    return ACCESS_TOKEN_EXPIRE_MINUTES * 60
