"""
Authentication service: registration, login with lockout, refresh-token
rotation and logout.
"""
import ipaddress
import logging
from typing import Optional

from django.conf import settings
from django.contrib.auth import authenticate
from django.contrib.auth.signals import user_logged_in
from django.db import transaction
from django.http import HttpRequest
from django.utils import timezone

from apps.activity.audit_service import log_action, AuditAction
from apps.core import ratelimit
from apps.core.exceptions import AuthenticationFailed, Conflict, RateLimited, ErrorCode
from apps.core.middleware import get_client_ip
from .dtos import RegisterIn, LoginIn
from .jwt_auth import (
    REFRESH,
    access_token_ttl_seconds,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from .models import User, UserRole, UserStatus, AuthSession, default_preferences
from .services import to_user_dto

logger = logging.getLogger(__name__)

LOGIN_SCOPE = 'login'
REGISTER_SCOPE = 'register'
REFRESH_SCOPE = 'refresh'

REGISTER_LIMIT = (3, 60 * 60)
REFRESH_LIMIT = (10, 15 * 60)

STATUS_MESSAGES = {
    UserStatus.INACTIVE: "Account is inactive",
    UserStatus.SUSPENDED: "Account is suspended",
    UserStatus.PENDING: "Account is pending approval",
}


def _ip_or_none(request: HttpRequest) -> Optional[str]:
    ip = get_client_ip(request)
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return None
    return ip


class AuthService:
    """Stateless token issuance backed by AuthSession rows."""

    @staticmethod
    def issue_tokens(user: User, request: Optional[HttpRequest] = None) -> dict:
        refresh_token, jti, expires_at = create_refresh_token(user.id)
        AuthSession.objects.create(
            user=user,
            jti=jti,
            expires_at=expires_at,
            user_agent=(request.headers.get('User-Agent', '') if request else '')[:255],
            ip_address=_ip_or_none(request) if request else None,
        )
        return {
            'access_token': create_access_token(user.id, user.role),
            'refresh_token': refresh_token,
            'token_type': 'Bearer',
            'expires_in': access_token_ttl_seconds(),
            'user': to_user_dto(user),
        }

    @staticmethod
    @transaction.atomic
    def register(request: HttpRequest, payload: RegisterIn) -> dict:
        limit, window = REGISTER_LIMIT
        ratelimit.enforce(REGISTER_SCOPE, get_client_ip(request), limit, window)

        if User.objects.filter(email__iexact=payload.email).exists():
            raise Conflict("A user with this email already exists", details={"email": payload.email})

        user = User.objects.create_user(
            username=payload.email,
            email=payload.email,
            password=payload.password,
            name=payload.name,
            role=UserRole.TEAM_MEMBER,
            status=UserStatus.ACTIVE,
            preferences=default_preferences(),
        )
        logger.info(f"Registered user {user.id}")
        log_action(
            action=AuditAction.USER_REGISTERED,
            target_type="User",
            target_id=user.id,
            target_label=user.email,
            performed_by=user,
        )
        return AuthService.issue_tokens(user, request)

    @staticmethod
    def login(request: HttpRequest, payload: LoginIn) -> dict:
        """
        Verify credentials and issue a token pair.

        After LOGIN_MAX_ATTEMPTS failures for one email within the lockout
        window every attempt is refused with 429 until the window expires.
        """
        max_attempts = settings.LOGIN_MAX_ATTEMPTS
        lockout = settings.LOGIN_LOCKOUT_SECONDS

        if ratelimit.count(LOGIN_SCOPE, payload.email) >= max_attempts:
            logger.warning(f"Login refused for locked account {payload.email}")
            raise RateLimited(
                "Too many failed login attempts. Try again later.",
                details={"retry_after_seconds": lockout},
            )

        user = authenticate(request, username=payload.email, password=payload.password)
        if user is None or user.deleted_at is not None:
            attempts = ratelimit.hit(LOGIN_SCOPE, payload.email, lockout)
            logger.warning(f"Failed login for {payload.email} (attempt {attempts})")
            raise AuthenticationFailed(
                "Invalid email or password",
                details={"remaining_attempts": max(max_attempts - attempts, 0)},
            )

        if user.status != UserStatus.ACTIVE:
            raise AuthenticationFailed(
                STATUS_MESSAGES.get(user.status, "Account is not active"),
                details={"status": user.status},
            )

        ratelimit.reset(LOGIN_SCOPE, payload.email)
        user.last_login_at = timezone.now()
        user.save(update_fields=['last_login_at'])
        user_logged_in.send(sender=user.__class__, request=request, user=user)
        logger.info(f"User {user.id} logged in")
        return AuthService.issue_tokens(user, request)

    @staticmethod
    def refresh(request: HttpRequest, refresh_token: str) -> dict:
        """Rotate a refresh token: revoke its session and issue a new pair."""
        limit, window = REFRESH_LIMIT
        ratelimit.enforce(REFRESH_SCOPE, get_client_ip(request), limit, window)

        payload = decode_token(refresh_token, REFRESH)
        with transaction.atomic():
            try:
                session = AuthSession.objects.select_for_update().select_related('user').get(jti=payload.get('jti'))
            except AuthSession.DoesNotExist:
                raise AuthenticationFailed(code=ErrorCode.TOKEN_INVALID)

            replayed = session.is_revoked
            if not replayed:
                if session.expires_at <= timezone.now():
                    raise AuthenticationFailed(code=ErrorCode.TOKEN_EXPIRED)

                user = session.user
                if not user.is_active:
                    raise AuthenticationFailed("Account is not active", code=ErrorCode.TOKEN_INVALID)

                session.revoked_at = timezone.now()
                session.last_used_at = session.revoked_at
                session.save(update_fields=['revoked_at', 'last_used_at'])
                tokens = AuthService.issue_tokens(user, request)

        if replayed:
            # A rotated token was replayed: drop every session of this user
            logger.warning(f"Revoked refresh token reused for user {session.user_id}")
            AuthSession.objects.filter(user_id=session.user_id, revoked_at__isnull=True).update(
                revoked_at=timezone.now()
            )
            raise AuthenticationFailed("Refresh token has been revoked", code=ErrorCode.TOKEN_INVALID)
        return tokens

    @staticmethod
    def logout(user: User, refresh_token: Optional[str] = None, everywhere: bool = False) -> int:
        """Revoke one session (by refresh token) or all of the user's sessions."""
        sessions = AuthSession.objects.filter(user=user, revoked_at__isnull=True)
        if not everywhere:
            if not refresh_token:
                return 0
            payload = decode_token(refresh_token, REFRESH)
            sessions = sessions.filter(jti=payload.get('jti'))

        revoked = sessions.update(revoked_at=timezone.now())
        logger.info(f"User {user.id} logged out ({revoked} session(s) revoked)")
        log_action(
            action=AuditAction.USER_LOGOUT,
            target_type="User",
            target_id=user.id,
            target_label=user.email,
            performed_by=user,
            context={"sessions_revoked": revoked, "all": everywhere},
        )
        return revoked
