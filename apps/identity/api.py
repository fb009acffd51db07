"""
Identity API endpoints with JWT bearer authentication.

`auth_router` covers registration, login, token refresh and logout.
`users_router` covers user administration and preferences.
"""
from typing import Optional
from uuid import UUID
from ninja import Router, Query
from django.http import HttpRequest

from apps.core.exceptions import NotFound, PermissionDenied
from apps.core.pagination import page_request, page_meta, DEFAULT_PAGE_SIZE
from .auth_service import AuthService
from .decorators import has_permission
from .dtos import (
    RegisterIn,
    LoginIn,
    RefreshIn,
    LogoutIn,
    TokenOut,
    MessageOut,
    UserOut,
    UserCreate,
    UserUpdate,
    PreferencesIn,
    UserPageOut,
)
from . import services
from .permissions import Permissions, has_perm
from .security import require_auth

auth_router = Router(tags=["Auth"])
users_router = Router(tags=["Users"])


# =============================================================================
# Auth Endpoints
# =============================================================================

@auth_router.post("/register", response={201: TokenOut}, auth=None)
def register(request: HttpRequest, payload: RegisterIn):
    """Create an account (TEAM_MEMBER) and sign it in."""
    return 201, AuthService.register(request, payload)


@auth_router.post("/login", response=TokenOut, auth=None)
def login(request: HttpRequest, payload: LoginIn):
    """
    Authenticate with email and password.

    Returns a bearer access token (15 minutes) and a refresh token (7 days).
    """
    return AuthService.login(request, payload)


@auth_router.post("/refresh", response=TokenOut, auth=None)
def refresh(request: HttpRequest, payload: RefreshIn):
    """Exchange a refresh token for a new token pair. The old refresh token is revoked."""
    return AuthService.refresh(request, payload.refresh_token)


@auth_router.post("/logout", response=MessageOut, auth=None)
def logout(request: HttpRequest, payload: LogoutIn):
    """Revoke the given refresh token, or every session when `all` is true."""
    user = require_auth(request)
    AuthService.logout(user, payload.refresh_token, everywhere=payload.all)
    return {"success": True, "message": "Logged out"}


@auth_router.get("/me", response=UserOut, auth=None)
def me(request: HttpRequest):
    """Current user's profile and permissions."""
    user = require_auth(request)
    user_dto = services.get_user_dto(user.id)
    if not user_dto:
        raise NotFound("User not found")
    return user_dto


# =============================================================================
# User Management Endpoints
# =============================================================================

@users_router.get("/", response=UserPageOut, auth=None)
@has_permission(Permissions.USER_VIEW)
def list_users(
    request: HttpRequest,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    """List users with filters and pagination."""
    page_req = page_request(page, limit)
    items, total = services.list_users(
        page_req,
        role=role,
        status=status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, **page_meta(total, page_req)}


@users_router.post("/", response={201: UserOut}, auth=None)
@has_permission(Permissions.USER_MANAGE)
def create_user(request: HttpRequest, payload: UserCreate):
    """Create a user. Without a password the account cannot log in until one is set."""
    return 201, services.create_user(request.user, payload)


@users_router.get("/by-email", response=UserOut, auth=None)
@has_permission(Permissions.USER_VIEW)
def get_user_by_email(request: HttpRequest, email: str):
    user_dto = services.get_user_by_email(email)
    if not user_dto:
        raise NotFound("User not found")
    return user_dto


@users_router.get("/{uuid:user_id}", response=UserOut, auth=None)
def get_user(request: HttpRequest, user_id: UUID):
    """Get a user. Users may always read their own profile."""
    user = require_auth(request)
    if user.id != user_id and not has_perm(user, Permissions.USER_VIEW):
        raise PermissionDenied(details={"required": Permissions.USER_VIEW})

    user_dto = services.get_user_dto(user_id)
    if not user_dto:
        raise NotFound("User not found")
    return user_dto


@users_router.put("/{uuid:user_id}", response=UserOut, auth=None)
@has_permission(Permissions.USER_MANAGE)
def update_user(request: HttpRequest, user_id: UUID, payload: UserUpdate):
    """Update name, role, status or preferences. `version` must match the stored version."""
    return services.update_user(request.user, user_id, payload)


@users_router.delete("/{uuid:user_id}", response={204: None}, auth=None)
@has_permission(Permissions.USER_MANAGE)
def delete_user(request: HttpRequest, user_id: UUID):
    """Soft delete: the account is deactivated and its sessions revoked."""
    services.soft_delete_user(request.user, user_id)
    return 204, None


@users_router.put("/{uuid:user_id}/preferences", response=UserOut, auth=None)
def update_preferences(request: HttpRequest, user_id: UUID, payload: PreferencesIn):
    """Merge preference changes. Allowed for the user themself or a user manager."""
    user = require_auth(request)
    if user.id != user_id and not has_perm(user, Permissions.USER_MANAGE):
        raise PermissionDenied(details={"required": Permissions.USER_MANAGE})
    return services.update_preferences(user, user_id, payload)
