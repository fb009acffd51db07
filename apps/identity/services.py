"""Services for Identity app: user lookup, management and preferences."""
import logging
from typing import Optional, Tuple, List
from uuid import UUID

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.activity.audit_service import log_action, AuditAction
from apps.core import cache
from apps.core.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed, ErrorCode, version_conflict
from apps.core.pagination import PageRequest, paginate, resolve_ordering
from .models import User, UserStatus, AuthSession, default_preferences
from .dtos import UserDTO, UserCreate, UserUpdate, PreferencesIn
from .permissions import get_user_permissions, can_assign_role

logger = logging.getLogger(__name__)

USER_SORT_FIELDS = ('created_at', 'updated_at', 'email', 'name', 'role', 'status')


def to_user_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        status=user.status,
        preferences=user.preferences,
        last_login_at=user.last_login_at,
        created_at=user.date_joined,
        updated_at=user.updated_at,
        version=user.version,
        permissions=list(get_user_permissions(user)),
    )


def get_user_dto(user_id) -> Optional[UserDTO]:
    """Cache-aside lookup of a live (not deleted) user."""
    def load():
        try:
            return to_user_dto(User.objects.get(id=user_id, deleted_at__isnull=True))
        except User.DoesNotExist:
            return None

    return cache.get_or_set(cache.user_key(user_id), load)


def get_user_by_email(email: str) -> Optional[UserDTO]:
    try:
        user = User.objects.get(email__iexact=email.strip(), deleted_at__isnull=True)
    except User.DoesNotExist:
        return None
    return to_user_dto(user)


def merge_preferences(current: dict, changes: Optional[PreferencesIn]) -> dict:
    """Deep-merge the provided preference fields over `current`."""
    merged = default_preferences()
    merged.update(current or {})
    merged['notifications'] = {**default_preferences()['notifications'], **(merged.get('notifications') or {})}
    if changes is None:
        return merged

    data = changes.model_dump(exclude_none=True)
    notifications = data.pop('notifications', None)
    merged.update(data)
    if notifications:
        merged['notifications'].update(notifications)
    return merged


def create_user(actor: Optional[User], payload: UserCreate) -> UserDTO:
    if actor is not None and not can_assign_role(actor, payload.role):
        raise PermissionDenied(
            "You cannot assign this role",
            code=ErrorCode.AUTHORIZATION_ERROR,
            details={"role": payload.role},
        )
    if User.objects.filter(email__iexact=payload.email).exists():
        raise Conflict("A user with this email already exists", details={"email": payload.email})

    user = User.objects.create_user(
        username=payload.email,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        role=payload.role,
        status=payload.status,
        preferences=merge_preferences({}, payload.preferences),
    )
    logger.info(f"Created user {user.id} ({user.role})")
    log_action(
        action=AuditAction.USER_CREATED,
        target_type="User",
        target_id=user.id,
        target_label=user.email,
        performed_by=actor,
        context={"role": user.role, "status": user.status},
    )
    return to_user_dto(user)


def list_users(
    page: PageRequest,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> Tuple[List[UserDTO], int]:
    qs = User.objects.filter(deleted_at__isnull=True)

    if role:
        qs = qs.filter(role=role)
    if status:
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(email__icontains=search) | Q(name__icontains=search))

    ordering = resolve_ordering(sort_by, sort_order, USER_SORT_FIELDS)
    # created_at is exposed but stored as date_joined
    ordering = [o.replace('created_at', 'date_joined') for o in ordering]
    users, total = paginate(qs.order_by(*ordering), page)
    return [to_user_dto(u) for u in users], total


def _lock_user(user_id) -> User:
    try:
        return User.objects.select_for_update().get(id=user_id, deleted_at__isnull=True)
    except User.DoesNotExist:
        raise NotFound("User not found")


def update_user(actor: User, user_id: UUID, payload: UserUpdate) -> UserDTO:
    with transaction.atomic():
        user = _lock_user(user_id)
        if payload.version != user.version:
            raise version_conflict(payload.version, user.version)

        changes = {}
        if payload.name is not None and payload.name != user.name:
            changes['name'] = [user.name, payload.name]
            user.name = payload.name
        if payload.role is not None and payload.role != user.role:
            if not can_assign_role(actor, payload.role):
                raise PermissionDenied(
                    "You cannot assign this role",
                    code=ErrorCode.AUTHORIZATION_ERROR,
                    details={"role": payload.role},
                )
            if user.id == actor.id:
                raise ValidationFailed("You cannot change your own role", code=ErrorCode.INVALID_INPUT)
            changes['role'] = [user.role, payload.role]
            user.role = payload.role
        if payload.status is not None and payload.status != user.status:
            changes['status'] = [user.status, payload.status]
            user.status = payload.status
        if payload.preferences is not None:
            user.preferences = merge_preferences(user.preferences, payload.preferences)
            changes['preferences'] = True

        user.version += 1
        user.save()

        if 'status' in changes and user.status != UserStatus.ACTIVE:
            revoke_sessions(user)

    cache.invalidate(cache.user_key(user.id))
    logger.info(f"Updated user {user.id} (v{user.version})")
    log_action(
        action=AuditAction.USER_UPDATED,
        target_type="User",
        target_id=user.id,
        target_label=user.email,
        performed_by=actor,
        context={"changes": changes, "version": user.version},
    )
    return to_user_dto(user)


def update_preferences(actor: User, user_id: UUID, payload: PreferencesIn) -> UserDTO:
    with transaction.atomic():
        user = _lock_user(user_id)
        user.preferences = merge_preferences(user.preferences, payload)
        user.version += 1
        user.save(update_fields=['preferences', 'version', 'updated_at', 'is_active'])

    cache.invalidate(cache.user_key(user.id))
    log_action(
        action=AuditAction.USER_PREFERENCES_UPDATED,
        target_type="User",
        target_id=user.id,
        target_label=user.email,
        performed_by=actor,
    )
    return to_user_dto(user)


def soft_delete_user(actor: User, user_id: UUID) -> None:
    if actor.id == user_id:
        raise ValidationFailed("You cannot delete your own account", code=ErrorCode.INVALID_INPUT)

    with transaction.atomic():
        user = _lock_user(user_id)
        user.status = UserStatus.INACTIVE
        user.deleted_at = timezone.now()
        user.version += 1
        user.save()
        revoke_sessions(user)

    cache.invalidate(cache.user_key(user.id))
    logger.info(f"Soft-deleted user {user.id}")
    log_action(
        action=AuditAction.USER_DELETED,
        target_type="User",
        target_id=user.id,
        target_label=user.email,
        performed_by=actor,
    )


def revoke_sessions(user: User) -> int:
    return AuthSession.objects.filter(user=user, revoked_at__isnull=True).update(revoked_at=timezone.now())