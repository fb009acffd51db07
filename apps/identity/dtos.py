"""DTOs and API schemas for Identity app."""
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID
from typing import Annotated, Optional, List

from ninja import Schema
from pydantic import AfterValidator, Field, model_validator

from apps.core.pagination import PageMeta
from apps.core.validation import is_valid_email, sanitize_input, validate_password_strength
from .models import UserRole, UserStatus


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    email: str
    name: str
    role: str
    status: str
    preferences: dict
    last_login_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    version: int
    permissions: List[str] = field(default_factory=list)


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not is_valid_email(value):
        raise ValueError("Invalid email format")
    return value


def _clean_name(value: str) -> str:
    value = sanitize_input(value, max_length=100)
    if len(value) < 2:
        raise ValueError("Name must be between 2 and 100 characters")
    return value


Email = Annotated[str, AfterValidator(_normalize_email)]
PersonName = Annotated[str, AfterValidator(_clean_name)]
StrongPassword = Annotated[str, AfterValidator(validate_password_strength)]


# =============================================================================
# Auth Schemas
# =============================================================================

class RegisterIn(Schema):
    email: Email
    name: PersonName
    password: StrongPassword
    confirm_password: str

    @model_validator(mode='after')
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginIn(Schema):
    email: Email
    password: str = Field(min_length=1, max_length=100)


class RefreshIn(Schema):
    refresh_token: str


class LogoutIn(Schema):
    refresh_token: Optional[str] = None
    all: bool = False


class UserOut(Schema):
    id: UUID
    email: str
    name: str
    role: str
    status: str
    preferences: dict
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int
    permissions: List[str] = []


class TokenOut(Schema):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserOut


class MessageOut(Schema):
    success: bool
    message: str


# =============================================================================
# User Management Schemas
# =============================================================================

class NotificationPreferencesIn(Schema):
    email: Optional[bool] = None
    in_app: Optional[bool] = None
    task_updates: Optional[bool] = None
    project_updates: Optional[bool] = None


class PreferencesIn(Schema):
    theme: Optional[str] = Field(default=None, min_length=2, max_length=50)
    language: Optional[str] = Field(default=None, min_length=2, max_length=10)
    notifications: Optional[NotificationPreferencesIn] = None


class UserCreate(Schema):
    email: Email
    name: PersonName
    role: UserRole = UserRole.TEAM_MEMBER
    status: UserStatus = UserStatus.PENDING
    password: Optional[StrongPassword] = None
    preferences: Optional[PreferencesIn] = None


class UserUpdate(Schema):
    version: int
    name: Optional[PersonName] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    preferences: Optional[PreferencesIn] = None


class UserPageOut(PageMeta):
    items: List[UserOut]
