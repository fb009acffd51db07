"""
Input validation and sanitization helpers used by request schemas.
"""
import re
from typing import List

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.utils.html import strip_tags

MAX_INPUT_LENGTH = 1000

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[\"'`;]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TITLE_PATTERN = re.compile(r"^[A-Za-z0-9\s\-_]+$")
_SPECIAL_CHAR = re.compile(r"[^A-Za-z0-9]")


def sanitize_input(value: str, max_length: int = MAX_INPUT_LENGTH) -> str:
    """
    Strip markup, quotes, semicolons and control characters, then trim and cap length.
    """
    if not value:
        return ""
    cleaned = strip_tags(value)
    cleaned = _UNSAFE_CHARS.sub("", cleaned)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    return cleaned.strip()[:max_length]


def is_valid_email(value: str) -> bool:
    try:
        validate_email(value)
    except DjangoValidationError:
        return False
    return True


def is_valid_title(value: str) -> bool:
    return bool(_TITLE_PATTERN.match(value or ""))


def password_problems(password: str) -> List[str]:
    """Return the list of unmet password rules (empty when the password is acceptable)."""
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        problems.append(f"at most {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        problems.append("one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("one lowercase letter")
    if not re.search(r"\d", password):
        problems.append("one number")
    if not _SPECIAL_CHAR.search(password):
        problems.append("one special character")
    return problems


def validate_password_strength(password: str) -> str:
    """Pydantic-friendly validator: raises ValueError listing unmet rules."""
    problems = password_problems(password)
    if problems:
        raise ValueError("Password must contain " + ", ".join(problems))
    return password
