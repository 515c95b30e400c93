# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor 12). Email is the login
identifier and is stored lowercased.
"""

import bcrypt
import re

from ..extensions import db
from ..models import User
from ..permissions import PERMISSION_FLAGS
from ..validation import ConflictError, ValidationError
from warehouse.time_utils import utcnow

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("A valid email address is required")
    if len(value) > 255:
        raise ValidationError("email exceeds max length 255")
    return value


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_permissions(permissions: dict | None) -> dict:
    """Validate a permission-flag dict. Missing flags default to False."""
    permissions = permissions or {}
    if not isinstance(permissions, dict):
        raise ValidationError("permissions must be an object")

    unknown = sorted(set(permissions) - set(PERMISSION_FLAGS))
    if unknown:
        raise ValidationError(f"Unknown permission flags: {', '.join(unknown)}")

    flags = {}
    for name in PERMISSION_FLAGS:
        value = permissions.get(name, False)
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be true or false")
        flags[name] = value
    return flags


def create_user(email: str, password: str, permissions: dict | None = None) -> User:
    """
    Create a user. No permission check here; callers gate it.

    Raises ValidationError for bad input and ConflictError for a duplicate email.
    """
    email = normalize_email(email)
    flags = normalize_permissions(permissions)
    password_hash = hash_password(password)

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("A user with this email already exists")

    user = User(email=email, password_hash=password_hash, is_active=True, **flags)
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """Return the active user matching the credentials, or None."""
    email = (email or "").strip().lower()
    if not email or not password:
        return None

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
