# Overview: Service-layer operations for user accounts; bcrypt password hashing and approval.

"""
Authentication Service

Passwords are hashed with bcrypt. The first account ever registered
becomes an approved admin; everyone after that registers as unapproved
staff and cannot sign in until an admin approves them.
"""

import re

import bcrypt
from flask import current_app

from ..errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from ..time_utils import utcnow
from ..validation import optional_str, require_str

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter and one digit
    """
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_email(email) -> str:
    email = require_str(email, "email", max_length=255).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("email is not a valid address")
    return email


def create_user(
    email: str,
    password: str,
    *,
    role: str = "staff",
    full_name: str | None = None,
    is_approved: bool = True,
) -> User:
    email = _normalize_email(email)
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    if db.session.query(User.id).filter(User.email == email).first() is not None:
        raise ConflictError(f"An account with email {email} already exists")

    user = User(
        email=email,
        full_name=optional_str(full_name, max_length=255, field="full_name"),
        password_hash=hash_password(password),
        role=role,
        is_approved=is_approved,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_user(email: str, password: str, full_name: str | None = None) -> User:
    """Self-registration. First account bootstraps the store as admin."""
    first = db.session.query(User.id).first() is None
    return create_user(
        email,
        password,
        role="admin" if first else "staff",
        full_name=full_name,
        is_approved=first,
    )


def authenticate(email: str, password: str) -> User:
    try:
        email = _normalize_email(email)
    except ValidationError:
        raise AuthenticationError("Invalid email or password")
    user = db.session.query(User).filter(User.email == email).first()
    if user is None or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not user.is_approved:
        raise PermissionDeniedError("Your account is awaiting approval")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.asc(), User.id.asc()).all()


def update_user(user_id: int, *, role: str | None = None, is_approved: bool | None = None, acting_user_id: int | None = None) -> User:
    """Approve/unapprove and change roles. Admins cannot demote themselves."""
    user = get_user(user_id)
    if role is not None:
        if role not in ROLES:
            raise ValidationError(f"role must be one of {', '.join(ROLES)}")
        if acting_user_id == user.id and role != "admin":
            raise ValidationError("You cannot remove your own admin role")
        user.role = role
    if is_approved is not None:
        if acting_user_id == user.id and not is_approved:
            raise ValidationError("You cannot revoke your own approval")
        user.is_approved = is_approved
    db.session.commit()
    return user
