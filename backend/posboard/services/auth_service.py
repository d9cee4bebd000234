# Overview: Service-layer operations for staff accounts; bcrypt passwords and login.

"""
Staff Accounts

Passwords are strength-checked, then stored as bcrypt hashes. Login only
succeeds for active accounts.
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import VALID_ROLES, ROLE_CASHIER
from ..validation import ConflictError
from posboard.time_utils import utcnow


DEFAULT_CASHIER_NAME = "Cashier"
MIN_PASSWORD_LENGTH = 8

# (pattern that must match, what is missing)
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"[0-9]"), "a digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>]"), "a special character"),
)


class PasswordValidationError(Exception):
    """Password is too weak to store."""
    pass


def validate_password_strength(password: str) -> None:
    """At least 8 characters with upper, lower, digit and a special character."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password needs at least {MIN_PASSWORD_LENGTH} characters")
    for pattern, missing in _PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(f"Password needs {missing}")


def hash_password(password: str, rounds: int = 12) -> str:
    """bcrypt hash as text; rounds is the bcrypt cost factor."""
    validate_password_strength(password)
    digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check; a malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = ROLE_CASHIER,
    display_name: str | None = None,
    rounds: int = 12,
) -> User:
    """
    Create an active staff account.

    Raises:
    - PasswordValidationError: weak password
    - ValueError: unknown role
    - ConflictError: username or email taken
    """
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role}. Must be one of {list(VALID_ROLES)}")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username '{username}' already exists")
    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError(f"Email '{email}' already exists")

    user = User(
        username=username,
        email=email,
        display_name=display_name,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for valid credentials, else None."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def cashier_name_for(user: User | None) -> str:
    """
    Name printed on receipts: display name, else the local part of the
    email, else a generic label.
    """
    if user is None:
        return DEFAULT_CASHIER_NAME
    if user.display_name:
        return user.display_name
    if user.email:
        local_part = user.email.split("@")[0]
        if local_part:
            return local_part
    return DEFAULT_CASHIER_NAME
