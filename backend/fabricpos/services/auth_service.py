# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and account management.

WHY: Every sale and stock change is attributable to a user. Uses bcrypt for
password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 6 characters
- Public sign-ups are created inactive (staff role) until an admin approves
- Session tokens managed separately (see session_service.py)
"""

import bcrypt

from ..extensions import db
from ..models import User, ROLES
from ..validation import ConflictError, NotFoundError
from fabricpos.time_utils import utcnow

MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Login refused. The message is safe to show to the client."""
    pass


class AccountRuleError(Exception):
    """Account change refused by a user-management guard."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


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


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=email.strip().lower()).first()


def create_user(
    name: str,
    email: str,
    password: str,
    role: str = "staff",
    is_active: bool = False,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ConflictError: email already registered
        PasswordValidationError: password too weak
        ValueError: unknown role
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    email = email.strip().lower()
    if get_user_by_email(email):
        raise ConflictError("User with this email already exists")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User:
    """
    Check credentials and return the user.

    Wrong email and wrong password produce the same message. An inactive
    account is only reported after the password has been verified.
    """
    user = get_user_by_email(email or "")
    if not user or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthenticationError("Account is pending approval or deactivated")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password or "", user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def set_user_active(user_id: int, is_active: bool, acting_user: User) -> User:
    """Approve/deactivate an account. Admins cannot deactivate themselves."""
    user = _get_user_or_404(user_id)

    if user.id == acting_user.id and not is_active:
        raise AccountRuleError("Cannot deactivate your own account")

    user.is_active = is_active
    db.session.commit()
    return user


def set_user_role(user_id: int, role: str, acting_user: User) -> User:
    """
    Change a user's role.

    Guards: no changing your own role, and the last active admin cannot be
    demoted to staff.
    """
    if role not in ROLES:
        raise ValueError("Role must be admin or staff")

    user = _get_user_or_404(user_id)

    if user.id == acting_user.id:
        raise AccountRuleError("Cannot change your own role")

    if user.role == "admin" and role == "staff":
        admin_count = db.session.query(User).filter_by(role="admin", is_active=True).count()
        if admin_count <= 1:
            raise AccountRuleError("Cannot demote the last active admin")

    user.role = role
    db.session.commit()
    return user
