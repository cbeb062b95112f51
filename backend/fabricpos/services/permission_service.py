# Overview: Service-layer permission checks backed by the static role map.

from __future__ import annotations

from flask import current_app, has_app_context

from ..models import User
from ..permissions import DEFAULT_ROLE_PERMISSIONS, validate_permission_code


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user: User) -> set[str]:
    """Permission codes granted to the user's role. Inactive users get none."""
    if not user or not user.is_active:
        return set()
    return set(DEFAULT_ROLE_PERMISSIONS.get(user.role, ()))


def user_has_permission(user: User, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user)


def require_permission(user: User, permission_code: str, resource: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless the user holds permission_code.

    Denials are logged (user, permission, resource) for auditing.
    """
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")

    if user_has_permission(user, permission_code):
        return

    if has_app_context():
        current_app.logger.warning(
            "Permission denied: user_id=%s role=%s permission=%s resource=%s",
            getattr(user, "id", None),
            getattr(user, "role", None),
            permission_code,
            resource,
        )
    raise PermissionDeniedError(f"Requires permission: {permission_code}")
