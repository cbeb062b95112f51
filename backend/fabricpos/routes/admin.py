# Overview: Flask API routes for user administration; parses input and returns JSON responses.

"""
User management (admin only).

- Approve sign-ups / deactivate accounts
- Promote or demote between admin and staff

Deactivating a user revokes all their sessions immediately.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..models import ROLES
from ..services import auth_service, session_service
from ..services.auth_service import AccountRuleError
from ..validation import NotFoundError


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin/users")


@admin_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    try:
        users = auth_service.list_users()
    except Exception:
        current_app.logger.exception("User listing failed")
        return jsonify({"message": "Server error"}), 500
    return jsonify([u.to_dict() for u in users]), 200


@admin_bp.put("/<int:user_id>/status")
@require_auth
@require_permission("MANAGE_USERS")
def set_status_route(user_id: int):
    data = request.get_json(silent=True) or {}
    is_active = data.get("isActive")
    if not isinstance(is_active, bool):
        return jsonify({
            "message": "isActive must be a boolean",
            "errors": {"isActive": "isActive must be a boolean"},
        }), 400

    try:
        user = auth_service.set_user_active(user_id, is_active, acting_user=g.current_user)
        if not is_active:
            session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except AccountRuleError as e:
        return jsonify({"message": str(e)}), 400
    except Exception:
        current_app.logger.exception("Status change for user %s failed", user_id)
        return jsonify({"message": "Server error"}), 500

    return jsonify({
        "message": f"User {'activated' if is_active else 'deactivated'} successfully",
        "user": user.to_dict(),
    }), 200


@admin_bp.put("/<int:user_id>/role")
@require_auth
@require_permission("MANAGE_USERS")
def set_role_route(user_id: int):
    data = request.get_json(silent=True) or {}
    role = data.get("role")
    if role not in ROLES:
        return jsonify({
            "message": "Role must be admin or staff",
            "errors": {"role": "Role must be admin or staff"},
        }), 400

    try:
        user = auth_service.set_user_role(user_id, role, acting_user=g.current_user)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except AccountRuleError as e:
        return jsonify({"message": str(e)}), 400
    except Exception:
        current_app.logger.exception("Role change for user %s failed", user_id)
        return jsonify({"message": "Server error"}), 500

    return jsonify({
        "message": f"User role updated to {role} successfully",
        "user": user.to_dict(),
    }), 200
