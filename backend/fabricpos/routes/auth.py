# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/fabricpos/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Public sign-up creates an inactive staff account (admin approval required)
- Admin-only registration of active accounts with a role
- Session management with token-based auth
- Password change revokes every other session of the user
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthenticationError, PasswordValidationError
from ..validation import ConflictError, ValidationError, validate_account_fields
from ..decorators import bearer_token, require_auth, require_permission


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _validation_response(e: ValidationError):
    return jsonify({"message": str(e), "errors": e.errors}), 400


@auth_bp.post("/signup")
def signup_route():
    """
    Public self-registration.

    The account is created as inactive staff; an admin activates it from
    user management before it can log in.
    """
    try:
        fields = validate_account_fields(request.get_json(silent=True))
        user = auth_service.create_user(
            name=fields["name"],
            email=fields["email"],
            password=fields["password"],
            role="staff",
            is_active=False,
        )
    except ValidationError as e:
        return _validation_response(e)
    except (ConflictError, PasswordValidationError) as e:
        return jsonify({"message": str(e)}), 400
    except Exception:
        current_app.logger.exception("Signup failed")
        return jsonify({"message": "Server error during signup"}), 500

    return jsonify({
        "message": "Registration successful. Please wait for admin approval.",
        "user": user.to_summary(),
    }), 201


@auth_bp.post("/register")
@require_auth
@require_permission("MANAGE_USERS")
def register_route():
    """Admin creates an active account with an explicit role."""
    try:
        fields = validate_account_fields(request.get_json(silent=True), allow_role=True)
        user = auth_service.create_user(
            name=fields["name"],
            email=fields["email"],
            password=fields["password"],
            role=fields["role"],
            is_active=True,
        )
    except ValidationError as e:
        return _validation_response(e)
    except (ConflictError, PasswordValidationError) as e:
        return jsonify({"message": str(e)}), 400
    except Exception:
        current_app.logger.exception("Registration failed")
        return jsonify({"message": "Server error during registration"}), 500

    return jsonify({
        "message": "User created successfully",
        "user": user.to_summary(),
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header (Bearer) for
    protected routes.
    """
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"message": "Email and password are required"}), 400

    try:
        user = auth_service.authenticate(email, password)
        _session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AuthenticationError as e:
        return jsonify({"message": str(e)}), 401
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"message": "Server error during login"}), 500

    return jsonify({
        "message": "Login successful",
        "token": token,
        "user": user.to_summary(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
    except Exception:
        current_app.logger.exception("Logout failed")
        return jsonify({"message": "Server error during logout"}), 500
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/profile")
@require_auth
def profile_route():
    return jsonify({"user": g.current_user.to_summary()}), 200


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    current_password = data.get("currentPassword") or ""
    new_password = data.get("newPassword") or ""

    if not current_password or not new_password:
        return jsonify({"message": "Current password and new password are required"}), 400

    try:
        auth_service.change_password(g.current_user, current_password, new_password)
        session_service.revoke_all_user_sessions(
            g.current_user.id,
            reason="Password changed",
            except_session_id=g.session_context.session.id,
        )
    except AuthenticationError as e:
        return jsonify({"message": str(e)}), 400
    except PasswordValidationError as e:
        return jsonify({"message": str(e), "errors": {"newPassword": str(e)}}), 400
    except Exception:
        current_app.logger.exception("Password change failed")
        return jsonify({"message": "Server error during password change"}), 500
    return jsonify({"message": "Password changed successfully"}), 200
