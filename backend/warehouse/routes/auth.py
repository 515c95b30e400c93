# Overview: Flask API routes for login, logout and the current session.

# backend/warehouse/routes/auth.py
"""
Authentication API routes.

Accounts are created by the admin only (POST /api/admin/users or
`flask users create`); there is no self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(context: session_service.SessionContext) -> dict:
    return {
        "user": context.user.to_dict(),
        "is_admin": context.is_admin,
        "permissions": permission_service.effective_permissions(context),
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password and create a session token.

    The token must be sent as "Authorization: Bearer <token>" afterwards.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.warning("Failed login for email=%s", str(email).strip().lower())
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        context = session_service.build_context(user, session)

        body = _session_payload(context)
        body.update({
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        })
        return jsonify(body), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the presented session token."""
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """The signed-in user with effective permission flags."""
    return jsonify(_session_payload(g.ctx)), 200
