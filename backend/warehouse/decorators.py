# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .validation import AuthorizationError


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish the session context.

    Sets g.ctx (SessionContext) and g.current_user for the request.
    Returns 401 if the token is missing, invalid, expired, or revoked,
    or if the user account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.ctx = context
        g.current_user = context.user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: str):
    """
    Require the actor to be allowed `action` by the permission gate.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "ctx"):
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(g.ctx, action, resource=request.path)
            except AuthorizationError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": action,
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    """Require the configured admin identity."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "ctx"):
            return jsonify({"error": "Authentication required"}), 401
        if not g.ctx.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function
