# Overview: Flask API routes for admin operations; user management and stock drift repair.

# backend/warehouse/routes/admin.py
"""
Admin routes.

User management is gated by MANAGE_USERS inside user_service (admin only).
Drift inspection and repair are restricted to the admin identity.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_admin
from ..services import stock_service, user_service
from ..validation import ValidationError, StorageError, http_status_for


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _error(e: Exception):
    if isinstance(e, StorageError):
        current_app.logger.error("Storage failure on %s %s: %s", request.method, request.path, e)
        return jsonify({"error": "Storage unavailable, try again"}), 503
    return jsonify({"error": str(e)}), http_status_for(e)


# =============================================================================
# USERS
# =============================================================================


@admin_bp.get("/users")
@require_auth
def list_users_route():
    try:
        users = user_service.list_users(g.ctx)
    except ValidationError as e:
        return _error(e)
    return jsonify({"users": users, "count": len(users)}), 200


@admin_bp.post("/users")
@require_auth
def create_user_route():
    """
    Create a user.

    Body: {"email", "password", "permissions": {"can_add_products": true, ...}}
    Flags that are omitted default to false.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = user_service.create_user(
            g.ctx, email=email, password=password, permissions=data.get("permissions")
        )
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user}), 201


@admin_bp.put("/users/<int:user_id>/permissions")
@require_auth
def update_permissions_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.update_permissions(g.ctx, user_id, data.get("permissions"))
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update permissions")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"user": user}), 200


@admin_bp.delete("/users/<int:user_id>")
@require_auth
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.ctx, user_id)
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True}), 200


# =============================================================================
# STOCK DRIFT
# =============================================================================


@admin_bp.get("/stock/drift")
@require_auth
@require_admin
def stock_drift_route():
    """Products whose stored quantity disagrees with the ledger balance."""
    drifted = stock_service.find_drift()
    return jsonify({"items": drifted, "count": len(drifted)}), 200


@admin_bp.post("/stock/<int:product_id>/reconcile")
@require_auth
@require_admin
def reconcile_route(product_id: int):
    """Rewrite one product's quantity and weight from its ledger."""
    try:
        product = stock_service.reconcile_product(product_id)
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile product")
        return jsonify({"error": "Internal server error"}), 500

    body = product.to_dict()
    body["ledger_quantity"] = stock_service.get_ledger_quantity(product_id)
    return jsonify(body), 200
