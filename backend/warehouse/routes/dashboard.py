from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from warehouse.decorators import require_auth
from warehouse.services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard():
    """Stock totals, the trailing week of in/out weight, and recent movements."""
    try:
        return jsonify(reporting_service.dashboard()), 200
    except SQLAlchemyError as exc:
        current_app.logger.error("Storage failure building dashboard: %s", exc)
        return jsonify({"error": "Storage unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500
