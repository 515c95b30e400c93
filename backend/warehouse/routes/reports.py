from flask import Blueprint, Response, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from warehouse.decorators import require_auth, require_permission
from warehouse.permissions import VIEW_REPORTS
from warehouse.services import reporting_service
from warehouse.validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_args() -> dict:
    return {
        "start": request.args.get("start"),
        "end": request.args.get("end"),
        "product_id": request.args.get("product_id", type=int),
        "company": request.args.get("company"),
    }


@reports_bp.get("")
@require_auth
@require_permission(VIEW_REPORTS)
def movement_report():
    try:
        report = reporting_service.report(**_report_args())
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except SQLAlchemyError as exc:
        current_app.logger.error("Storage failure building report: %s", exc)
        return jsonify({"error": "Storage unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to build report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/export.csv")
@require_auth
@require_permission(VIEW_REPORTS)
def export_report():
    try:
        body = reporting_service.export_report_csv(**_report_args())
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except SQLAlchemyError as exc:
        current_app.logger.error("Storage failure exporting report: %s", exc)
        return jsonify({"error": "Storage unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to export report")
        return jsonify({"error": "Internal server error"}), 500

    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=warehouse-report.csv"},
    )
