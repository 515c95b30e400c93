# Overview: Flask API routes for the stock ledger; lists and records movements.

# backend/warehouse/routes/transactions.py
"""
Stock transaction (ledger) routes.

Rows are append-only: there is no update or delete endpoint.
Recording a movement requires RECORD_TRANSACTION (canManageTransactions).
"""
from flask import Blueprint, request, g, current_app

from ..models import StockTransaction
from ..services import stock_service
from ..services.aggregation import describe_transaction, index_products
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    StorageError,
    http_status_for,
)
from ..decorators import require_auth

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "type", "quantity", "note", "request_id"},
    required_on_create={"product_id", "type", "quantity"},
)

MAX_LIST_LIMIT = 500

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Ledger rows, newest first.

    Query params:
    - product_id: int (optional)
    - limit: int (optional, max 500)
    """
    product_id = request.args.get("product_id", type=int)
    limit = request.args.get("limit", type=int)
    if limit is not None and (limit < 1 or limit > MAX_LIST_LIMIT):
        return {"error": f"limit must be between 1 and {MAX_LIST_LIMIT}"}, 400

    rows = stock_service.list_transactions(product_id=product_id, limit=limit)
    products_by_id = index_products(stock_service.list_products())
    return {
        "items": [describe_transaction(tx, products_by_id) for tx in rows],
        "count": len(rows),
    }


@transactions_bp.post("")
@require_auth
def record_transaction_route():
    """Record an inbound or outbound movement for a product."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockTransaction, payload=payload, policy=MOVEMENT_POLICY, partial=False)
        result = stock_service.record_transaction(
            g.ctx,
            product_id=patch["product_id"],
            movement_type=patch["type"],
            quantity=patch["quantity"],
            note=patch.get("note"),
            request_id=patch.get("request_id"),
        )
    except StorageError as e:
        current_app.logger.error("Storage failure recording transaction: %s", e)
        return {"error": "Storage unavailable, try again"}, 503
    except ValidationError as e:
        return {"error": str(e)}, http_status_for(e)
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return {"error": "Internal server error"}, 500

    return result.to_dict(), (200 if result.replayed else 201)
