# Overview: Flask API routes for products and stock exits; parses input and returns JSON responses.

# backend/warehouse/routes/products.py
"""
Product routes.

SECURITY: All routes require authentication.
- Reads are open to any signed-in user
- Create/edit requires ADD_OR_EDIT_PRODUCT (canAddProducts)
- Delete requires DELETE_PRODUCT (admin only)
- Exit requires RECORD_TRANSACTION (canManageTransactions)

The permission gate itself runs inside stock_service, before any write.
"""
from flask import Blueprint, request, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..models import Product, StockTransaction
from ..services import stock_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    StorageError,
    http_status_for,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "company", "unit", "box_weight", "pallet_weight", "boxes_per_pallet", "quantity"},
    required_on_create={"name", "company", "unit", "quantity"},
)

EXIT_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "note", "request_id"},
    required_on_create={"quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _error(e: Exception):
    if isinstance(e, (StorageError, SQLAlchemyError)):
        current_app.logger.error("Storage failure on %s %s: %s", request.method, request.path, e)
        return {"error": "Storage unavailable, try again"}, 503
    return {"error": str(e)}, http_status_for(e)


@products_bp.get("")
@require_auth
def list_products():
    """All products, most recently updated first. Optional ?q= searches name and company."""
    try:
        products = stock_service.list_products(request.args.get("q"))
    except SQLAlchemyError as e:
        return _error(e)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    """One product plus its ledger balance."""
    try:
        product = stock_service.get_product(product_id)
        ledger_quantity = stock_service.get_ledger_quantity(product_id)
    except (ValidationError, SQLAlchemyError) as e:
        return _error(e)

    body = product.to_dict()
    body["ledger_quantity"] = ledger_quantity
    return body


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product with its initial quantity.

    Optional "request_id" makes a retried submit return the first result
    instead of creating a second product (only when quantity > 0).
    """
    payload = dict(request.get_json(silent=True) or {})
    request_id = payload.pop("request_id", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        result = stock_service.create_product(g.ctx, patch=patch, request_id=request_id)
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return result.to_dict(), (200 if result.replayed else 201)


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """
    Edit a product. "quantity" is the new absolute amount; the difference
    is recorded in the ledger.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        result = stock_service.update_product(g.ctx, product_id=product_id, patch=patch)
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return result.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Delete a product that has no ledger history."""
    try:
        stock_service.delete_product(g.ctx, product_id=product_id)
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/exit")
@require_auth
def exit_stock_route(product_id: int):
    """Take stock out of a product. Rejected when it exceeds the ledger balance."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockTransaction, payload=payload, policy=EXIT_POLICY, partial=False)
        result = stock_service.exit_stock(
            g.ctx,
            product_id=product_id,
            quantity=patch["quantity"],
            note=patch.get("note"),
            request_id=patch.get("request_id"),
        )
    except (ValidationError, StorageError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to record stock exit")
        return {"error": "Internal server error"}, 500

    return result.to_dict(), (200 if result.replayed else 201)
