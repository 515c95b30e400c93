# Overview: Service-layer operations for products and their stock ledger; applies reconciler plans to the database.

# backend/warehouse/services/stock_service.py
"""
Write paths for the product snapshot and the stock ledger.

Every mutation follows the same order:
1. permission gate (AuthorizationError)
2. input rules and stock plan (ValidationError family)
3. product row update + ledger append, flushed in ONE database transaction

Steps 1 and 2 never write. Step 3 runs under run_with_retry with the product
row locked, so the snapshot and its ledger row commit together or not at all.
Storage failures surface as StorageError.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import Product, StockTransaction
from ..permissions import ADD_OR_EDIT_PRODUCT, DELETE_PRODUCT, RECORD_TRANSACTION
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_rules_movement,
    enforce_rules_product,
)
from warehouse.time_utils import utcnow
from . import reconciler
from .concurrency import lock_for_update, run_with_retry
from .permission_service import require_permission
from .session_service import SessionContext
from .weight_service import UNIT_BOX, UNIT_PALLET, WeightParams, weight_params

PRODUCT_MUTABLE_FIELDS = {"name", "company", "box_weight", "pallet_weight", "boxes_per_pallet"}


@dataclass
class StockResult:
    product: Product
    transaction: StockTransaction | None = None
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "transaction": self.transaction.to_dict() if self.transaction else None,
            "replayed": self.replayed,
        }


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _find_replay(request_id: str | None) -> StockTransaction | None:
    if not request_id:
        return None
    return db.session.query(StockTransaction).filter_by(request_id=request_id).first()


def _first_transaction_id(product_id: int) -> int | None:
    # A creation's seed row is always the product's first ledger row
    return (
        db.session.query(func.min(StockTransaction.id))
        .filter(StockTransaction.product_id == product_id)
        .scalar()
    )


def _clean_request_id(request_id) -> str | None:
    if request_id is None:
        return None
    value = str(request_id).strip()
    if not value:
        return None
    if len(value) > 64:
        raise ValidationError("request_id exceeds max length 64")
    return value


def _append_transaction(
    product: Product,
    planned: reconciler.PlannedTransaction,
    *,
    ctx: SessionContext,
    note: str | None = None,
    request_id: str | None = None,
    occurred_at=None,
) -> StockTransaction:
    tx = StockTransaction(
        product_id=product.id,
        type=planned.type,
        quantity=planned.quantity,
        total_weight=planned.total_weight,
        note=note,
        request_id=request_id,
        created_by_user_id=ctx.user_id,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(tx)
    return tx


def _apply_plan(product: Product, plan: reconciler.StockPlan) -> None:
    product.quantity = plan.new_quantity
    product.total_weight = plan.new_total_weight
    product.updated_at = utcnow()


def _params_for(unit: str, fields: dict) -> WeightParams:
    # Parameters a unit does not use are stored as NULL
    box_weight = fields.get("box_weight") if unit in (UNIT_BOX, UNIT_PALLET) else None
    pallet_weight = fields.get("pallet_weight") if unit == UNIT_PALLET else None
    return WeightParams(box_weight=box_weight, pallet_weight=pallet_weight)


# =============================================================================
# READS
# =============================================================================


def list_products(q: str | None = None) -> list[Product]:
    """Most recently updated first. q narrows to a case-insensitive name or company match."""
    query = db.session.query(Product)
    q = (q or "").strip()
    if q:
        query = query.filter(
            or_(
                Product.name.icontains(q, autoescape=True),
                Product.company.icontains(q, autoescape=True),
            )
        )
    return query.order_by(Product.updated_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    return _get_product(product_id)


def get_ledger_quantity(product_id: int) -> float:
    """SUM(in) - SUM(out) over the product's ledger rows. The authoritative stock level."""
    signed = case(
        (StockTransaction.type == reconciler.TYPE_IN, StockTransaction.quantity),
        else_=-StockTransaction.quantity,
    )
    total = (
        db.session.query(func.coalesce(func.sum(signed), 0))
        .filter(StockTransaction.product_id == product_id)
        .scalar()
    )
    return reconciler.clean_quantity(float(total or 0))


def count_transactions(product_id: int) -> int:
    return db.session.query(StockTransaction).filter_by(product_id=product_id).count()


def list_transactions(*, product_id: int | None = None, limit: int | None = None) -> list[StockTransaction]:
    query = db.session.query(StockTransaction)
    if product_id is not None:
        query = query.filter(StockTransaction.product_id == product_id)
    query = query.order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


# =============================================================================
# PRODUCT LIFECYCLE
# =============================================================================


def create_product(ctx: SessionContext, *, patch: dict, request_id: str | None = None) -> StockResult:
    """
    Create a product with its initial quantity.

    A non-zero initial quantity is seeded into the ledger as one "in" row
    dated at creation, so the ledger balance matches from time zero.
    """
    require_permission(ctx, ADD_OR_EDIT_PRODUCT)

    for field in ("name", "company"):
        if not patch.get(field):
            raise ValidationError(f"{field} is required")
    unit = patch.get("unit")
    enforce_rules_product(patch, unit=unit)
    request_id = _clean_request_id(request_id)

    params = _params_for(unit, patch)
    plan = reconciler.plan_creation(unit, patch.get("quantity") or 0, params)

    def _op():
        replay = _find_replay(request_id)
        if replay is not None:
            if replay.type != reconciler.TYPE_IN or _first_transaction_id(replay.product_id) != replay.id:
                raise ConflictError("request_id already used for a different movement")
            return StockResult(product=_get_product(replay.product_id), transaction=replay, replayed=True)

        now = utcnow()
        product = Product(
            name=patch["name"],
            company=patch["company"],
            unit=unit,
            box_weight=params.box_weight,
            pallet_weight=params.pallet_weight,
            boxes_per_pallet=patch.get("boxes_per_pallet") if unit == UNIT_PALLET else None,
            created_at=now,
        )
        _apply_plan(product, plan)
        product.updated_at = now
        db.session.add(product)
        db.session.flush()  # ensure product.id exists before the seed row

        tx = None
        if plan.transaction is not None:
            tx = _append_transaction(
                product,
                plan.transaction,
                ctx=ctx,
                note="Initial stock",
                request_id=request_id,
                occurred_at=now,
            )

        db.session.commit()
        return StockResult(product=product, transaction=tx)

    result = run_with_retry(_op)
    if not result.replayed:
        current_app.logger.info(
            "Product created: id=%s name=%r unit=%s quantity=%s by user_id=%s",
            result.product.id, result.product.name, result.product.unit,
            result.product.quantity, ctx.user_id,
        )
    return result


def update_product(ctx: SessionContext, *, product_id: int, patch: dict) -> StockResult:
    """
    Edit a product, optionally to a new absolute quantity.

    The quantity difference is recorded as one ledger row; an unchanged
    quantity records nothing but still refreshes updated_at.
    """
    require_permission(ctx, ADD_OR_EDIT_PRODUCT)

    def _op():
        product = _get_product(product_id, lock=True)

        if "unit" in patch and patch["unit"] != product.unit:
            raise ValidationError("unit cannot be changed after creation")

        merged = {
            "box_weight": product.box_weight,
            "pallet_weight": product.pallet_weight,
            "boxes_per_pallet": product.boxes_per_pallet,
        }
        merged.update({k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS})
        if "quantity" in patch:
            merged["quantity"] = patch["quantity"]
        enforce_rules_product(merged, unit=product.unit)

        params = _params_for(product.unit, merged)
        new_quantity = patch["quantity"] if patch.get("quantity") is not None else product.quantity
        plan = reconciler.plan_absolute_edit(product.unit, product.quantity, new_quantity, params)

        for key in ("name", "company"):
            if key in patch:
                setattr(product, key, patch[key])
        product.box_weight = params.box_weight
        product.pallet_weight = params.pallet_weight
        if product.unit == UNIT_PALLET:
            product.boxes_per_pallet = merged.get("boxes_per_pallet")

        _apply_plan(product, plan)

        tx = None
        if plan.transaction is not None:
            tx = _append_transaction(product, plan.transaction, ctx=ctx, note="Quantity edited")

        db.session.commit()
        return StockResult(product=product, transaction=tx)

    result = run_with_retry(_op)
    current_app.logger.info(
        "Product updated: id=%s quantity=%s movement=%s by user_id=%s",
        result.product.id, result.product.quantity,
        result.transaction.type if result.transaction else None, ctx.user_id,
    )
    return result


def delete_product(ctx: SessionContext, *, product_id: int) -> None:
    """
    Hard-delete a product. Refused once any ledger row references it.
    """
    require_permission(ctx, DELETE_PRODUCT)

    def _op():
        product = _get_product(product_id, lock=True)
        if count_transactions(product.id) > 0:
            raise ConflictError("Product has stock transactions and cannot be deleted")
        db.session.delete(product)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Product deleted: id=%s by user_id=%s", product_id, ctx.user_id)


# =============================================================================
# MOVEMENTS
# =============================================================================


def _record_movement(
    ctx: SessionContext,
    *,
    product_id: int,
    movement_type: str,
    quantity: float,
    note: str | None,
    request_id: str | None,
) -> StockResult:
    require_permission(ctx, RECORD_TRANSACTION)
    enforce_rules_movement({"type": movement_type, "quantity": quantity})
    request_id = _clean_request_id(request_id)

    def _op():
        replay = _find_replay(request_id)
        if replay is not None:
            if replay.product_id != product_id or replay.type != movement_type:
                raise ConflictError("request_id already used for a different movement")
            return StockResult(product=_get_product(product_id), transaction=replay, replayed=True)

        product = _get_product(product_id, lock=True)
        enforce_rules_movement({"type": movement_type, "quantity": quantity}, unit=product.unit)

        plan = reconciler.plan_movement(
            product.unit,
            product.quantity,
            movement_type,
            quantity,
            weight_params(product),
            available=get_ledger_quantity(product.id),
        )

        _apply_plan(product, plan)
        tx = _append_transaction(product, plan.transaction, ctx=ctx, note=note, request_id=request_id)

        db.session.commit()
        return StockResult(product=product, transaction=tx)

    result = run_with_retry(_op)
    if not result.replayed:
        current_app.logger.info(
            "Stock %s: product_id=%s quantity=%s weight=%s by user_id=%s",
            movement_type, product_id, result.transaction.quantity,
            result.transaction.total_weight, ctx.user_id,
        )
    return result


def exit_stock(
    ctx: SessionContext,
    *,
    product_id: int,
    quantity: float,
    note: str | None = None,
    request_id: str | None = None,
) -> StockResult:
    """Outbound movement from the product list ("exit")."""
    return _record_movement(
        ctx,
        product_id=product_id,
        movement_type=reconciler.TYPE_OUT,
        quantity=quantity,
        note=note,
        request_id=request_id,
    )


def record_transaction(
    ctx: SessionContext,
    *,
    product_id: int,
    movement_type: str,
    quantity: float,
    note: str | None = None,
    request_id: str | None = None,
) -> StockResult:
    """Free-form inbound/outbound movement. Outbound is checked against the ledger balance."""
    if movement_type not in reconciler.MOVEMENT_TYPES:
        raise ValidationError("type must be 'in' or 'out'")
    return _record_movement(
        ctx,
        product_id=product_id,
        movement_type=movement_type,
        quantity=quantity,
        note=note,
        request_id=request_id,
    )


# =============================================================================
# DRIFT REPAIR
# =============================================================================


def find_drift() -> list[dict]:
    """Products whose stored quantity disagrees with their ledger balance."""
    drifted = []
    for product in db.session.query(Product).order_by(Product.id.asc()).all():
        ledger_quantity = get_ledger_quantity(product.id)
        if reconciler.has_drift(product.quantity, ledger_quantity):
            drifted.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "stored_quantity": product.quantity,
                    "ledger_quantity": ledger_quantity,
                    "difference": round(product.quantity - ledger_quantity, 6),
                }
            )
    if drifted:
        current_app.logger.warning("Stock drift detected on %d product(s)", len(drifted))
    return drifted


def reconcile_product(product_id: int) -> Product:
    """
    Rewrite a product's quantity/total_weight from its ledger balance.

    The ledger is never modified. A product already in agreement is left
    untouched (updated_at is not bumped).
    """
    def _op():
        product = _get_product(product_id, lock=True)
        ledger_quantity = get_ledger_quantity(product.id)
        if not reconciler.has_drift(product.quantity, ledger_quantity):
            return product

        previous = product.quantity
        plan = reconciler.plan_repair(product.unit, ledger_quantity, weight_params(product))
        _apply_plan(product, plan)
        db.session.commit()
        current_app.logger.info(
            "Stock reconciled: product_id=%s stored=%s ledger=%s", product.id, previous, ledger_quantity
        )
        return product

    return run_with_retry(_op)
