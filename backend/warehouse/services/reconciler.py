# Overview: Pure stock planning; turns a requested mutation into the new product snapshot and its ledger row.

"""
Stock Ledger Invariants (authoritative)

- A product's stored quantity is a snapshot of its ledger: SUM(in) - SUM(out).
- total_weight on the product is always weight(unit, quantity) at the
  product's current weight parameters.
- A ledger row's total_weight is weight(unit, moved quantity) at recording time.
- Creation seeds the ledger with one "in" row for the initial quantity, so the
  balance reproduces the stored quantity from time zero.
- Outbound movements larger than available stock are rejected, never clamped.

Nothing in this module touches the database. Planning runs first; a plan that
raises guarantees no write was attempted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..validation import InsufficientStockError, ValidationError
from .weight_service import WeightParams, total_weight

TYPE_IN = "in"
TYPE_OUT = "out"
MOVEMENT_TYPES = (TYPE_IN, TYPE_OUT)

# Float noise from repeated add/subtract is not drift
QUANTITY_TOLERANCE = 1e-9


@dataclass(frozen=True)
class PlannedTransaction:
    type: str
    quantity: float
    total_weight: float


@dataclass(frozen=True)
class StockPlan:
    new_quantity: float
    new_total_weight: float
    transaction: PlannedTransaction | None = None


def _weigh(unit: str, quantity: float, params: WeightParams) -> float:
    return total_weight(unit, quantity, params.box_weight, params.pallet_weight)


def clean_quantity(quantity: float) -> float:
    # Snap tiny negative remainders (e.g. 0.3 - 0.1 - 0.2) to zero
    if abs(quantity) < QUANTITY_TOLERANCE:
        return 0.0
    return quantity


def plan_creation(unit: str, quantity: float, params: WeightParams) -> StockPlan:
    """New product: snapshot = initial quantity, seeded by one "in" row."""
    quantity = max(0.0, float(quantity))
    weight = _weigh(unit, quantity, params)
    seed = None
    if quantity > 0:
        seed = PlannedTransaction(type=TYPE_IN, quantity=quantity, total_weight=weight)
    return StockPlan(new_quantity=quantity, new_total_weight=weight, transaction=seed)


def plan_absolute_edit(
    unit: str,
    previous_quantity: float,
    new_quantity: float,
    params: WeightParams,
) -> StockPlan:
    """
    Edit to an absolute quantity.

    The difference becomes one "in" or "out" row; no row when unchanged.
    The snapshot is always rewritten (weight parameters may have changed).
    """
    new_quantity = max(0.0, float(new_quantity))
    delta = clean_quantity(new_quantity - float(previous_quantity))

    tx = None
    if delta != 0:
        moved = abs(delta)
        tx = PlannedTransaction(
            type=TYPE_IN if delta > 0 else TYPE_OUT,
            quantity=moved,
            total_weight=_weigh(unit, moved, params),
        )

    return StockPlan(
        new_quantity=new_quantity,
        new_total_weight=_weigh(unit, new_quantity, params),
        transaction=tx,
    )


def plan_movement(
    unit: str,
    current_quantity: float,
    movement_type: str,
    quantity: float,
    params: WeightParams,
    available: float | None = None,
) -> StockPlan:
    """
    Explicit signed movement.

    available is the ledger-derived stock when the caller has it; it takes
    precedence over the stored snapshot for the outbound check.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError("type must be 'in' or 'out'")
    quantity = float(quantity)
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")

    if movement_type == TYPE_OUT:
        on_hand = float(current_quantity if available is None else available)
        if quantity > on_hand + QUANTITY_TOLERANCE:
            raise InsufficientStockError(quantity, max(on_hand, 0.0), unit)
        new_quantity = clean_quantity(float(current_quantity) - quantity)
        # Snapshot may lag the ledger; the ledger check above is authoritative
        new_quantity = max(0.0, new_quantity)
    else:
        new_quantity = float(current_quantity) + quantity

    return StockPlan(
        new_quantity=new_quantity,
        new_total_weight=_weigh(unit, new_quantity, params),
        transaction=PlannedTransaction(
            type=movement_type,
            quantity=quantity,
            total_weight=_weigh(unit, quantity, params),
        ),
    )


def ledger_balance(transactions: Iterable) -> float:
    """SUM(in) - SUM(out) over ledger rows (anything with .type and .quantity)."""
    balance = 0.0
    for tx in transactions:
        if tx.type == TYPE_IN:
            balance += tx.quantity
        elif tx.type == TYPE_OUT:
            balance -= tx.quantity
    return clean_quantity(balance)


def has_drift(stored_quantity: float, ledger_quantity: float) -> bool:
    return abs(float(stored_quantity) - float(ledger_quantity)) > QUANTITY_TOLERANCE


def plan_repair(unit: str, ledger_quantity: float, params: WeightParams) -> StockPlan:
    """Rewrite the snapshot from the ledger. Repairs never append ledger rows."""
    quantity = max(0.0, float(ledger_quantity))
    return StockPlan(new_quantity=quantity, new_total_weight=_weigh(unit, quantity, params))
