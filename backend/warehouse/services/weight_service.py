# Overview: Unit/weight math for products tracked in kilograms, boxes, or pallets.

from __future__ import annotations

from dataclasses import dataclass

from ..validation import ValidationError

UNIT_KG = "kg"
UNIT_BOX = "box"
UNIT_PALLET = "pallet"
UNITS = (UNIT_KG, UNIT_BOX, UNIT_PALLET)

# Gram precision for stored weights
WEIGHT_DECIMALS = 3


@dataclass(frozen=True)
class WeightParams:
    box_weight: float | None = None
    pallet_weight: float | None = None


def is_integral_unit(unit: str) -> bool:
    """Boxes and pallets are counted; only kilograms may be fractional."""
    return unit in (UNIT_BOX, UNIT_PALLET)


def weight_params(product) -> WeightParams:
    return WeightParams(box_weight=product.box_weight, pallet_weight=product.pallet_weight)


def unit_weight(unit: str, params: WeightParams) -> float:
    """Kilograms per one unit of quantity."""
    if unit == UNIT_KG:
        return 1.0
    if unit == UNIT_BOX:
        if params.box_weight is None:
            raise ValidationError("box_weight is required for box products")
        per_unit = params.box_weight
    elif unit == UNIT_PALLET:
        if params.pallet_weight is None:
            raise ValidationError("pallet_weight is required for pallet products")
        per_unit = params.pallet_weight
    else:
        raise ValidationError(f"unit must be one of: {', '.join(UNITS)}")

    if per_unit < 0:
        raise ValidationError(f"{unit} weight cannot be negative")
    return float(per_unit)


def total_weight(
    unit: str,
    quantity: float,
    box_weight: float | None = None,
    pallet_weight: float | None = None,
) -> float:
    """
    Total kilograms for quantity units.

    kg -> quantity; box -> quantity * box_weight; pallet -> quantity * pallet_weight.
    boxes_per_pallet is deliberately not an input.
    """
    if quantity < 0:
        raise ValidationError("quantity cannot be negative")
    per_unit = unit_weight(unit, WeightParams(box_weight=box_weight, pallet_weight=pallet_weight))
    return round(quantity * per_unit, WEIGHT_DECIMALS)
