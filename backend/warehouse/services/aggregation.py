# Overview: Read-side roll-ups over in-memory products and stock transactions.

"""
Pure derivations for the dashboard and reports.

Inputs are plain iterables of rows exposing the Product / StockTransaction
attributes; nothing here queries or mutates storage. Every function
tolerates empty input: sums come back as zero and time buckets are always
fully populated.

Ledger rows whose product_id no longer resolves are reported with
placeholder name/company instead of failing the whole aggregation.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Iterable

from warehouse.time_utils import shift_months, to_utc_z, utcnow
from .reconciler import TYPE_IN, TYPE_OUT
from .weight_service import UNIT_BOX, UNIT_KG, UNIT_PALLET

UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_COMPANY = "Unknown Company"

WEIGHT_DECIMALS = 3


def _round(value: float) -> float:
    # + 0.0 turns -0.0 into 0.0
    return round(value, WEIGHT_DECIMALS) + 0.0


def index_products(products: Iterable) -> dict:
    return {p.id: p for p in products}


def companies(products: Iterable) -> list[str]:
    """Distinct company names, sorted case-insensitively."""
    return sorted({p.company for p in products}, key=lambda name: (name.lower(), name))


def dashboard_stats(products: Iterable) -> dict:
    products = list(products)
    return {
        "total_products": len(products),
        "total_companies": len({p.company for p in products}),
        "total_weight": _round(sum(p.total_weight for p in products)),
        "total_boxes": _round(sum(p.quantity for p in products if p.unit == UNIT_BOX)),
        "total_pallets": _round(sum(p.quantity for p in products if p.unit == UNIT_PALLET)),
    }


def _weights_by_type(transactions: Iterable) -> tuple[float, float]:
    total_in = 0.0
    total_out = 0.0
    for tx in transactions:
        if tx.type == TYPE_IN:
            total_in += tx.total_weight
        elif tx.type == TYPE_OUT:
            total_out += tx.total_weight
    return total_in, total_out


def daily_series(transactions: Iterable, *, days: int = 7, now: datetime | None = None) -> list[dict]:
    """
    In/out weight per calendar day for the trailing `days` days, today included.

    Oldest day first. Days without movement report zeros.
    """
    today = (now or utcnow()).date()
    buckets: "OrderedDict[date, list[float]]" = OrderedDict()
    for offset in range(days - 1, -1, -1):
        buckets[today - timedelta(days=offset)] = [0.0, 0.0]

    for tx in transactions:
        bucket = buckets.get(tx.occurred_at.date())
        if bucket is None:
            continue
        if tx.type == TYPE_IN:
            bucket[0] += tx.total_weight
        elif tx.type == TYPE_OUT:
            bucket[1] += tx.total_weight

    return [
        {"date": day.isoformat(), "in": _round(total_in), "out": _round(total_out)}
        for day, (total_in, total_out) in buckets.items()
    ]


def monthly_series(transactions: Iterable, *, months: int = 6, now: datetime | None = None) -> list[dict]:
    """
    In/out weight per calendar month for the trailing `months` months,
    the current month included. Oldest month first, zero-filled.
    """
    current = (now or utcnow()).date()
    buckets: "OrderedDict[tuple[int, int], list[float]]" = OrderedDict()
    for offset in range(months - 1, -1, -1):
        first = shift_months(current, -offset)
        buckets[(first.year, first.month)] = [0.0, 0.0]

    for tx in transactions:
        bucket = buckets.get((tx.occurred_at.year, tx.occurred_at.month))
        if bucket is None:
            continue
        if tx.type == TYPE_IN:
            bucket[0] += tx.total_weight
        elif tx.type == TYPE_OUT:
            bucket[1] += tx.total_weight

    return [
        {"month": f"{year:04d}-{month:02d}", "in": _round(total_in), "out": _round(total_out)}
        for (year, month), (total_in, total_out) in buckets.items()
    ]


def product_rollup(products: Iterable, transactions: Iterable) -> list[dict]:
    """Per product: weight in, weight out, remainder (in - out) within the given rows."""
    by_product: dict = {}
    for tx in transactions:
        totals = by_product.setdefault(tx.product_id, [0.0, 0.0])
        if tx.type == TYPE_IN:
            totals[0] += tx.total_weight
        elif tx.type == TYPE_OUT:
            totals[1] += tx.total_weight

    rows = []
    for product in products:
        total_in, total_out = by_product.get(product.id, (0.0, 0.0))
        rows.append(
            {
                "product_id": product.id,
                "name": product.name,
                "company": product.company,
                "unit": product.unit,
                "in": _round(total_in),
                "out": _round(total_out),
                "remainder": _round(total_in - total_out),
            }
        )
    return rows


def filter_transactions(
    transactions: Iterable,
    products_by_id: dict,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    product_id: int | None = None,
    company: str | None = None,
) -> list:
    """
    Inclusive date range AND exact product AND company (via product lookup).

    A row whose product is gone cannot match a product or company filter;
    with neither filter set it is kept.
    """
    result = []
    for tx in transactions:
        if start is not None and tx.occurred_at < start:
            continue
        if end is not None and tx.occurred_at > end:
            continue
        if product_id is not None:
            if tx.product_id != product_id or tx.product_id not in products_by_id:
                continue
        if company:
            product = products_by_id.get(tx.product_id)
            if product is None or product.company != company:
                continue
        result.append(tx)
    return result


def movement_summary(transactions: Iterable) -> dict:
    transactions = list(transactions)
    total_in, total_out = _weights_by_type(transactions)
    return {
        "total_in": _round(total_in),
        "total_out": _round(total_out),
        "product_count": len({tx.product_id for tx in transactions}),
        "transaction_count": len(transactions),
    }


def pallet_summary(transactions: Iterable, products_by_id: dict) -> dict:
    """Pallet counts moved in/out, and how many pallet products moved."""
    pallets_in = 0.0
    pallets_out = 0.0
    pallet_products = set()
    for tx in transactions:
        product = products_by_id.get(tx.product_id)
        if product is None or product.unit != UNIT_PALLET:
            continue
        pallet_products.add(tx.product_id)
        if tx.type == TYPE_IN:
            pallets_in += tx.quantity
        elif tx.type == TYPE_OUT:
            pallets_out += tx.quantity
    return {
        "total_pallets_in": _round(pallets_in),
        "total_pallets_out": _round(pallets_out),
        "total_pallet_products": len(pallet_products),
    }


def describe_transaction(tx, products_by_id: dict) -> dict:
    """Ledger row joined with its product's name, company and unit."""
    product = products_by_id.get(tx.product_id)
    return {
        "id": tx.id,
        "product_id": tx.product_id,
        "product_name": product.name if product else UNKNOWN_PRODUCT,
        "company": product.company if product else UNKNOWN_COMPANY,
        "unit": product.unit if product else UNIT_KG,
        "type": tx.type,
        "quantity": tx.quantity,
        "total_weight": tx.total_weight,
        "note": tx.note,
        "occurred_at": to_utc_z(tx.occurred_at),
    }
