# Overview: Service-layer operations for dashboard and reports; loads rows and hands them to aggregation.

from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta

from flask import current_app

from warehouse.extensions import db
from warehouse.models import Product, StockTransaction
from warehouse.time_utils import month_bounds, parse_iso_datetime, parse_range_end, shift_months, to_utc_z, utcnow
from warehouse.validation import ValidationError
from . import aggregation

EXPORT_COLUMNS = ["date", "product", "company", "type", "quantity", "unit", "total_weight_kg", "note"]


def _parse_range(start: str | None, end: str | None, now: datetime) -> tuple[datetime, datetime]:
    """
    Inclusive range; defaults to the calendar month containing now.

    With only one bound given, the other comes from that bound's month.
    """
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_range_end(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")

    if start_dt is None and end_dt is None:
        return month_bounds(now)
    if start_dt is None:
        start_dt = month_bounds(end_dt)[0]
    if end_dt is None:
        end_dt = month_bounds(start_dt)[1]
    if start_dt > end_dt:
        raise ValidationError("start must not be after end")
    return start_dt, end_dt


def _load_transactions(start: datetime | None = None, end: datetime | None = None) -> list[StockTransaction]:
    query = db.session.query(StockTransaction)
    if start is not None:
        query = query.filter(StockTransaction.occurred_at >= start)
    if end is not None:
        query = query.filter(StockTransaction.occurred_at <= end)
    return query.order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc()).all()


def dashboard(*, now: datetime | None = None) -> dict:
    """Product stats, trailing daily in/out weights, and the latest movements."""
    now = now or utcnow()
    days = current_app.config.get("DASHBOARD_DAYS", 7)
    limit = current_app.config.get("RECENT_TRANSACTIONS_LIMIT", 10)

    products = db.session.query(Product).all()
    products_by_id = aggregation.index_products(products)

    window_start = datetime.combine((now - timedelta(days=days - 1)).date(), datetime.min.time())
    window = _load_transactions(start=window_start, end=now)

    return {
        "generated_at": to_utc_z(now),
        "stats": aggregation.dashboard_stats(products),
        "daily": aggregation.daily_series(window, days=days, now=now),
        "recent_transactions": [
            aggregation.describe_transaction(tx, products_by_id) for tx in window[:limit]
        ],
    }


def _report_rows(
    *,
    start: str | None,
    end: str | None,
    product_id: int | None,
    company: str | None,
    now: datetime,
):
    start_dt, end_dt = _parse_range(start, end, now)
    company = (company or "").strip() or None

    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    products_by_id = aggregation.index_products(products)

    filtered = aggregation.filter_transactions(
        _load_transactions(start=start_dt, end=end_dt),
        products_by_id,
        product_id=product_id,
        company=company,
    )
    return start_dt, end_dt, company, products, products_by_id, filtered


def report(
    *,
    start: str | None = None,
    end: str | None = None,
    product_id: int | None = None,
    company: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Movement report for an inclusive date range, optionally narrowed to one
    product and/or one company.

    The monthly trend covers the trailing months up to now regardless of the
    date range, with the same product/company narrowing.
    """
    now = now or utcnow()
    months = current_app.config.get("REPORT_MONTHS", 6)

    start_dt, end_dt, company, products, products_by_id, filtered = _report_rows(
        start=start, end=end, product_id=product_id, company=company, now=now
    )

    trend_start = datetime.combine(shift_months(now.date(), -(months - 1)), datetime.min.time())
    trend_rows = aggregation.filter_transactions(
        _load_transactions(start=trend_start, end=now),
        products_by_id,
        product_id=product_id,
        company=company,
    )

    rollup_products = [
        p for p in products
        if (product_id is None or p.id == product_id) and (company is None or p.company == company)
    ]

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "filters": {"product_id": product_id, "company": company},
        "summary": aggregation.movement_summary(filtered),
        "pallet_summary": aggregation.pallet_summary(filtered, products_by_id),
        "products": aggregation.product_rollup(rollup_products, filtered),
        "monthly": aggregation.monthly_series(trend_rows, months=months, now=now),
        "companies": aggregation.companies(products),
        "transactions": [aggregation.describe_transaction(tx, products_by_id) for tx in filtered],
    }


def export_report_csv(
    *,
    start: str | None = None,
    end: str | None = None,
    product_id: int | None = None,
    company: str | None = None,
    now: datetime | None = None,
) -> str:
    """The report's filtered movements as CSV text, newest first."""
    now = now or utcnow()
    _, _, _, _, products_by_id, filtered = _report_rows(
        start=start, end=end, product_id=product_id, company=company, now=now
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for tx in filtered:
        row = aggregation.describe_transaction(tx, products_by_id)
        writer.writerow(
            [
                row["occurred_at"],
                row["product_name"],
                row["company"],
                row["type"],
                f"{row['quantity']:g}",
                row["unit"],
                f"{row['total_weight']:g}",
                row["note"] or "",
            ]
        )
    return buffer.getvalue()
