"""
Dashboard and report tests against the database.
"""

import csv
import io
from datetime import timedelta

import pytest

from warehouse.services import reporting_service, stock_service
from warehouse.time_utils import utcnow
from warehouse.validation import ValidationError


@pytest.fixture
def stocked(admin_ctx):
    """Two companies, one box product and one pallet product, with one exit each."""
    tomatoes = stock_service.create_product(admin_ctx, patch={
        "name": "Tomatoes", "company": "Acme", "unit": "box", "box_weight": 12.5, "quantity": 10,
    }).product
    flour = stock_service.create_product(admin_ctx, patch={
        "name": "Flour", "company": "Mill Co", "unit": "pallet",
        "pallet_weight": 400, "boxes_per_pallet": 40, "quantity": 3,
    }).product
    stock_service.exit_stock(admin_ctx, product_id=tomatoes.id, quantity=4)
    stock_service.exit_stock(admin_ctx, product_id=flour.id, quantity=1)
    return {"tomatoes": tomatoes.id, "flour": flour.id}


class TestDashboard:
    def test_empty_database(self, db_session):
        result = reporting_service.dashboard()
        assert result["stats"]["total_products"] == 0
        assert len(result["daily"]) == 7
        assert result["recent_transactions"] == []

    def test_stats_and_today(self, stocked):
        result = reporting_service.dashboard()

        assert result["stats"]["total_products"] == 2
        assert result["stats"]["total_companies"] == 2
        assert result["stats"]["total_boxes"] == 6
        assert result["stats"]["total_pallets"] == 2
        assert result["stats"]["total_weight"] == 75.0 + 800.0

        today = result["daily"][-1]
        assert today["in"] == 125.0 + 1200.0
        assert today["out"] == 50.0 + 400.0
        assert len(result["recent_transactions"]) == 4
        assert result["recent_transactions"][0]["type"] == "out"

    def test_recent_limit_comes_from_config(self, app, stocked):
        app.config["RECENT_TRANSACTIONS_LIMIT"] = 2
        try:
            assert len(reporting_service.dashboard()["recent_transactions"]) == 2
        finally:
            app.config["RECENT_TRANSACTIONS_LIMIT"] = 10


class TestReport:
    def test_default_range_is_current_month(self, stocked):
        result = reporting_service.report()

        assert result["summary"]["transaction_count"] == 4
        assert result["summary"]["total_in"] == 1325.0
        assert result["summary"]["total_out"] == 450.0
        assert result["pallet_summary"]["total_pallets_in"] == 3
        assert result["pallet_summary"]["total_pallets_out"] == 1
        assert result["companies"] == ["Acme", "Mill Co"]
        assert len(result["monthly"]) == 6

    def test_company_filter(self, stocked):
        result = reporting_service.report(company="Acme")

        assert result["summary"]["transaction_count"] == 2
        assert [row["name"] for row in result["products"]] == ["Tomatoes"]
        assert result["products"][0]["remainder"] == 75.0
        assert result["pallet_summary"]["total_pallet_products"] == 0

    def test_product_filter(self, stocked):
        result = reporting_service.report(product_id=stocked["flour"])
        assert {row["product_id"] for row in result["transactions"]} == {stocked["flour"]}
        assert result["monthly"][-1] == {
            "month": result["monthly"][-1]["month"], "in": 1200.0, "out": 400.0,
        }

    def test_date_only_end_covers_the_whole_day(self, stocked):
        today = utcnow().date().isoformat()
        result = reporting_service.report(start=today, end=today)
        assert result["summary"]["transaction_count"] == 4

    def test_range_in_the_past_is_empty(self, stocked):
        past = (utcnow() - timedelta(days=400)).date().isoformat()
        result = reporting_service.report(start=past, end=past)
        assert result["summary"]["transaction_count"] == 0
        assert result["summary"]["total_in"] == 0.0

    def test_start_after_end_rejected(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.report(start="2026-03-02", end="2026-03-01")

    def test_only_end_in_an_earlier_month(self, stocked):
        result = reporting_service.report(end="2025-01-15")
        assert result["start"] == "2025-01-01T00:00:00Z"
        assert result["end"] == "2025-01-15T23:59:59Z"
        assert result["summary"]["transaction_count"] == 0

    def test_only_start_runs_to_the_end_of_its_month(self, stocked):
        first_of_month = utcnow().date().replace(day=1).isoformat()
        result = reporting_service.report(start=first_of_month)
        assert result["summary"]["transaction_count"] == 4

    def test_malformed_date_rejected(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.report(start="yesterday")


class TestExport:
    def test_csv_has_header_and_rows(self, stocked):
        body = reporting_service.export_report_csv(company="Mill Co")
        rows = list(csv.reader(io.StringIO(body)))

        assert rows[0] == reporting_service.EXPORT_COLUMNS
        assert len(rows) == 3
        assert {row[1] for row in rows[1:]} == {"Flour"}
        assert {row[3] for row in rows[1:]} == {"in", "out"}
