"""
Stock planning tests.

The reconciler decides the new snapshot and the ledger row before anything
is written, so every rule can be checked without a database.
"""

from types import SimpleNamespace

import pytest

from warehouse.services import reconciler
from warehouse.services.weight_service import UNIT_BOX, UNIT_KG, UNIT_PALLET, WeightParams
from warehouse.validation import InsufficientStockError, ValidationError

BOX = WeightParams(box_weight=12.5)
PALLET = WeightParams(box_weight=10, pallet_weight=400)
KG = WeightParams()


# =============================================================================
# CREATION
# =============================================================================


class TestPlanCreation:
    def test_seeds_one_in_row(self):
        plan = reconciler.plan_creation(UNIT_BOX, 10, BOX)
        assert plan.new_quantity == 10
        assert plan.new_total_weight == 125.0
        assert plan.transaction == reconciler.PlannedTransaction("in", 10, 125.0)

    def test_zero_quantity_has_no_row(self):
        plan = reconciler.plan_creation(UNIT_KG, 0, KG)
        assert plan.new_quantity == 0
        assert plan.transaction is None


# =============================================================================
# ABSOLUTE EDITS
# =============================================================================


class TestPlanAbsoluteEdit:
    def test_increase_records_in_difference(self):
        plan = reconciler.plan_absolute_edit(UNIT_BOX, 10, 14, BOX)
        assert plan.transaction.type == "in"
        assert plan.transaction.quantity == 4
        assert plan.transaction.total_weight == 50.0
        assert plan.new_total_weight == 175.0

    def test_decrease_records_out_difference(self):
        plan = reconciler.plan_absolute_edit(UNIT_PALLET, 5, 2, PALLET)
        assert plan.transaction.type == "out"
        assert plan.transaction.quantity == 3
        assert plan.transaction.total_weight == 1200.0
        assert plan.new_total_weight == 800.0

    def test_unchanged_quantity_records_nothing(self):
        plan = reconciler.plan_absolute_edit(UNIT_KG, 7.5, 7.5, KG)
        assert plan.transaction is None
        assert plan.new_quantity == 7.5

    def test_float_noise_is_not_a_movement(self):
        plan = reconciler.plan_absolute_edit(UNIT_KG, 0.1 + 0.2, 0.3, KG)
        assert plan.transaction is None

    def test_negative_target_clamps_to_zero(self):
        plan = reconciler.plan_absolute_edit(UNIT_KG, 3, -5, KG)
        assert plan.new_quantity == 0
        assert plan.transaction.type == "out"
        assert plan.transaction.quantity == 3

    def test_new_parameters_reprice_snapshot(self):
        plan = reconciler.plan_absolute_edit(UNIT_BOX, 10, 10, WeightParams(box_weight=20))
        assert plan.transaction is None
        assert plan.new_total_weight == 200.0


# =============================================================================
# MOVEMENTS
# =============================================================================


class TestPlanMovement:
    def test_out_within_stock(self):
        plan = reconciler.plan_movement(UNIT_BOX, 10, "out", 4, BOX)
        assert plan.new_quantity == 6
        assert plan.new_total_weight == 75.0
        assert plan.transaction.total_weight == 50.0

    def test_in_adds(self):
        plan = reconciler.plan_movement(UNIT_KG, 1.5, "in", 2.25, KG)
        assert plan.new_quantity == 3.75
        assert plan.transaction.type == "in"

    def test_out_exceeding_stock_rejected(self):
        with pytest.raises(InsufficientStockError) as excinfo:
            reconciler.plan_movement(UNIT_BOX, 10, "out", 100, BOX)
        assert excinfo.value.requested == 100
        assert excinfo.value.available == 10

    def test_out_of_exact_stock_empties(self):
        plan = reconciler.plan_movement(UNIT_KG, 0.3, "out", 0.1 + 0.2, KG)
        assert plan.new_quantity == 0.0

    def test_ledger_balance_takes_precedence(self):
        with pytest.raises(InsufficientStockError):
            reconciler.plan_movement(UNIT_KG, 10, "out", 6, KG, available=5)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            reconciler.plan_movement(UNIT_KG, 10, "in", quantity, KG)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            reconciler.plan_movement(UNIT_KG, 10, "sideways", 1, KG)


# =============================================================================
# LEDGER / REPAIR
# =============================================================================


class TestLedger:
    def test_balance_is_in_minus_out(self):
        rows = [
            SimpleNamespace(type="in", quantity=10),
            SimpleNamespace(type="out", quantity=4),
            SimpleNamespace(type="in", quantity=1.5),
        ]
        assert reconciler.ledger_balance(rows) == 7.5

    def test_empty_ledger_is_zero(self):
        assert reconciler.ledger_balance([]) == 0.0

    def test_has_drift(self):
        assert reconciler.has_drift(10, 9) is True
        assert reconciler.has_drift(0.3, 0.1 + 0.2) is False

    def test_repair_never_appends(self):
        plan = reconciler.plan_repair(UNIT_BOX, 6, BOX)
        assert plan.new_quantity == 6
        assert plan.new_total_weight == 75.0
        assert plan.transaction is None
