"""Tests for the invoice builder state machine."""

from datetime import timedelta
from decimal import Decimal

import pytest

from core.errors import (
    ConcurrentStockConflictError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from core.services.invoice_builder import BuilderState


class TestLineItems:
    def test_starts_empty(self, builder):
        assert builder.state == BuilderState.EMPTY
        assert builder.items == []

    def test_add_item_snapshots_name_and_price(self, builder, catalog):
        line = builder.add_item("A", 2)

        assert builder.state == BuilderState.BUILDING
        assert line.product_name == "Rice"
        assert line.unit_price == Decimal("25.50")

        catalog.update("A", {"name": "Basmati", "price": "99", "quantity": 5, "category": "Grains"})
        assert builder.items[0].product_name == "Rice"
        assert builder.items[0].unit_price == Decimal("25.50")

    def test_adding_same_product_sums_quantities(self, builder):
        builder.add_item("B", 4)
        line = builder.add_item("B", 3)

        assert line.quantity == 7
        assert len(builder.items) == 1

    def test_summed_quantity_is_revalidated_against_stock(self, builder):
        builder.add_item("B", 6)

        with pytest.raises(OutOfStockError) as exc:
            builder.add_item("B", 6)

        assert exc.value.requested == 12
        assert exc.value.available == 10
        assert builder.items[0].quantity == 6

    def test_add_more_than_stock(self, builder):
        with pytest.raises(OutOfStockError):
            builder.add_item("A", 6)
        assert builder.state == BuilderState.EMPTY

    def test_add_out_of_stock_product(self, builder):
        with pytest.raises(OutOfStockError):
            builder.add_item("C", 1)

    def test_add_unknown_product(self, builder):
        with pytest.raises(NotFoundError):
            builder.add_item("nope", 1)

    @pytest.mark.parametrize("qty", [0, -2, 1.5, True])
    def test_add_rejects_non_positive_quantity(self, builder, qty):
        with pytest.raises(ValidationError):
            builder.add_item("A", qty)

    def test_removing_last_item_returns_to_empty(self, builder):
        builder.add_item("A", 1)
        builder.remove_item("A")

        assert builder.state == BuilderState.EMPTY

    def test_remove_keeps_other_lines(self, builder):
        builder.add_item("A", 1)
        builder.add_item("B", 1)
        builder.remove_item("A")

        assert builder.state == BuilderState.BUILDING
        assert [ln.product_id for ln in builder.items] == ["B"]

    def test_remove_missing_line(self, builder):
        with pytest.raises(NotFoundError):
            builder.remove_item("A")

    def test_discard_clears_without_touching_catalog(self, builder, catalog):
        builder.add_item("A", 3)
        builder.discard()

        assert builder.state == BuilderState.EMPTY
        assert catalog.get("A").quantity == 5

    def test_items_are_copies(self, builder):
        builder.add_item("A", 1)
        builder.items[0].quantity = 99
        assert builder.items[0].quantity == 1


class TestTotals:
    def test_subtotal_and_total(self, builder):
        builder.add_item("A", 2)
        builder.add_item("B", 1)

        assert builder.compute_subtotal() == Decimal("96.00")
        assert builder.compute_total("6", "2.5") == Decimal("92.50")

    def test_total_is_not_floored_at_zero(self, builder):
        builder.add_item("A", 1)
        assert builder.compute_total(100, 0) == Decimal("-74.50")

    def test_empty_subtotal(self, builder):
        assert builder.compute_subtotal() == Decimal("0")

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "abc"])
    def test_total_rejects_non_finite_amounts(self, builder, amount):
        builder.add_item("A", 1)

        with pytest.raises(ValidationError):
            builder.compute_total(amount, 0)
        with pytest.raises(ValidationError):
            builder.compute_total(0, amount)


class TestCommit:
    def test_cash_commit_decrements_stock_and_is_paid(self, builder, catalog, invoices, now):
        builder.add_item("A", 3)

        inv = builder.commit("Alice", "cash")

        assert catalog.get("A").quantity == 2
        assert inv.payment_status == "paid"
        assert inv.due_date is None
        assert inv.date == now
        assert builder.state == BuilderState.COMMITTED
        assert invoices.list_invoices() == [inv]

    def test_credit_commit_sets_due_date_and_pending(self, builder, now):
        builder.add_item("B", 1)

        inv = builder.commit("Bob", "credit", due_days=30)

        assert inv.payment_status == "pending"
        assert inv.due_date == now + timedelta(days=30)

    def test_credit_without_due_days(self, builder):
        builder.add_item("B", 1)
        inv = builder.commit("Bob", "credit")
        assert inv.payment_status == "pending"
        assert inv.due_date is None

    def test_stored_totals_are_consistent(self, builder):
        builder.add_item("A", 2)
        builder.add_item("B", 3)

        inv = builder.commit("Carol", "cash", discount="10", tax="4.25", customer_phone=" 0555 ", notes="")

        assert inv.compute_subtotal() == inv.subtotal == Decimal("186.00")
        assert inv.subtotal - inv.discount + inv.tax == inv.total == Decimal("180.25")
        assert inv.customer_phone == "0555"
        assert inv.notes is None

    def test_commit_on_empty_fails(self, builder):
        with pytest.raises(ValidationError):
            builder.commit("Alice", "cash")

    def test_commit_after_removing_only_item_fails(self, builder):
        builder.add_item("A", 1)
        builder.remove_item("A")

        with pytest.raises(ValidationError):
            builder.commit("Alice", "cash")

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_commit_requires_customer_name(self, builder, catalog, name):
        builder.add_item("A", 1)

        with pytest.raises(ValidationError):
            builder.commit(name, "cash")

        assert catalog.get("A").quantity == 5
        assert builder.state == BuilderState.BUILDING

    def test_commit_rejects_unknown_payment_method(self, builder):
        builder.add_item("A", 1)
        with pytest.raises(ValidationError):
            builder.commit("Alice", "card")

    def test_stock_conflict_rejects_whole_batch(self, builder, catalog, invoices):
        builder.add_item("B", 2)
        builder.add_item("A", 4)
        # stock changed after the line was validated
        catalog.set_quantity("A", 1)

        with pytest.raises(ConcurrentStockConflictError) as exc:
            builder.commit("Alice", "cash")

        assert exc.value.shortages == {"A": (4, 1)}
        assert catalog.get("B").quantity == 10
        assert catalog.get("A").quantity == 1
        assert invoices.list_invoices() == []
        assert builder.state == BuilderState.BUILDING

    def test_deleted_product_rejects_commit(self, builder, catalog, invoices):
        builder.add_item("B", 1)
        builder.add_item("A", 1)
        catalog.remove("A")

        with pytest.raises(NotFoundError):
            builder.commit("Alice", "cash")

        assert catalog.get("B").quantity == 10
        assert invoices.list_invoices() == []

    def test_committed_builder_is_closed(self, builder):
        builder.add_item("A", 1)
        builder.commit("Alice", "cash")

        with pytest.raises(ValidationError):
            builder.add_item("B", 1)
        with pytest.raises(ValidationError):
            builder.commit("Alice", "cash")
        with pytest.raises(ValidationError):
            builder.discard()

    def test_commit_can_drain_stock_to_zero(self, builder, catalog):
        builder.add_item("A", 5)
        builder.commit("Alice", "cash")
        assert catalog.get("A").quantity == 0

    def test_invoice_is_immutable_snapshot_of_lines(self, builder, catalog):
        builder.add_item("A", 1)
        inv = builder.commit("Alice", "cash")

        catalog.update("A", {"name": "Other", "price": 1, "quantity": 1, "category": "X"})

        assert inv.items[0].product_name == "Rice"
        assert inv.items[0].unit_price == Decimal("25.50")

    @pytest.mark.parametrize("field", ["discount", "tax"])
    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    def test_commit_rejects_non_finite_amounts(self, builder, catalog, invoices, field, amount):
        builder.add_item("A", 2)

        with pytest.raises(ValidationError) as exc:
            builder.commit("Alice", "cash", **{field: amount})

        assert exc.value.field == field
        assert catalog.get("A").quantity == 5
        assert invoices.list_invoices() == []
        assert builder.state == BuilderState.BUILDING

    def test_failed_commit_does_not_consume_invoice_number(self, builder, now):
        builder.add_item("A", 1)

        with pytest.raises(ValidationError):
            builder.commit("Alice", "cash", discount="NaN")
        inv = builder.commit("Alice", "cash")

        assert inv.invoice_number == f"INV-{int(now.timestamp() * 1000)}"
