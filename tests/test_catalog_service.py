"""Tests for CatalogService."""

from decimal import Decimal

import pytest

from core.errors import NotFoundError, ValidationError
from core.models.product import ProductDraft
from core.services.catalog_service import CatalogService, stock_status
from core.services.state import PRODUCTS_KEY


class TestCatalogCrud:
    def test_add_assigns_fresh_id_and_appends(self, catalog, state):
        p = catalog.add({"name": "Tea", "price": "3.20", "quantity": 12, "category": "Drinks"})

        assert p.id
        assert p.id not in {"A", "B", "C"}
        assert state.products[-1] is p
        assert p.price == Decimal("3.20")

    def test_add_ignores_caller_supplied_id(self, catalog):
        p = catalog.add({"id": "A", "name": "Tea", "price": 1, "quantity": 1, "category": "Drinks"})
        assert p.id != "A"

    def test_add_accepts_draft_model(self, catalog):
        draft = ProductDraft(name="Milk", price=Decimal("1.10"), quantity=3, category="Dairy")
        assert catalog.add(draft).name == "Milk"

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"price": 1, "quantity": 1, "category": "X"}, "name"),
            ({"name": "  ", "price": 1, "quantity": 1, "category": "X"}, "name"),
            ({"name": "T", "quantity": 1, "category": "X"}, "price"),
            ({"name": "T", "price": "", "quantity": 1, "category": "X"}, "price"),
            ({"name": "T", "price": -1, "quantity": 1, "category": "X"}, "price"),
            ({"name": "T", "price": 1, "quantity": -3, "category": "X"}, "quantity"),
            ({"name": "T", "price": 1, "quantity": 1}, "category"),
        ],
    )
    def test_add_rejects_invalid_payload(self, catalog, state, payload, field):
        before = len(state.products)

        with pytest.raises(ValidationError) as exc:
            catalog.add(payload)

        assert exc.value.field == field
        assert len(state.products) == before

    def test_add_rejects_duplicate_barcode(self, catalog):
        with pytest.raises(ValidationError):
            catalog.add({"name": "T", "price": 1, "quantity": 1, "category": "X", "barcode": "111"})

    def test_blank_barcode_is_stored_as_none(self, catalog):
        p = catalog.add({"name": "T", "price": 1, "quantity": 1, "category": "X", "barcode": "  "})
        assert p.barcode is None

    def test_update_replaces_all_fields_in_place(self, catalog, state):
        p = catalog.update("B", {"name": "Olive oil", "price": "60", "quantity": 4, "category": "Oils"})

        assert state.products[1] is p
        assert p.id == "B"
        assert p.name == "Olive oil"
        assert p.quantity == 4
        # full replacement: omitted optional field is cleared
        assert p.barcode is None

    def test_update_keeps_own_barcode(self, catalog):
        p = catalog.update("A", {"name": "Rice", "price": 1, "quantity": 1, "category": "Grains", "barcode": "111"})
        assert p.barcode == "111"

    def test_update_rejects_barcode_of_other_product(self, catalog):
        with pytest.raises(ValidationError):
            catalog.update("A", {"name": "Rice", "price": 1, "quantity": 1, "category": "G", "barcode": "222"})

    def test_update_unknown_id_raises(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.update("nope", {"name": "X", "price": 1, "quantity": 1, "category": "X"})

    def test_remove(self, catalog, state):
        removed = catalog.remove("A")

        assert removed.id == "A"
        assert [p.id for p in state.products] == ["B", "C"]

    def test_remove_unknown_raises(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.remove("nope")


class TestFindAndQuantity:
    def test_find_by_code(self, catalog):
        assert catalog.find_by_code("222").id == "B"
        assert catalog.find_by_code(" 111\n").id == "A"

    @pytest.mark.parametrize("code", ["999", "", "   "])
    def test_find_by_code_not_found(self, catalog, code):
        with pytest.raises(NotFoundError):
            catalog.find_by_code(code)

    def test_set_quantity(self, catalog):
        assert catalog.set_quantity("A", 0).quantity == 0

    @pytest.mark.parametrize("product_id", ["A", "B", "C"])
    def test_set_negative_quantity_fails_and_leaves_value(self, catalog, product_id):
        before = catalog.get(product_id).quantity

        with pytest.raises(ValidationError):
            catalog.set_quantity(product_id, -1)

        assert catalog.get(product_id).quantity == before

    def test_set_quantity_unknown_id(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.set_quantity("nope", 3)


class TestInventoryQueries:
    def test_categories_first_seen_order(self, catalog):
        assert catalog.categories() == ["Grains", "Oils"]

    def test_search_by_text_and_category(self, catalog):
        assert [p.id for p in catalog.search("ri")] == ["A"]
        assert [p.id for p in catalog.search("grains")] == ["A", "C"]
        assert [p.id for p in catalog.search("", "Oils")] == ["B"]
        assert [p.id for p in catalog.search("222")] == ["B"]
        assert catalog.search("oil", "Grains") == []

    def test_low_and_out_of_stock(self, catalog):
        assert [p.id for p in catalog.low_stock()] == ["A", "C"]
        assert [p.id for p in catalog.low_stock(threshold=6)] == ["A", "C"]
        assert [p.id for p in catalog.out_of_stock()] == ["C"]

    def test_stock_status(self):
        assert stock_status(0) == "out"
        assert stock_status(9) == "low"
        assert stock_status(10) == "ok"
        assert stock_status(3, threshold=2) == "ok"

    def test_inventory_value(self, catalog):
        assert catalog.inventory_value() == Decimal("25.50") * 5 + Decimal("45.00") * 10

    def test_generate_barcode_is_unique_ean13(self, catalog):
        code = catalog.generate_barcode()

        assert len(code) == 13 and code.isdigit()
        assert code not in {"111", "222"}
        digits = [int(d) for d in code]
        assert sum(d * (3 if i % 2 else 1) for i, d in enumerate(digits)) % 10 == 0


class TestChangeNotifications:
    def test_mutations_signal_products_key(self, state):
        seen = []
        state.subscribe(seen.append)
        catalog = CatalogService(state)

        catalog.add({"name": "T", "price": 1, "quantity": 1, "category": "X"})
        catalog.set_quantity("A", 2)
        catalog.remove("B")

        assert seen == [PRODUCTS_KEY] * 3

    def test_failed_mutation_does_not_signal(self, state):
        seen = []
        state.subscribe(seen.append)

        with pytest.raises(ValidationError):
            CatalogService(state).set_quantity("A", -5)

        assert seen == []
