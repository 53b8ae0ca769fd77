"""
Inventory ledger tests.

Verifies:
- reserve() is all-or-nothing across lines
- InsufficientStock names the product and leaves stock untouched
- release() returns units
- stock never goes negative over a reserve/release sequence
"""

import pytest

from techstore.errors import InsufficientStock, NotFound, ValidationError
from techstore.services.inventory_service import StockLine, aggregate_lines


def _reserve(services, *lines):
    with services.database.transaction():
        services.inventory.reserve(StockLine(pid, qty) for pid, qty in lines)


def _release(services, *lines):
    with services.database.transaction():
        services.inventory.release(StockLine(pid, qty) for pid, qty in lines)


class TestAggregateLines:

    def test_merges_duplicates_in_product_order(self):
        totals = aggregate_lines([StockLine(7, 1), StockLine(3, 2), StockLine(7, 4)])
        assert list(totals.items()) == [(3, 2), (7, 5)]

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_rejects_non_positive_or_non_integer(self, quantity):
        with pytest.raises(ValidationError) as exc:
            aggregate_lines([StockLine(1, quantity)])
        assert exc.value.code == "invalid_cart"


class TestReserve:

    def test_decrements_every_line(self, services, make_product):
        a = make_product("A", stock=5)
        b = make_product("B", stock=3)

        _reserve(services, (a.id, 2), (b.id, 3))

        assert services.inventory.stock_level(a.id) == 3
        assert services.inventory.stock_level(b.id) == 0

    def test_shortfall_raises_and_mutates_nothing(self, services, make_product):
        a = make_product("A", stock=5)
        b = make_product("B", stock=1)

        with pytest.raises(InsufficientStock) as exc:
            _reserve(services, (a.id, 2), (b.id, 2))

        assert exc.value.product_id == b.id
        assert exc.value.requested == 2
        assert exc.value.available == 1
        assert exc.value.details["product_id"] == b.id
        assert services.inventory.stock_level(a.id) == 5
        assert services.inventory.stock_level(b.id) == 1

    def test_duplicate_lines_are_checked_as_one(self, services, make_product):
        a = make_product("A", stock=3)

        with pytest.raises(InsufficientStock):
            _reserve(services, (a.id, 2), (a.id, 2))
        assert services.inventory.stock_level(a.id) == 3

    def test_exact_stock_can_be_reserved(self, services, make_product):
        a = make_product("A", stock=2)
        _reserve(services, (a.id, 2))
        assert services.inventory.stock_level(a.id) == 0

    def test_unknown_product(self, services):
        with pytest.raises(NotFound):
            _reserve(services, (424242, 1))


class TestRelease:

    def test_returns_units(self, services, make_product):
        a = make_product("A", stock=4)
        _reserve(services, (a.id, 3))
        _release(services, (a.id, 3))
        assert services.inventory.stock_level(a.id) == 4

    def test_sequence_never_goes_negative(self, services, make_product):
        a = make_product("A", stock=3)

        steps = [("reserve", 2), ("reserve", 2), ("release", 1), ("reserve", 2), ("reserve", 1), ("release", 3)]
        for op, qty in steps:
            try:
                if op == "reserve":
                    _reserve(services, (a.id, qty))
                else:
                    _release(services, (a.id, qty))
            except InsufficientStock:
                pass
            assert services.inventory.stock_level(a.id) >= 0

        # 3 - 2 + 1 - 2 + 3, two reserves refused
        assert services.inventory.stock_level(a.id) == 3


class TestStockAudit:

    def test_reports_lines_and_restock_state(self, services, customer, make_product, place_order):
        a = make_product("A", stock=5)
        order = place_order(customer, [(a, 2)])

        report = services.inventory.audit_restock(order.id)
        assert report["restocked"] is False
        assert report["items"] == [
            {"product_id": a.id, "product_name": "A", "quantity": 2, "current_stock": 3},
        ]

        services.orders.cancel(order.id, customer)
        report = services.inventory.audit_restock(order.id)
        assert report["status"] == "cancelled"
        assert report["restocked"] is True
        assert report["items"][0]["current_stock"] == 5

    def test_unknown_order(self, services):
        with pytest.raises(NotFound):
            services.inventory.audit_restock(999_999)
