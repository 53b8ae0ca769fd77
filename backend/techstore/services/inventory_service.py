# Overview: Inventory ledger; the only code that mutates Product.stock.

"""
TechStore Inventory Invariants (authoritative)

- Product.stock is never negative (DB check constraint, and reserve() refuses
  before the constraint would fire).
- reserve() is all-or-nothing across the lines of one order: every line is
  checked under lock before any stock is decremented. A shortfall raises
  InsufficientStock naming the product and the caller's transaction is
  rolled back.
- Decrements are conditional (stock = stock - q WHERE stock >= q) so even a
  backend without row locks cannot oversell.
- Product rows are locked in ascending id order to avoid deadlocks between
  two checkouts touching the same products.
- release() increments stock. Calling it exactly once per order transition
  is the order state machine's job, not this module's.
- Neither operation commits; both participate in the caller's transaction
  (Database.transaction()).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select, update

from ..errors import InsufficientStock, NotFound, ValidationError
from ..models import Order, OrderLine, OrderStatus, Product
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)

# Order states whose lines have been returned to stock
RESTOCKED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUND_APPROVED)


@dataclass(frozen=True)
class StockLine:
    product_id: int
    quantity: int


def aggregate_lines(lines: Iterable[StockLine]) -> dict[int, int]:
    """Sum quantities per product, keyed in ascending product id order."""
    totals: dict[int, int] = {}
    for line in lines:
        if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                code="invalid_cart",
                details={"product_id": line.product_id, "quantity": line.quantity},
            )
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return dict(sorted(totals.items()))


class InventoryLedger:

    def __init__(self, database):
        self.database = database

    def _lock_products(self, product_ids: list[int]) -> dict[int, Product]:
        session = self.database.session
        # populate_existing: a stale identity-map copy must not hide a concurrent decrement
        query = (
            session.query(Product)
            .filter(Product.id.in_(product_ids))
            .order_by(Product.id)
            .populate_existing()
        )
        products = {p.id: p for p in lock_for_update(query).all()}

        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise NotFound(f"Product {missing[0]} not found", details={"product_id": missing[0]})
        return products

    def reserve(self, lines: Iterable[StockLine]) -> None:
        """
        Decrement stock for every line, or for none of them.

        Raises InsufficientStock for the first product (by id) that cannot
        cover its requested quantity.
        """
        totals = aggregate_lines(lines)
        if not totals:
            return

        session = self.database.session
        products = self._lock_products(list(totals))

        for product_id, quantity in totals.items():
            available = products[product_id].stock
            if available < quantity:
                logger.warning(
                    "Insufficient stock for product %s: requested %s, available %s",
                    product_id, quantity, available,
                )
                raise InsufficientStock(product_id, quantity, available)

        for product_id, quantity in totals.items():
            result = session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock >= quantity)
                .values(stock=Product.stock - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                available = session.execute(
                    select(Product.stock).where(Product.id == product_id)
                ).scalar_one()
                raise InsufficientStock(product_id, quantity, available)

        for product in products.values():
            session.expire(product, ["stock"])

    def release(self, lines: Iterable[StockLine]) -> None:
        """Return units to stock (cancellation, approved refund)."""
        totals = aggregate_lines(lines)
        if not totals:
            return

        session = self.database.session
        products = self._lock_products(list(totals))

        for product_id, quantity in totals.items():
            session.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock=Product.stock + quantity)
                .execution_options(synchronize_session=False)
            )
            session.expire(products[product_id], ["stock"])

    def release_order(self, order: Order) -> list[StockLine]:
        lines = order_stock_lines(order)
        self.release(lines)
        return lines

    def stock_level(self, product_id: int) -> int:
        stock = self.database.session.execute(
            select(Product.stock).where(Product.id == product_id)
        ).scalar_one_or_none()
        if stock is None:
            raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
        return int(stock)

    def audit_restock(self, order_id: int) -> dict:
        """
        Read-only view of the stock an order returned (or should have returned).

        Lists each line with the product's current stock so an operator can
        compare against the warehouse count. Never mutates.
        """
        session = self.database.session
        order = session.get(Order, order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})

        rows = session.execute(
            select(OrderLine.product_id, OrderLine.quantity, Product.name, Product.stock)
            .join(Product, Product.id == OrderLine.product_id)
            .where(OrderLine.order_id == order_id)
            .order_by(OrderLine.id)
        ).all()

        return {
            "order_id": order.id,
            "status": order.status.value,
            "restocked": order.status in RESTOCKED_STATUSES,
            "items": [
                {
                    "product_id": row.product_id,
                    "product_name": row.name,
                    "quantity": row.quantity,
                    "current_stock": row.stock,
                }
                for row in rows
            ],
        }


def order_stock_lines(order: Order) -> list[StockLine]:
    return [StockLine(line.product_id, line.quantity) for line in order.lines]
