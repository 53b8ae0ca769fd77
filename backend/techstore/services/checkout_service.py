"""
Order ledger: turns a cart into a durable order.

WHY: Checkout is the only place an order comes into existence. Either the
Order, all of its OrderLines, the PaymentRecord and the stock reservation
exist together, or none of them do.

FLOW (one transaction):
1. Validate input (cart shape, card shape, address) - no DB writes yet
2. Load products, reject the whole cart if any product is not purchasable
3. Snapshot unit price (pricing resolver) and unit cost per line
4. Reserve stock for all lines (all-or-nothing)
5. Insert Order(processing), OrderLines, PaymentRecord, notification
6. Commit; any exception rolls everything back and no order id is issued
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select

from ..errors import NotFound, ValidationError
from ..models import Order, OrderLine, OrderStatus, PaymentRecord, Product, User
from techstore.time_utils import utcnow
from .card_vault import CardVault, PaymentDetails
from .inventory_service import InventoryLedger, StockLine, aggregate_lines
from .notification_service import notify_order_status
from .pricing_service import PricingResolver, ensure_purchasable, unit_cost_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int

    @classmethod
    def from_payload(cls, item: dict) -> "CartLine":
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError(
                "product_id must be an integer",
                code="invalid_cart",
                details={"item": item},
            )
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(
                "quantity must be a positive integer",
                code="invalid_cart",
                details={"item": item},
            )
        return cls(product_id=product_id, quantity=quantity)


class CheckoutService:

    def __init__(
        self,
        database,
        pricing: PricingResolver,
        inventory: InventoryLedger,
        vault: CardVault,
    ) -> None:
        self.database = database
        self.pricing = pricing
        self.inventory = inventory
        self.vault = vault

    # --- Checkout --------------------------------------------------------------

    def create_order(
        self,
        user_id: int,
        cart_lines: list[CartLine],
        delivery_address: str,
        payment: PaymentDetails,
    ) -> Order:
        """
        Create an order from a cart.

        Raises:
            ValidationError: bad cart, card or address; non-purchasable product
            NotFound: unknown user or product
            InsufficientStock: any line exceeds stock (nothing is written)
        """
        address = (delivery_address or "").strip()
        self._validate(cart_lines, address, payment)

        def _op(session) -> Order:
            if session.get(User, user_id) is None:
                raise NotFound(f"User {user_id} not found", details={"user_id": user_id})

            products = self._load_products(session, cart_lines)
            for product in products.values():
                ensure_purchasable(product)

            now = utcnow()
            order_lines = []
            total = 0
            for cart_line in cart_lines:
                product = products[cart_line.product_id]
                quote = self.pricing.effective_price(product, now)
                unit_cost = unit_cost_snapshot(product, quote.unit_price_cents)
                total += quote.unit_price_cents * cart_line.quantity
                order_lines.append(
                    OrderLine(
                        product_id=product.id,
                        quantity=cart_line.quantity,
                        unit_price_cents=quote.unit_price_cents,  # <-- price snapshot
                        unit_cost_cents=unit_cost,  # <-- cost snapshot
                        discount_id=quote.discount.id if quote.discount else None,
                    )
                )

            self.inventory.reserve(StockLine(cl.product_id, cl.quantity) for cl in cart_lines)

            order = Order(
                user_id=user_id,
                status=OrderStatus.PROCESSING,
                total_amount_cents=total,
                delivery_address=address,
                created_at=now,
                lines=order_lines,
            )
            session.add(order)
            session.flush()

            session.add(PaymentRecord(order_id=order.id, **payment.encrypted_fields(self.vault)))
            notify_order_status(session, order)
            return order

        order = self.database.run(_op)
        logger.info(
            "Order %s created for user %s: %d lines, total %d cents",
            order.id, user_id, len(cart_lines), order.total_amount_cents,
        )
        return order

    @staticmethod
    def _validate(cart_lines: list[CartLine], address: str, payment: PaymentDetails) -> None:
        if not cart_lines:
            raise ValidationError("Cart is empty", code="invalid_cart")
        aggregate_lines(StockLine(cl.product_id, cl.quantity) for cl in cart_lines)
        payment.validate()
        if not address:
            raise ValidationError("Delivery address is required", code="invalid_address")

    @staticmethod
    def _load_products(session, cart_lines: list[CartLine]) -> dict[int, Product]:
        ids = sorted({cl.product_id for cl in cart_lines})
        products = {
            p.id: p
            for p in session.execute(select(Product).where(Product.id.in_(ids))).scalars()
        }
        for product_id in ids:
            if product_id not in products:
                raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
        return products

    # --- Queries ---------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self.database.session.get(Order, order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
        return order

    def list_orders_for_user(self, user_id: int) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(self.database.session.execute(stmt).scalars())

    def list_orders(self, status: OrderStatus | str | None = None) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            try:
                status = OrderStatus.parse(status)
            except ValueError:
                raise ValidationError(f"Unknown order status: {status}", code="invalid_status") from None
            stmt = stmt.where(Order.status == status)
        return list(self.database.session.execute(stmt).scalars())
