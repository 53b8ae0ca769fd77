from __future__ import annotations

import enum

from ..extensions import db
from techstore.time_utils import to_utc_z


class OrderStatus(str, enum.Enum):
    """Closed set of order states. Transitions live in services/order_lifecycle.py."""

    PROCESSING = "processing"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUND_REQUESTED = "refund-requested"
    REFUND_APPROVED = "refund-approved"
    REFUND_DENIED = "refund-denied"

    @classmethod
    def parse(cls, value) -> "OrderStatus":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class RefundStatus(str, enum.Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    DENIED = "denied"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Order(db.Model):
    """
    Customer order, created atomically by checkout.

    total_amount_cents is computed once from the line snapshots and never
    recomputed. After creation only the order state machine mutates the row;
    version_id makes concurrent transitions on the same order fail fast.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    status = db.Column(
        db.Enum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            length=32,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=OrderStatus.PROCESSING,
    )

    total_amount_cents = db.Column(db.Integer, nullable=False)
    delivery_address = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_note = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        lazy=True,
        order_by="OrderLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status.value} total={self.total_amount_cents}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status.value,
            "total_amount_cents": self.total_amount_cents,
            "delivery_address": self.delivery_address,
            "created_at": to_utc_z(self.created_at),
            "delivered_at": to_utc_z(self.delivered_at) if self.delivered_at else None,
            "admin_note": self.admin_note,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """
    One product on an order.

    unit_price_cents and unit_cost_cents are snapshots taken at checkout.
    Later price, cost or discount changes on the product never touch them;
    revenue reports read only these columns.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_order_lines_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    # Discount that produced unit_price_cents, if any
    discount_id = db.Column(db.Integer, db.ForeignKey("discounts.id"), nullable=True)

    order = db.relationship("Order", back_populates="lines")
    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "discount_id": self.discount_id,
        }


class PaymentRecord(db.Model):
    """
    Card details captured at checkout, stored encrypted for record-keeping.

    Nothing is ever charged from this row. card_last4 is kept in clear for
    display; every other card field is ciphertext (see card_vault).
    """
    __tablename__ = "payment_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True)

    encrypted_card_number = db.Column(db.Text, nullable=False)
    encrypted_card_holder = db.Column(db.Text, nullable=False)
    encrypted_expiry_month = db.Column(db.Text, nullable=False)
    encrypted_expiry_year = db.Column(db.Text, nullable=False)
    encrypted_cvv = db.Column(db.Text, nullable=False)
    card_last4 = db.Column(db.String(4), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("payment_record", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "card_last4": self.card_last4,
            "created_at": to_utc_z(self.created_at),
        }


class RefundRequest(db.Model):
    """Customer refund request; at most one open (requested) per order."""
    __tablename__ = "refund_requests"
    __table_args__ = (
        db.Index("ix_refund_requests_order_status", "order_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    reason = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.Enum(
            RefundStatus,
            name="refund_status",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=RefundStatus.REQUESTED,
        index=True,
    )
    admin_note = db.Column(db.Text, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    order = db.relationship("Order", backref=db.backref("refund_requests", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "reason": self.reason,
            "status": self.status.value,
            "admin_note": self.admin_note,
            "requested_at": to_utc_z(self.requested_at),
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "resolved_by_user_id": self.resolved_by_user_id,
        }
