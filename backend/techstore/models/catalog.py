from __future__ import annotations

from ..extensions import db
from techstore.time_utils import to_utc_z


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"


class Product(db.Model):
    """
    Catalog product as seen by the commerce engine.

    Catalog management owns every column except ``stock``, which only the
    inventory ledger mutates (reserve/release).

    PRICING:
    - price_cents is NULL until a sales manager sets it
    - a product is purchasable only when price_cents is set AND price_approved
    - is_visible requires price_approved
    - cost_cents NULL means "50% of the unit price" (see pricing_service)
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint(
            "NOT is_visible OR price_approved",
            name="ck_products_visible_requires_approval",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=True)
    cost_cents = db.Column(db.Integer, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    price_approved = db.Column(db.Boolean, nullable=False, default=False)
    is_visible = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    discounts = db.relationship("Discount", back_populates="product", lazy=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "price_approved": self.price_approved,
            "is_visible": self.is_visible,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Discount(db.Model):
    """
    Time-boxed discount on one product.

    Window is half-open: active when start_at <= t < end_at.
    discount_value is basis points for percentage discounts (2000 = 20%)
    and cents for fixed discounts.

    Overlapping windows are not prevented at write time; the pricing
    resolver picks the most recently created active discount.
    """
    __tablename__ = "discounts"
    __table_args__ = (
        db.CheckConstraint(
            "discount_type IN ('percentage', 'fixed')",
            name="ck_discounts_type",
        ),
        db.CheckConstraint("discount_value >= 0", name="ck_discounts_value_non_negative"),
        db.CheckConstraint("end_at > start_at", name="ck_discounts_window"),
        db.Index("ix_discounts_product_window", "product_id", "start_at", "end_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    discount_type = db.Column(db.String(16), nullable=False)
    discount_value = db.Column(db.Integer, nullable=False)

    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="discounts")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "start_at": to_utc_z(self.start_at),
            "end_at": to_utc_z(self.end_at),
            "created_at": to_utc_z(self.created_at),
        }
