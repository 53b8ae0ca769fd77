"""
Pricing & discount resolution.

Pure functions over catalog rows and a point in time. Nothing here writes.

RULES:
- A product is purchasable only when price_cents is set AND price_approved.
  Callers reject non-purchasable products before resolving a price.
- Active discount: start_at <= at < end_at.
- Overlapping active discounts: the most recently created wins, ties broken
  by the higher id. The catalog does not enforce non-overlap, so this rule
  keeps the result reproducible.
- Percentage discounts are stored in basis points (2000 = 20%) and rounded
  half-up to the cent. Results are clamped at zero.
- Cost fallback (no cost_cents on the product) is 50% of the unit price.
  unit_cost_snapshot() is the only place that rule lives.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from ..errors import NotFound, ValidationError
from ..models import Discount, Product
from ..models.catalog import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE
from techstore.time_utils import utcnow

BASIS_POINTS = 10_000
DEFAULT_COST_RATIO_BPS = 5_000


@dataclass(frozen=True)
class PriceQuote:
    product_id: int
    base_price_cents: int
    unit_price_cents: int
    discount: Discount | None = None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "base_price_cents": self.base_price_cents,
            "unit_price_cents": self.unit_price_cents,
            "has_discount": self.discount is not None,
            "discount": self.discount.to_dict() if self.discount else None,
        }


def apply_discount(price_cents: int, discount_type: str, value: int) -> int:
    """Discounted unit price in cents, never below zero."""
    if discount_type == DISCOUNT_PERCENTAGE:
        remaining_bps = max(0, BASIS_POINTS - value)
        return (price_cents * remaining_bps + BASIS_POINTS // 2) // BASIS_POINTS
    if discount_type == DISCOUNT_FIXED:
        return max(0, price_cents - value)
    raise ValueError(f"unknown discount type: {discount_type!r}")


def unit_cost_snapshot(product: Product, unit_price_cents: int) -> int:
    """Cost recorded on an order line: the product's cost, else half the unit price."""
    if product.cost_cents is not None:
        return product.cost_cents
    return (unit_price_cents * DEFAULT_COST_RATIO_BPS + BASIS_POINTS // 2) // BASIS_POINTS


def ensure_purchasable(product: Product) -> None:
    if product.price_cents is None:
        raise ValidationError(
            f"Product {product.id} has no price",
            code="product_not_purchasable",
            details={"product_id": product.id},
        )
    if not product.price_approved:
        raise ValidationError(
            f"Product {product.id} price is not approved",
            code="product_not_purchasable",
            details={"product_id": product.id},
        )


class PricingResolver:
    """Resolves the effective unit price of a product at a point in time."""

    def __init__(self, database):
        self.database = database

    def active_discount(self, product_id: int, at: datetime) -> Discount | None:
        stmt = (
            select(Discount)
            .where(
                Discount.product_id == product_id,
                Discount.start_at <= at,
                Discount.end_at > at,
            )
            .order_by(Discount.created_at.desc(), Discount.id.desc())
            .limit(1)
        )
        return self.database.session.execute(stmt).scalars().first()

    def effective_price(self, product: Product, at: datetime | None = None) -> PriceQuote:
        ensure_purchasable(product)
        at = at or utcnow()

        discount = self.active_discount(product.id, at)
        if discount is None:
            return PriceQuote(product.id, product.price_cents, product.price_cents)

        unit_price = apply_discount(product.price_cents, discount.discount_type, discount.discount_value)
        return PriceQuote(product.id, product.price_cents, unit_price, discount)

    def quote(self, product_id: int, at: datetime | None = None) -> PriceQuote:
        product = self.database.session.get(Product, product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found", details={"product_id": product_id})
        return self.effective_price(product, at)
