# Overview: Flask API route for checkout; parses the cart and returns the created order.

# backend/techstore/routes/checkout.py
"""
Checkout API

One call turns a cart into an order: prices are snapshotted, stock is
reserved and the payment record is written in a single transaction. Either
the caller gets a 201 with the order, or a structured error and nothing was
written.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..commerce import get_services
from ..decorators import require_actor
from ..errors import CommerceError, ValidationError
from ..services.card_vault import PaymentDetails
from ..services.checkout_service import CartLine

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _parse_cart(items) -> list[CartLine]:
    if not isinstance(items, list):
        raise ValidationError("items must be a list", code="invalid_cart")
    lines = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("each cart item must be an object", code="invalid_cart")
        lines.append(CartLine.from_payload(item))
    return lines


@checkout_bp.post("")
@require_actor
def checkout_route():
    """
    Create an order from the caller's cart.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "delivery_address": "221B Baker Street, London",
        "payment": {
            "card_number": "4242 4242 4242 4242",
            "card_holder": "Jane Doe",
            "expiry_month": "12",
            "expiry_year": "2030",
            "cvv": "123"
        }
    }

    Returns:
        201: {"order_id": ..., "order": {...}}
        400: Invalid cart, card or address; product not purchasable
        404: Unknown product
        409: Insufficient stock
    """
    try:
        data = request.get_json(silent=True) or {}

        cart_lines = _parse_cart(data.get("items", []))
        payment = PaymentDetails.from_payload(data.get("payment"))

        order = get_services().checkout.create_order(
            user_id=g.current_user.id,
            cart_lines=cart_lines,
            delivery_address=data.get("delivery_address"),
            payment=payment,
        )
        return jsonify({"order_id": order.id, "order": order.to_dict()}), 201

    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500
