# Overview: Flask API routes for orders; listing, status management and cancellation.

# backend/techstore/routes/orders.py
"""
Order API Routes

ACCESS:
- Customers see and cancel their own orders
- Product managers list all orders, move them through delivery and cancel any
  processing order
- Sales managers may read any order (refund review)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..commerce import get_services
from ..decorators import require_actor, require_role
from ..errors import CommerceError, Forbidden
from ..models.users import ROLE_PRODUCT_MANAGER, ROLE_SALES_MANAGER

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("")
@require_actor
@require_role(ROLE_PRODUCT_MANAGER, ROLE_SALES_MANAGER)
def list_orders_route():
    """
    List all orders, newest first.

    Query params:
        status: optional order status filter (e.g. "processing")
    """
    try:
        orders = get_services().checkout.list_orders(status=request.args.get("status"))
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/mine")
@require_actor
def my_orders_route():
    try:
        orders = get_services().checkout.list_orders_for_user(g.current_user.id)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list user orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_actor
def get_order_route(order_id: int):
    """Single order with lines. Owners and managers only."""
    try:
        order = get_services().checkout.get_order(order_id)
        if order.user_id != g.current_user.id and not g.current_user.is_manager:
            raise Forbidden("You can only view your own orders", details={"order_id": order_id})

        data = order.to_dict()
        data["payment"] = order.payment_record.to_dict() if order.payment_record else None
        return jsonify({"order": data}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# STATUS CHANGES
# =============================================================================

@orders_bp.patch("/<int:order_id>/status")
@require_actor
@require_role(ROLE_PRODUCT_MANAGER)
def update_status_route(order_id: int):
    """
    Move an order along the delivery path.

    Request body:
    {
        "status": "in-transit",
        "admin_note": "Shipped with DHL"  (optional)
    }

    Returns:
        200: Updated order
        400: Unknown status value
        409: Transition not allowed from the current status
    """
    try:
        data = request.get_json(silent=True) or {}
        order = get_services().orders.update_status(
            order_id,
            data.get("status"),
            g.current_user,
            admin_note=data.get("admin_note"),
        )
        return jsonify({"order": order.to_dict()}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/cancel")
@require_actor
def cancel_order_route(order_id: int):
    """
    Cancel a processing order and return its stock.

    Request body (optional):
    {
        "reason": "Ordered the wrong size"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = get_services().orders.cancel(order_id, g.current_user, reason=data.get("reason"))
        return jsonify({"order": order.to_dict(), "message": "Order cancelled"}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500
