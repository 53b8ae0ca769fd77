# Overview: Flask API routes for refunds; customer requests and sales manager decisions.

# backend/techstore/routes/refunds.py
"""
Refund API Routes

WORKFLOW:
- Customer requests a refund on a delivered order (POST /api/refunds)
- Sales manager approves (stock restored) or denies it
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..commerce import get_services
from ..decorators import require_actor, require_role
from ..errors import CommerceError, Forbidden, ValidationError
from ..models.users import ROLE_SALES_MANAGER
from ..services.refund_service import DECISION_APPROVE, DECISION_DENY

refunds_bp = Blueprint("refunds", __name__, url_prefix="/api/refunds")


@refunds_bp.post("")
@require_actor
def request_refund_route():
    """
    Request a refund for a delivered order.

    Request body:
    {
        "order_id": 12,
        "reason": "Screen arrived cracked"
    }

    Returns:
        201: Refund request created, order is refund-requested
        400: Missing reason, refund window expired
        403: Order belongs to someone else
        409: Order not delivered, or a request is already open
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = data.get("order_id")
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            raise ValidationError("order_id must be an integer", code="invalid_order_id")

        refund = get_services().refunds.request_refund(order_id, g.current_user.id, data.get("reason"))
        return jsonify({"refund": refund.to_dict()}), 201
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to request refund")
        return jsonify({"error": "Internal server error"}), 500


def _resolve(refund_id: int, decision: str):
    try:
        data = request.get_json(silent=True) or {}
        refund = get_services().refunds.resolve_refund(
            refund_id,
            decision,
            g.current_user,
            admin_note=data.get("admin_note"),
        )
        return jsonify({"refund": refund.to_dict(), "order": refund.order.to_dict()}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to %s refund", decision)
        return jsonify({"error": "Internal server error"}), 500


@refunds_bp.patch("/<int:refund_id>/approve")
@require_actor
@require_role(ROLE_SALES_MANAGER)
def approve_refund_route(refund_id: int):
    """
    Approve a refund: order becomes refund-approved and stock is restored.

    Request body (optional):
    {
        "admin_note": "Approved, courier damage"
    }
    """
    return _resolve(refund_id, DECISION_APPROVE)


@refunds_bp.patch("/<int:refund_id>/deny")
@require_actor
@require_role(ROLE_SALES_MANAGER)
def deny_refund_route(refund_id: int):
    """Deny a refund: order becomes refund-denied, stock untouched."""
    return _resolve(refund_id, DECISION_DENY)


@refunds_bp.get("")
@require_actor
@require_role(ROLE_SALES_MANAGER)
def list_refunds_route():
    try:
        refunds = get_services().refunds.list_refunds(status=request.args.get("status"))
        return jsonify({"refunds": [r.to_dict() for r in refunds]}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list refunds")
        return jsonify({"error": "Internal server error"}), 500


@refunds_bp.get("/order/<int:order_id>")
@require_actor
def refund_for_order_route(order_id: int):
    """Latest refund request for an order. Owner or sales manager."""
    try:
        services = get_services()
        order = services.checkout.get_order(order_id)
        if order.user_id != g.current_user.id and g.current_user.role != ROLE_SALES_MANAGER:
            raise Forbidden("You can only view refunds for your own orders", details={"order_id": order_id})

        refund = services.refunds.get_refund_for_order(order_id)
        return jsonify({"refund": refund.to_dict()}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get refund for order")
        return jsonify({"error": "Internal server error"}), 500
