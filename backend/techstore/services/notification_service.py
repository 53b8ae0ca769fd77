# Overview: In-app notification rows written alongside order and refund changes.

from __future__ import annotations

import json

from ..models import Notification, Order


STATUS_MESSAGES = {
    "processing": "Your order #{order_id} has been placed and is being processed.",
    "in-transit": "Your order #{order_id} is on its way.",
    "delivered": "Your order #{order_id} has been delivered.",
    "cancelled": "Your order #{order_id} has been cancelled.",
    "refund-requested": (
        "Your refund request for order #{order_id} has been submitted and is being reviewed."
    ),
    "refund-approved": (
        "Your refund request for order #{order_id} has been approved. "
        "The refund will be processed to your original payment method."
    ),
    "refund-denied": "Your refund request for order #{order_id} has been denied.",
}


def notify_order_status(session, order: Order, *, note: str | None = None) -> Notification:
    """
    Queue a notification for the order's owner. Does not flush or commit.
    """
    status = order.status.value
    message = STATUS_MESSAGES[status].format(order_id=order.id)
    if note and status == "refund-denied":
        message = f"{message} Reason: {note}"

    payload = {"order_id": order.id, "status": status}
    if note:
        payload["note"] = note

    notification = Notification(
        user_id=order.user_id,
        notification_type=f"order_{status.replace('-', '_')}",
        message=message,
        payload=json.dumps(payload),
    )
    session.add(notification)
    return notification
