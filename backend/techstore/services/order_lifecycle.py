"""
Order state machine.

Status is a closed enum (OrderStatus) with one transition table, checked
in exactly one place (``check_transition``).

LIFECYCLE:
    processing --> in-transit --> delivered --> refund-requested --> refund-approved
        |               |                              \\--> refund-denied
        |               \\--> delivered
        \\--> cancelled
        \\--> delivered

Terminal: cancelled, refund-approved, refund-denied.

SIDE EFFECTS (same transaction as the status write):
- entering delivered stamps delivered_at
- entering cancelled or refund-approved releases every line's stock
- every transition queues a notification for the order owner

Each side effect runs at most once per order because the source state is
checked under the order's row lock (and version_id) before anything moves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import Forbidden, InvalidTransition, NotFound, ValidationError
from ..models import Order, OrderStatus, User
from ..models.users import ROLE_PRODUCT_MANAGER
from techstore.time_utils import utcnow
from .concurrency import lock_for_update
from .inventory_service import InventoryLedger
from .notification_service import notify_order_status

logger = logging.getLogger(__name__)

# Who initiates a transition
OPERATOR = "operator"  # product manager, order-management UI
CUSTOMER = "customer"  # order owner
REFUND_DESK = "refund_desk"  # refund workflow (customer request, sales decision)


@dataclass(frozen=True)
class Transition:
    source: OrderStatus
    target: OrderStatus
    initiators: frozenset[str]
    releases_stock: bool = False


_S = OrderStatus

TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], Transition] = {
    (t.source, t.target): t
    for t in (
        Transition(_S.PROCESSING, _S.IN_TRANSIT, frozenset({OPERATOR})),
        Transition(_S.PROCESSING, _S.DELIVERED, frozenset({OPERATOR})),
        Transition(_S.IN_TRANSIT, _S.DELIVERED, frozenset({OPERATOR})),
        Transition(_S.PROCESSING, _S.CANCELLED, frozenset({OPERATOR, CUSTOMER}), releases_stock=True),
        Transition(_S.DELIVERED, _S.REFUND_REQUESTED, frozenset({REFUND_DESK})),
        Transition(_S.REFUND_REQUESTED, _S.REFUND_APPROVED, frozenset({REFUND_DESK}), releases_stock=True),
        Transition(_S.REFUND_REQUESTED, _S.REFUND_DENIED, frozenset({REFUND_DESK})),
    )
}

TERMINAL_STATUSES = frozenset({_S.CANCELLED, _S.REFUND_APPROVED, _S.REFUND_DENIED})


def allowed_targets(source: OrderStatus) -> list[OrderStatus]:
    return [target for (src, target) in TRANSITIONS if src == source]


def check_transition(source: OrderStatus, target: OrderStatus, initiator: str) -> Transition:
    """The single guard for every status change. Raises InvalidTransition."""
    transition = TRANSITIONS.get((source, target))
    if transition is None:
        reason = "order is closed" if source in TERMINAL_STATUSES else None
        raise InvalidTransition(source.value, target.value, reason)
    if initiator not in transition.initiators:
        if target in (_S.REFUND_REQUESTED, _S.REFUND_APPROVED, _S.REFUND_DENIED):
            reason = "refund states are driven by the refund workflow"
        else:
            reason = f"not available to {initiator}"
        raise InvalidTransition(source.value, target.value, reason)
    return transition


class OrderStateMachine:

    def __init__(self, database, inventory: InventoryLedger) -> None:
        self.database = database
        self.inventory = inventory

    def lock_order(self, session, order_id: int) -> Order:
        query = session.query(Order).filter_by(id=order_id).populate_existing()
        order = lock_for_update(query).first()
        if order is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
        return order

    def apply(
        self,
        session,
        order: Order,
        target: OrderStatus,
        initiator: str,
        *,
        admin_note: str | None = None,
        notify_note: str | None = None,
    ) -> Order:
        """
        Move a locked order to ``target`` inside the caller's transaction.

        Guard first, then side effects, then the status write; a guard
        failure leaves the order untouched.
        """
        source = order.status
        transition = check_transition(source, target, initiator)

        if transition.releases_stock:
            self.inventory.release_order(order)

        order.status = target
        if target == _S.DELIVERED:
            order.delivered_at = utcnow()
        if admin_note:
            order.admin_note = admin_note

        notify_order_status(session, order, note=notify_note)
        logger.info("Order %s: %s -> %s (%s)", order.id, source.value, target.value, initiator)
        return order

    # --- Operator path ---------------------------------------------------------

    def update_status(
        self,
        order_id: int,
        new_status: OrderStatus | str,
        actor: User,
        admin_note: str | None = None,
    ) -> Order:
        """
        Order-management status change (product managers).

        Refund states are rejected here; they belong to the refund workflow.
        """
        if actor.role != ROLE_PRODUCT_MANAGER:
            raise Forbidden("Only product managers can update order status")

        target = self._parse_status(new_status)

        def _op(session) -> Order:
            order = self.lock_order(session, order_id)
            return self.apply(session, order, target, OPERATOR, admin_note=admin_note)

        return self.database.run(_op)

    # --- Cancellation ----------------------------------------------------------

    def cancel(self, order_id: int, actor: User, reason: str | None = None) -> Order:
        """
        Cancel a processing order and restore its stock.

        Customers may only cancel their own orders; product managers may
        cancel any order.
        """
        initiator = OPERATOR if actor.role == ROLE_PRODUCT_MANAGER else CUSTOMER

        def _op(session) -> Order:
            order = self.lock_order(session, order_id)
            if initiator == CUSTOMER and order.user_id != actor.id:
                raise Forbidden("You can only cancel your own orders", details={"order_id": order_id})
            return self.apply(
                session,
                order,
                _S.CANCELLED,
                initiator,
                notify_note=reason or "Customer requested cancellation",
            )

        return self.database.run(_op)

    @staticmethod
    def _parse_status(value) -> OrderStatus:
        try:
            return OrderStatus.parse(value)
        except ValueError:
            raise ValidationError(
                f"Invalid status value: {value}",
                code="invalid_status",
                details={"allowed": [s.value for s in OrderStatus]},
            ) from None
