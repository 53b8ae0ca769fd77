"""
Refund workflow, layered on the order state machine.

LIFECYCLE:
1. Customer requests refund on a delivered order (RefundRequest: requested,
   order: refund-requested)
2. Sales manager approves (stock restored, order: refund-approved) or
   denies (order: refund-denied)

RULES:
- reason is required
- only the order's owner may request, and only while the order is delivered
- at most one open (requested) refund per order
- requests must arrive within the refund window after delivery
- the refund row and the order move together in one transaction
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select

from ..errors import ConflictError, Forbidden, NotFound, ValidationError
from ..models import OrderStatus, RefundRequest, RefundStatus, User
from ..models.users import ROLE_SALES_MANAGER
from techstore.time_utils import utcnow
from .concurrency import lock_for_update
from .order_lifecycle import REFUND_DESK, OrderStateMachine, check_transition

logger = logging.getLogger(__name__)

DECISION_APPROVE = "approve"
DECISION_DENY = "deny"

_DECISIONS = {
    DECISION_APPROVE: (RefundStatus.APPROVED, OrderStatus.REFUND_APPROVED),
    DECISION_DENY: (RefundStatus.DENIED, OrderStatus.REFUND_DENIED),
}


class RefundWorkflow:

    def __init__(self, database, state_machine: OrderStateMachine, refund_window_days: int = 30) -> None:
        self.database = database
        self.state_machine = state_machine
        self.refund_window = timedelta(days=refund_window_days)

    def request_refund(self, order_id: int, user_id: int, reason: str) -> RefundRequest:
        """
        Open a refund request on a delivered order.

        Raises:
            ValidationError: empty reason, refund window expired
            NotFound: unknown order
            Forbidden: order belongs to someone else
            InvalidTransition: order is not delivered
            ConflictError: an open request already exists
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to request a refund", code="reason_required")

        def _op(session) -> RefundRequest:
            order = self.state_machine.lock_order(session, order_id)
            if order.user_id != user_id:
                raise Forbidden("Order does not belong to you", details={"order_id": order_id})

            if self._open_request(session, order_id) is not None:
                raise ConflictError(
                    f"A refund request is already open for order {order_id}",
                    code="refund_already_requested",
                    details={"order_id": order_id},
                )

            check_transition(order.status, OrderStatus.REFUND_REQUESTED, REFUND_DESK)

            if order.delivered_at and utcnow() - order.delivered_at > self.refund_window:
                raise ValidationError(
                    f"Refunds must be requested within {self.refund_window.days} days of delivery",
                    code="refund_window_expired",
                    details={"order_id": order_id},
                )

            refund = RefundRequest(
                order_id=order.id,
                user_id=user_id,
                reason=reason,
                status=RefundStatus.REQUESTED,
                requested_at=utcnow(),
            )
            session.add(refund)
            self.state_machine.apply(session, order, OrderStatus.REFUND_REQUESTED, REFUND_DESK, notify_note=reason)
            session.flush()
            return refund

        refund = self.database.run(_op)
        logger.info("Refund %s requested for order %s", refund.id, order_id)
        return refund

    def resolve_refund(
        self,
        refund_id: int,
        decision: str,
        actor: User,
        admin_note: str | None = None,
    ) -> RefundRequest:
        """
        Approve or deny an open refund request (sales managers).

        Approval restores stock for every line of the order.
        """
        if actor.role != ROLE_SALES_MANAGER:
            raise Forbidden("Only sales managers can resolve refunds")

        decision = (decision or "").strip().lower()
        if decision not in _DECISIONS:
            raise ValidationError(
                f"Unknown refund decision: {decision}",
                code="invalid_decision",
                details={"allowed": sorted(_DECISIONS)},
            )
        refund_status, order_status = _DECISIONS[decision]

        def _op(session) -> RefundRequest:
            query = session.query(RefundRequest).filter_by(id=refund_id).populate_existing()
            refund = lock_for_update(query).first()
            if refund is None:
                raise NotFound(f"Refund request {refund_id} not found", details={"refund_id": refund_id})

            if refund.status != RefundStatus.REQUESTED:
                raise ConflictError(
                    f"Refund request {refund_id} is already {refund.status.value}",
                    code="refund_already_resolved",
                    details={"refund_id": refund_id, "status": refund.status.value},
                )

            order = self.state_machine.lock_order(session, refund.order_id)
            self.state_machine.apply(
                session,
                order,
                order_status,
                REFUND_DESK,
                admin_note=admin_note,
                notify_note=admin_note,
            )

            refund.status = refund_status
            refund.admin_note = admin_note
            refund.resolved_at = utcnow()
            refund.resolved_by_user_id = actor.id
            return refund

        refund = self.database.run(_op)
        logger.info("Refund %s %s by user %s", refund_id, refund_status.value, actor.id)
        return refund

    # --- Queries ---------------------------------------------------------------

    @staticmethod
    def _open_request(session, order_id: int) -> RefundRequest | None:
        stmt = select(RefundRequest).where(
            RefundRequest.order_id == order_id,
            RefundRequest.status == RefundStatus.REQUESTED,
        )
        return session.execute(stmt).scalars().first()

    def get_refund_for_order(self, order_id: int) -> RefundRequest:
        """Most recent refund request for an order."""
        stmt = (
            select(RefundRequest)
            .where(RefundRequest.order_id == order_id)
            .order_by(RefundRequest.requested_at.desc(), RefundRequest.id.desc())
            .limit(1)
        )
        refund = self.database.session.execute(stmt).scalars().first()
        if refund is None:
            raise NotFound(f"No refund request found for order {order_id}", details={"order_id": order_id})
        return refund

    def list_refunds(self, status: RefundStatus | str | None = None) -> list[RefundRequest]:
        stmt = select(RefundRequest).order_by(RefundRequest.requested_at.desc(), RefundRequest.id.desc())
        if status is not None:
            try:
                status = RefundStatus(str(status).strip().lower())
            except ValueError:
                raise ValidationError(f"Unknown refund status: {status}", code="invalid_status") from None
            stmt = stmt.where(RefundRequest.status == status)
        return list(self.database.session.execute(stmt).scalars())
