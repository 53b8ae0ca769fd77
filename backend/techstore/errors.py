"""
Commerce error taxonomy.

Every service failure is one of these. Each carries a machine-readable
``code`` and a ``details`` dict so the HTTP layer can hand the caller a
structured result instead of a partial success.
"""

from __future__ import annotations


class CommerceError(Exception):
    """Base class for all commerce engine errors."""

    code = "commerce_error"
    http_status = 400

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(CommerceError):
    """Malformed input, rejected before any mutation."""

    code = "validation_error"
    http_status = 400


class Forbidden(CommerceError):
    """Actor is not allowed to perform this operation on this resource."""

    code = "forbidden"
    http_status = 403


class NotFound(CommerceError):
    """Unknown order, refund, product or user id."""

    code = "not_found"
    http_status = 404


class ConflictError(CommerceError):
    """Business rule conflict (e.g. an open refund request already exists)."""

    code = "conflict"
    http_status = 409


class InsufficientStock(CommerceError):
    """A reservation asked for more units than a product has in stock."""

    code = "insufficient_stock"
    http_status = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidTransition(CommerceError):
    """An order status change that the transition table does not allow."""

    code = "invalid_transition"
    http_status = 409

    def __init__(self, current: str, target: str, reason: str | None = None):
        message = f"Cannot move order from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"current": current, "target": target})
        self.current = current
        self.target = target
