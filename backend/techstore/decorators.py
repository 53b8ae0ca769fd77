# Overview: Request actor and role decorators for API routes.

from __future__ import annotations

from functools import wraps

from flask import g, jsonify, request

from .extensions import db
from .models import User


def load_actor() -> User | None:
    """
    Resolve the acting user from the X-User-Id header.

    Sessions and credentials are handled in front of this service; by the
    time a request arrives here the caller's id has already been verified.
    """
    raw = (request.headers.get("X-User-Id") or "").strip()
    if not raw.isdigit():
        return None
    return db.session.get(User, int(raw))


def require_actor(f):
    """
    Require a known acting user.

    Sets g.current_user. Returns 401 when the header is missing, malformed,
    or names no user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = load_actor()
        if user is None:
            return jsonify({
                "error": "Authentication required",
                "code": "unauthenticated",
                "details": {},
            }), 401
        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require g.current_user to hold one of ``roles``. Apply after @require_actor.

    Usage:
        @orders_bp.get("/")
        @require_actor
        @require_role("product_manager", "sales_manager")
        def list_orders_route(): ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({
                    "error": "Authentication required",
                    "code": "unauthenticated",
                    "details": {},
                }), 401
            if user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "code": "forbidden",
                    "details": {"required_roles": list(roles)},
                }), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
