# Overview: Flask API route for effective price quotes.

from flask import Blueprint, current_app, jsonify, request

from ..commerce import get_services
from ..errors import CommerceError
from techstore.time_utils import parse_iso_datetime, to_utc_z, utcnow

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.get("/products/<int:product_id>")
def price_quote_route(product_id: int):
    """
    Effective unit price of a product, discount applied.

    Query params:
        at: optional ISO-8601 instant (defaults to now)
    """
    try:
        at = parse_iso_datetime(request.args.get("at")) or utcnow()
        quote = get_services().pricing.quote(product_id, at)
        return jsonify({"quote": quote.to_dict(), "at": to_utc_z(at)}), 200
    except ValueError:
        return jsonify({"error": "at must be an ISO-8601 datetime", "code": "invalid_date", "details": {}}), 400
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to quote price")
        return jsonify({"error": "Internal server error"}), 500
