# Overview: Flask API routes for revenue reports; sales managers only.

from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ..commerce import get_services
from ..decorators import require_actor, require_role
from ..errors import CommerceError, ValidationError
from ..models.users import ROLE_SALES_MANAGER
from techstore.time_utils import parse_iso_date

revenue_bp = Blueprint("revenue", __name__, url_prefix="/api/revenue")


def _date_arg(name: str) -> date:
    raw = request.args.get(name)
    try:
        value = parse_iso_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)", code="invalid_date", details={name: raw})
    return value


@revenue_bp.get("/range")
@require_actor
@require_role(ROLE_SALES_MANAGER)
def revenue_range_route():
    """
    Revenue, cost and profit for an inclusive date range.

    Query params:
        start: YYYY-MM-DD
        end: YYYY-MM-DD (whole day included)
    """
    try:
        report = get_services().revenue.revenue_for_range(_date_arg("start"), _date_arg("end"))
        return jsonify(report), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build revenue report")
        return jsonify({"error": "Internal server error"}), 500


@revenue_bp.get("/monthly")
@require_actor
@require_role(ROLE_SALES_MANAGER)
def monthly_summary_route():
    try:
        year = request.args.get("year", type=int)
        if year is None:
            raise ValidationError("year must be an integer", code="invalid_year")
        return jsonify({"year": year, "months": get_services().revenue.monthly_summary(year)}), 200
    except CommerceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build monthly summary")
        return jsonify({"error": "Internal server error"}), 500
