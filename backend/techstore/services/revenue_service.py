# Overview: Read-only revenue reports computed from order line snapshots.

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy import select

from ..errors import ValidationError
from ..models import Order, OrderLine, OrderStatus
from techstore.time_utils import day_bounds

# Orders whose money never stayed with the store
EXCLUDED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUND_APPROVED)


class RevenueAggregator:
    """
    Revenue, cost and profit over order line snapshots.

    Only unit_price_cents and unit_cost_cents recorded at checkout are summed;
    current product prices and costs are never consulted.
    """

    def __init__(self, database):
        self.database = database

    def _line_rows(self, window_start: datetime, window_end: datetime):
        stmt = (
            select(
                Order.id.label("order_id"),
                Order.created_at,
                OrderLine.quantity,
                OrderLine.unit_price_cents,
                OrderLine.unit_cost_cents,
            )
            .join(OrderLine, OrderLine.order_id == Order.id)
            .where(
                Order.status.not_in(EXCLUDED_STATUSES),
                Order.created_at >= window_start,
                Order.created_at < window_end,
            )
            .order_by(Order.created_at, Order.id, OrderLine.id)
        )
        return self.database.session.execute(stmt).all()

    def revenue_for_range(self, start: date, end: date) -> dict:
        """Totals plus a per-day breakdown for the inclusive date range [start, end]."""
        if start > end:
            raise ValidationError(
                "start must be on or before end",
                code="invalid_range",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )
        if end >= date.max:
            raise ValidationError(
                "end must be before the last representable day",
                code="invalid_range",
                details={"end": end.isoformat()},
            )

        window_start, window_end = day_bounds(start, end)

        days: dict[date, dict] = {}
        day_orders: dict[date, set] = defaultdict(set)
        for row in self._line_rows(window_start, window_end):
            day = row.created_at.date()
            bucket = days.setdefault(day, {"revenue_cents": 0, "cost_cents": 0})
            bucket["revenue_cents"] += row.unit_price_cents * row.quantity
            bucket["cost_cents"] += row.unit_cost_cents * row.quantity
            day_orders[day].add(row.order_id)

        daily_breakdown = []
        for day in sorted(days):
            bucket = days[day]
            daily_breakdown.append(
                {
                    "date": day.isoformat(),
                    "revenue_cents": bucket["revenue_cents"],
                    "cost_cents": bucket["cost_cents"],
                    "profit_cents": bucket["revenue_cents"] - bucket["cost_cents"],
                    "order_count": len(day_orders[day]),
                }
            )

        total_revenue = sum(row["revenue_cents"] for row in daily_breakdown)
        total_cost = sum(row["cost_cents"] for row in daily_breakdown)
        return {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "total_revenue_cents": total_revenue,
            "total_cost_cents": total_cost,
            "total_profit_cents": total_revenue - total_cost,
            "order_count": sum(row["order_count"] for row in daily_breakdown),
            "daily_breakdown": daily_breakdown,
        }

    def monthly_summary(self, year: int) -> list[dict]:
        """Twelve rows, January first; months without orders are zero-filled."""
        if not 1 <= year < date.max.year:
            raise ValidationError("year is out of range", code="invalid_year", details={"year": year})

        window_start, window_end = day_bounds(date(year, 1, 1), date(year, 12, 31))

        months = {
            month: {
                "month": month,
                "month_name": calendar.month_name[month],
                "revenue_cents": 0,
                "order_count": 0,
                "items_sold": 0,
            }
            for month in range(1, 13)
        }
        seen_orders: set[int] = set()
        for row in self._line_rows(window_start, window_end):
            summary = months[row.created_at.month]
            summary["revenue_cents"] += row.unit_price_cents * row.quantity
            summary["items_sold"] += row.quantity
            if row.order_id not in seen_orders:
                seen_orders.add(row.order_id)
                summary["order_count"] += 1

        return [months[month] for month in range(1, 13)]
