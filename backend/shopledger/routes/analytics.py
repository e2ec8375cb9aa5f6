# backend/shopledger/routes/analytics.py
"""Read-only analytics over the ledger aggregates."""
from flask import Blueprint, request

from ..services import analytics_service
from ..validation import LedgerError
from . import error_response, date_range_args

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/overview")
def overview_route():
    """
    Query params:
    - start / end (or startDate / endDate): ISO-8601 (optional); adds a "period" block
    """
    try:
        start, end = date_range_args()
    except LedgerError as e:
        return error_response(e)
    return analytics_service.overview(start=start, end=end)


@analytics_bp.get("/categories")
def category_analytics_route():
    items = analytics_service.category_analytics()
    return {"items": items, "count": len(items)}


@analytics_bp.get("/sales-trend")
def sales_trend_route():
    """
    Query params:
    - start / end (or startDate / endDate): ISO-8601 (optional)
    - group_by: day | week | month (default day)
    """
    try:
        start, end = date_range_args()
        items = analytics_service.sales_trend(
            start=start, end=end, group_by=request.args.get("group_by", "day"),
        )
    except LedgerError as e:
        return error_response(e)
    return {"items": items, "count": len(items)}
