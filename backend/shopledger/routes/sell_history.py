# backend/shopledger/routes/sell_history.py
"""
Sell history routes: bulk selling, amendment, deletion and reads.

Amend and delete keep product/service aggregates and transaction totals in
step with the edited row; see services/sell_service.py.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import analytics_service, sell_service
from ..validation import LedgerError
from . import error_response, date_range_args, json_object

sell_history_bp = Blueprint("sell_history", __name__, url_prefix="/api/sell-history")
sell_bp = Blueprint("sell", __name__, url_prefix="/api/sell")
transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@sell_history_bp.get("")
def list_sell_history_route():
    """
    Query params:
    - product_id / service_id: int (optional)
    - start / end (or startDate / endDate): ISO-8601 (optional)
    - limit: int (optional)
    """
    try:
        start, end = date_range_args()
    except LedgerError as e:
        return error_response(e)

    sales = sell_service.list_sales(
        product_id=request.args.get("product_id", type=int),
        service_id=request.args.get("service_id", type=int),
        start=start,
        end=end,
        limit=request.args.get("limit", type=int),
    )
    return {
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
        "summary": analytics_service.summarize_sales(sales),
    }


@sell_history_bp.get("/<int:sale_id>")
def get_sell_history_route(sale_id: int):
    try:
        sale = sell_service.get_sale(sale_id)
    except LedgerError as e:
        return error_response(e)
    return sale.to_dict()


@sell_history_bp.put("/<int:sale_id>")
def amend_sell_history_route(sale_id: int):
    """Body: {amount?, sold_price_cents?, created_at?}"""
    payload = request.get_json(silent=True) or {}
    try:
        sale = sell_service.amend_sale(sale_id, payload)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to amend sell history")
        return jsonify({"error": "Internal server error"}), 500
    return sale.to_dict()


@sell_history_bp.delete("/<int:sale_id>")
def delete_sell_history_route(sale_id: int):
    try:
        sell_service.delete_sale(sale_id)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sell history")
        return jsonify({"error": "Internal server error"}), 500
    return {"deleted": True}


@sell_bp.post("/bulk")
def bulk_sell_route():
    """
    Body: {items: [{product_id | service_id, amount, sold_price_cents}, ...]}

    All items are recorded under one transaction, or none are.
    """
    try:
        data = json_object()
        transaction = sell_service.bulk_sell(data.get("items"))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record bulk sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"transaction": transaction.to_dict(include_sales=True)}), 201


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        transaction = sell_service.get_transaction(transaction_id)
    except LedgerError as e:
        return error_response(e)
    return transaction.to_dict(include_sales=True)
