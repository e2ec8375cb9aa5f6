# backend/shopledger/routes/debits.py
"""Debit (customer credit) routes."""
from flask import Blueprint, request, jsonify, current_app

from ..services import debit_service
from ..validation import LedgerError, ValidationError
from . import error_response, date_range_args, json_object

debits_bp = Blueprint("debits", __name__, url_prefix="/api/debits")


@debits_bp.get("")
def list_debits_route():
    """
    Query params:
    - status: PENDING | PARTIAL | PAID (optional)
    - start / end (or startDate / endDate): created_at range (optional)
    """
    try:
        start, end = date_range_args()
        debits = debit_service.list_debits(status=request.args.get("status"), start=start, end=end)
    except LedgerError as e:
        return error_response(e)
    return {"items": [d.to_dict() for d in debits], "count": len(debits)}


@debits_bp.get("/<int:debit_id>")
def get_debit_route(debit_id: int):
    try:
        debit = debit_service.get_debit(debit_id)
    except LedgerError as e:
        return error_response(e)
    return debit.to_dict()


@debits_bp.post("")
def create_debit_route():
    """Body: {customer_name?, notes?, items: [{sell_history_id, amount_cents}, ...]}"""
    payload = request.get_json(silent=True)
    try:
        debit = debit_service.create_debit(payload)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create debit")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"debit": debit.to_dict()}), 201


@debits_bp.put("/<int:debit_id>")
def update_debit_route(debit_id: int):
    """Body: {customer_name?, notes?, paid_amount_cents?}"""
    payload = request.get_json(silent=True) or {}
    try:
        debit = debit_service.update_debit(debit_id, payload)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update debit")
        return jsonify({"error": "Internal server error"}), 500
    return {"debit": debit.to_dict()}


@debits_bp.post("/<int:debit_id>/pay")
def pay_debit_route(debit_id: int):
    """Body: {amount_cents}. Adds to what has been paid so far."""
    try:
        data = json_object()
        debit = debit_service.record_payment(debit_id, data.get("amount_cents"))
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record debit payment")
        return jsonify({"error": "Internal server error"}), 500
    return {"debit": debit.to_dict()}


@debits_bp.post("/remove-item")
def remove_debit_item_route():
    """
    Body: {sell_history_id}

    Returns the updated debit, or debit=null with deleted=true when the
    removed item was its last one.
    """
    try:
        sell_history_id = json_object().get("sell_history_id")
        if isinstance(sell_history_id, bool) or not isinstance(sell_history_id, int):
            raise ValidationError("sell_history_id must be an integer")
        debit = debit_service.remove_item(sell_history_id)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove debit item")
        return jsonify({"error": "Internal server error"}), 500

    if debit is None:
        return {"debit": None, "deleted": True}
    return {"debit": debit.to_dict(), "deleted": False}


@debits_bp.delete("/<int:debit_id>")
def delete_debit_route(debit_id: int):
    try:
        debit_service.delete_debit(debit_id)
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete debit")
        return jsonify({"error": "Internal server error"}), 500
    return {"deleted": True}
