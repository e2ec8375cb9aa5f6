# backend/shopledger/routes/expenses.py
"""Daily and supply expense routes."""
from flask import Blueprint, request

from ..models import DailyExpense, SupplyExpense
from ..services import expense_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_expense,
    LedgerError,
)
from . import error_response, date_range_args

DAILY_EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "amount_cents", "category", "notes", "expense_date"},
    required_on_create={"description", "amount_cents"},
)

SUPPLY_EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "amount_cents", "supplier", "quantity", "unit_price_cents", "notes"},
    required_on_create={"description", "amount_cents"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


# Daily expenses

@expenses_bp.get("/daily")
def list_daily_expenses_route():
    try:
        start, end = date_range_args()
    except LedgerError as e:
        return error_response(e)
    expenses = expense_service.list_daily_expenses(
        start=start, end=end, category=request.args.get("category"),
    )
    return {
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }


@expenses_bp.get("/daily/categories")
def daily_expense_categories_route():
    return {"items": list(expense_service.EXPENSE_CATEGORIES)}


@expenses_bp.get("/daily/<int:expense_id>")
def get_daily_expense_route(expense_id: int):
    try:
        return expense_service.get_daily_expense(expense_id).to_dict()
    except LedgerError as e:
        return error_response(e)


@expenses_bp.post("/daily")
def create_daily_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=DailyExpense, payload=payload, policy=DAILY_EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
        expense = expense_service.create_daily_expense(patch=patch)
    except LedgerError as e:
        return error_response(e)
    return expense.to_dict(), 201


@expenses_bp.put("/daily/<int:expense_id>")
def update_daily_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=DailyExpense, payload=payload, policy=DAILY_EXPENSE_POLICY, partial=True)
        enforce_rules_expense(patch)
        expense = expense_service.update_daily_expense(expense_id, patch=patch)
    except LedgerError as e:
        return error_response(e)
    return expense.to_dict()


@expenses_bp.delete("/daily/<int:expense_id>")
def delete_daily_expense_route(expense_id: int):
    try:
        expense_service.delete_daily_expense(expense_id)
    except LedgerError as e:
        return error_response(e)
    return {"deleted": True}


# Supply expenses

@expenses_bp.get("/supply")
def list_supply_expenses_route():
    try:
        start, end = date_range_args()
    except LedgerError as e:
        return error_response(e)
    expenses = expense_service.list_supply_expenses(start=start, end=end)
    return {
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }


@expenses_bp.get("/supply/<int:expense_id>")
def get_supply_expense_route(expense_id: int):
    try:
        return expense_service.get_supply_expense(expense_id).to_dict()
    except LedgerError as e:
        return error_response(e)


@expenses_bp.post("/supply")
def create_supply_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=SupplyExpense, payload=payload, policy=SUPPLY_EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
        expense = expense_service.create_supply_expense(patch=patch)
    except LedgerError as e:
        return error_response(e)
    return expense.to_dict(), 201


@expenses_bp.put("/supply/<int:expense_id>")
def update_supply_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=SupplyExpense, payload=payload, policy=SUPPLY_EXPENSE_POLICY, partial=True)
        enforce_rules_expense(patch)
        expense = expense_service.update_supply_expense(expense_id, patch=patch)
    except LedgerError as e:
        return error_response(e)
    return expense.to_dict()


@expenses_bp.delete("/supply/<int:expense_id>")
def delete_supply_expense_route(expense_id: int):
    try:
        expense_service.delete_supply_expense(expense_id)
    except LedgerError as e:
        return error_response(e)
    return {"deleted": True}


@expenses_bp.get("/summary")
def expense_summary_route():
    try:
        start, end = date_range_args()
    except LedgerError as e:
        return error_response(e)
    return expense_service.expense_totals(start, end)
