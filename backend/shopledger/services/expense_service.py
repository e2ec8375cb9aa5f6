# Overview: Service-layer operations for expenses; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import DailyExpense, SupplyExpense
from ..validation import NotFoundError
from shopledger.time_utils import utcnow

DAILY_MUTABLE_FIELDS = {"description", "amount_cents", "category", "notes", "expense_date"}
SUPPLY_MUTABLE_FIELDS = {"description", "amount_cents", "supplier", "quantity", "unit_price_cents", "notes"}

# Suggested values for DailyExpense.category; any text is accepted
EXPENSE_CATEGORIES = ("Utilities", "Rent", "Transportation", "Office Supplies", "Maintenance", "Other")


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k in allowed:
            setattr(obj, k, v)


def list_daily_expenses(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    category: str | None = None,
) -> list[DailyExpense]:
    query = db.session.query(DailyExpense)
    if category:
        query = query.filter(DailyExpense.category == category)
    if start is not None:
        query = query.filter(DailyExpense.expense_date >= start)
    if end is not None:
        query = query.filter(DailyExpense.expense_date <= end)
    return query.order_by(DailyExpense.expense_date.desc(), DailyExpense.id.desc()).all()


def get_daily_expense(expense_id: int) -> DailyExpense:
    expense = db.session.query(DailyExpense).filter_by(id=expense_id).first()
    if not expense:
        raise NotFoundError("Daily expense not found")
    return expense


def create_daily_expense(*, patch: dict) -> DailyExpense:
    expense = DailyExpense()
    _apply_patch(expense, patch, DAILY_MUTABLE_FIELDS)
    if expense.expense_date is None:
        expense.expense_date = utcnow()
    db.session.add(expense)
    db.session.commit()
    return expense


def update_daily_expense(expense_id: int, *, patch: dict) -> DailyExpense:
    expense = get_daily_expense(expense_id)
    _apply_patch(expense, patch, DAILY_MUTABLE_FIELDS)
    db.session.commit()
    return expense


def delete_daily_expense(expense_id: int) -> None:
    expense = get_daily_expense(expense_id)
    db.session.delete(expense)
    db.session.commit()


def list_supply_expenses(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SupplyExpense]:
    query = db.session.query(SupplyExpense)
    if start is not None:
        query = query.filter(SupplyExpense.created_at >= start)
    if end is not None:
        query = query.filter(SupplyExpense.created_at <= end)
    return query.order_by(SupplyExpense.created_at.desc(), SupplyExpense.id.desc()).all()


def get_supply_expense(expense_id: int) -> SupplyExpense:
    expense = db.session.query(SupplyExpense).filter_by(id=expense_id).first()
    if not expense:
        raise NotFoundError("Supply expense not found")
    return expense


def create_supply_expense(*, patch: dict) -> SupplyExpense:
    expense = SupplyExpense()
    _apply_patch(expense, patch, SUPPLY_MUTABLE_FIELDS)
    db.session.add(expense)
    db.session.commit()
    return expense


def update_supply_expense(expense_id: int, *, patch: dict) -> SupplyExpense:
    expense = get_supply_expense(expense_id)
    _apply_patch(expense, patch, SUPPLY_MUTABLE_FIELDS)
    db.session.commit()
    return expense


def delete_supply_expense(expense_id: int) -> None:
    expense = get_supply_expense(expense_id)
    db.session.delete(expense)
    db.session.commit()


def expense_totals(start: datetime | None = None, end: datetime | None = None) -> dict:
    """Summed daily and supply expenses over an optional range."""
    daily = db.session.query(func.coalesce(func.sum(DailyExpense.amount_cents), 0))
    supply = db.session.query(func.coalesce(func.sum(SupplyExpense.amount_cents), 0))
    if start is not None:
        daily = daily.filter(DailyExpense.expense_date >= start)
        supply = supply.filter(SupplyExpense.created_at >= start)
    if end is not None:
        daily = daily.filter(DailyExpense.expense_date <= end)
        supply = supply.filter(SupplyExpense.created_at <= end)
    daily_cents = int(daily.scalar() or 0)
    supply_cents = int(supply.scalar() or 0)
    return {
        "daily_expenses_cents": daily_cents,
        "supply_expenses_cents": supply_cents,
        "total_expenses_cents": daily_cents + supply_cents,
    }
