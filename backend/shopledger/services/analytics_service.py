# Overview: Service-layer operations for analytics; read-only reports over the ledger aggregates.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, func

from ..extensions import db
from ..models import Category, Product, Service, SellHistory, SaleKind
from ..validation import ValidationError
from shopledger.time_utils import to_utc_z, utcnow, start_of_day
from .expense_service import expense_totals
from .sell_service import sale_profit_cents


def profit_margin_percent(revenue_cents: int, profit_cents: int) -> float:
    if revenue_cents == 0:
        return 0.0
    return round(profit_cents / revenue_cents * 100, 2)


def summarize_sales(sales: list[SellHistory]) -> dict:
    """Count, units, revenue, profit and average revenue over sell history rows."""
    revenue = sum(s.total_price_cents for s in sales)
    count = len(sales)
    return {
        "sale_count": count,
        "items_sold": sum(s.amount for s in sales),
        "revenue_cents": revenue,
        "profit_cents": sum(sale_profit_cents(s) for s in sales),
        "average_revenue_cents": revenue // count if count else 0,
    }


def _sales_between(
    start: datetime | None,
    end: datetime | None,
    *,
    product_id: int | None = None,
) -> list[SellHistory]:
    query = db.session.query(SellHistory)
    if product_id is not None:
        query = query.filter(SellHistory.product_id == product_id)
    if start is not None:
        query = query.filter(SellHistory.created_at >= start)
    if end is not None:
        query = query.filter(SellHistory.created_at <= end)
    return query.all()


def _recent_summaries(now: datetime, *, product_id: int | None = None) -> tuple[dict, dict]:
    """Sales booked today and over the last seven days."""
    today = start_of_day(now)
    week_ago = today - timedelta(days=7)
    rows = _sales_between(week_ago, None, product_id=product_id)
    return (
        summarize_sales([s for s in rows if s.created_at >= today]),
        summarize_sales(rows),
    )


def _period(start: datetime | None, end: datetime | None, *, product_id: int | None = None) -> dict:
    summary = summarize_sales(_sales_between(start, end, product_id=product_id))
    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        **summary,
        "profit_margin_percent": profit_margin_percent(summary["revenue_cents"], summary["profit_cents"]),
    }


def overview(
    now: datetime | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """
    Shop-wide totals.

    Lifetime figures come from the stored aggregates. When start or end is
    given, a "period" block adds sales and expenses inside that range.
    """
    now = now or utcnow()

    product_totals = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.revenue_cents), 0),
        func.coalesce(func.sum(Product.profit_cents), 0),
        func.coalesce(func.sum(Product.total_sold), 0),
    ).one()
    service_totals = db.session.query(
        func.count(Service.id),
        func.coalesce(func.sum(Service.revenue_cents), 0),
        func.coalesce(func.sum(Service.total_sold), 0),
    ).one()

    product_count, product_revenue, product_profit, product_units = (int(v) for v in product_totals)
    service_count, service_revenue, service_units = (int(v) for v in service_totals)

    total_revenue = product_revenue + service_revenue
    # Services: profit = revenue (no cost)
    total_profit = product_profit + service_revenue
    today, last_7_days = _recent_summaries(now)
    expenses = expense_totals()

    data = {
        "total_categories": db.session.query(func.count(Category.id)).scalar() or 0,
        "total_products": product_count,
        "total_services": service_count,
        "total_revenue_cents": total_revenue,
        "total_profit_cents": total_profit,
        "total_items_sold": product_units + service_units,
        "profit_margin_percent": profit_margin_percent(total_revenue, total_profit),
        "today_profit_cents": today["profit_cents"],
        "weekly_profit_cents": last_7_days["profit_cents"],
        **expenses,
        "net_profit_cents": total_profit - expenses["total_expenses_cents"],
    }
    if start is not None or end is not None:
        period = _period(start, end)
        period_expenses = expense_totals(start, end)
        period.update(period_expenses)
        period["net_profit_cents"] = period["profit_cents"] - period_expenses["total_expenses_cents"]
        data["period"] = period
    return data


def category_analytics() -> list[dict]:
    """Per-category product count, revenue, profit and units sold."""
    rows = (
        db.session.query(
            Product.category_id,
            func.count(Product.id),
            func.coalesce(func.sum(Product.revenue_cents), 0),
            func.coalesce(func.sum(Product.profit_cents), 0),
            func.coalesce(func.sum(Product.total_sold), 0),
        )
        .group_by(Product.category_id)
        .all()
    )
    by_category = {r[0]: r for r in rows}
    categories = db.session.query(Category).order_by(Category.name.asc()).all()

    def _entry(category_id, name):
        r = by_category.get(category_id)
        revenue = int(r[2]) if r else 0
        profit = int(r[3]) if r else 0
        return {
            "category_id": category_id,
            "name": name,
            "product_count": int(r[1]) if r else 0,
            "revenue_cents": revenue,
            "profit_cents": profit,
            "items_sold": int(r[4]) if r else 0,
            "profit_margin_percent": profit_margin_percent(revenue, profit),
        }

    result = [_entry(c.id, c.name) for c in categories]
    if None in by_category:
        result.append(_entry(None, "Uncategorized"))
    return result


def product_analytics(
    product: Product,
    now: datetime | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    now = now or utcnow()
    sale_count = (
        db.session.query(func.count(SellHistory.id))
        .filter(SellHistory.product_id == product.id)
        .scalar()
    ) or 0
    today, last_7_days = _recent_summaries(now, product_id=product.id)
    data = {
        "product_id": product.id,
        "name": product.name,
        "quantity": product.quantity,
        "total_sold": product.total_sold,
        "revenue_cents": product.revenue_cents,
        "profit_cents": product.profit_cents,
        "profit_margin_percent": profit_margin_percent(product.revenue_cents, product.profit_cents),
        "sale_count": sale_count,
        "average_revenue_per_sale_cents": (product.revenue_cents // sale_count) if sale_count else 0,
        "stock_value_cents": product.quantity * product.initial_price_cents,
        "today": today,
        "last_7_days": last_7_days,
    }
    if start is not None or end is not None:
        data["period"] = _period(start, end, product_id=product.id)
    return data


def sales_trend(
    *,
    start: datetime | None,
    end: datetime | None,
    group_by: str = "day",
) -> list[dict]:
    if group_by == "day":
        period_expr = func.strftime("%Y-%m-%d", SellHistory.created_at)
    elif group_by == "week":
        period_expr = func.strftime("%Y-W%W", SellHistory.created_at)
    elif group_by == "month":
        period_expr = func.strftime("%Y-%m", SellHistory.created_at)
    else:
        raise ValidationError("group_by must be day, week, or month")

    # Product rows without a cost snapshot fall back to the current cost
    profit_expr = case(
        (
            SellHistory.kind == SaleKind.PRODUCT.value,
            SellHistory.total_price_cents
            - func.coalesce(SellHistory.initial_price_cents, Product.initial_price_cents, 0) * SellHistory.amount,
        ),
        else_=SellHistory.total_price_cents,
    )

    query = db.session.query(
        period_expr.label("period"),
        func.count(SellHistory.id).label("sale_count"),
        func.coalesce(func.sum(SellHistory.amount), 0).label("items_sold"),
        func.coalesce(func.sum(SellHistory.total_price_cents), 0).label("revenue_cents"),
        func.coalesce(func.sum(profit_expr), 0).label("profit_cents"),
    ).select_from(SellHistory).outerjoin(Product, SellHistory.product_id == Product.id)
    if start is not None:
        query = query.filter(SellHistory.created_at >= start)
    if end is not None:
        query = query.filter(SellHistory.created_at <= end)

    rows = query.group_by(period_expr).order_by(period_expr).all()
    return [
        {
            "period": row.period,
            "sale_count": int(row.sale_count),
            "items_sold": int(row.items_sold),
            "revenue_cents": int(row.revenue_cents),
            "profit_cents": int(row.profit_cents),
        }
        for row in rows
    ]
