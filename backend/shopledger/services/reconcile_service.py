"""
Ledger reconciliation.

Recomputes every stored aggregate from the rows it summarizes and reports
the differences. Read-only: nothing is corrected here.

Product quantity cannot be recomputed (opening stock is not stored), so it
is only checked for being non-negative.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, asdict

from ..extensions import db
from ..models import Debit, Product, Service, SellHistory, Transaction
from .debit_service import derive_status
from .sell_service import sale_profit_cents


@dataclass(frozen=True)
class Drift:
    entity: str
    entity_id: int
    field: str
    stored: object
    expected: object

    def to_dict(self) -> dict:
        return asdict(self)


def _compare(drifts: list[Drift], entity: str, entity_id: int, field: str, stored, expected) -> None:
    if stored != expected:
        drifts.append(Drift(entity, entity_id, field, stored, expected))


def check_ledger() -> list[Drift]:
    drifts: list[Drift] = []
    sales = db.session.query(SellHistory).all()

    per_product: dict[int, list[SellHistory]] = defaultdict(list)
    per_service: dict[int, list[SellHistory]] = defaultdict(list)
    per_transaction: dict[int, list[SellHistory]] = defaultdict(list)
    for sale in sales:
        if sale.product_id is not None:
            per_product[sale.product_id].append(sale)
        if sale.service_id is not None:
            per_service[sale.service_id].append(sale)
        if sale.transaction_id is not None:
            per_transaction[sale.transaction_id].append(sale)
        if sale.total_price_cents != sale.amount * sale.sold_price_cents:
            drifts.append(Drift(
                "sell_history", sale.id, "total_price_cents",
                sale.total_price_cents, sale.amount * sale.sold_price_cents,
            ))

    for product in db.session.query(Product).order_by(Product.id).all():
        rows = per_product.get(product.id, [])
        _compare(drifts, "product", product.id, "total_sold", product.total_sold, sum(r.amount for r in rows))
        _compare(drifts, "product", product.id, "revenue_cents", product.revenue_cents,
                 sum(r.total_price_cents for r in rows))
        _compare(drifts, "product", product.id, "profit_cents", product.profit_cents,
                 sum(sale_profit_cents(r) for r in rows))
        if product.quantity < 0:
            drifts.append(Drift("product", product.id, "quantity", product.quantity, ">= 0"))

    for service in db.session.query(Service).order_by(Service.id).all():
        rows = per_service.get(service.id, [])
        _compare(drifts, "service", service.id, "total_sold", service.total_sold, sum(r.amount for r in rows))
        _compare(drifts, "service", service.id, "revenue_cents", service.revenue_cents,
                 sum(r.total_price_cents for r in rows))

    for transaction in db.session.query(Transaction).order_by(Transaction.id).all():
        rows = per_transaction.get(transaction.id, [])
        if not rows:
            drifts.append(Drift("transaction", transaction.id, "sell_history", 0, ">= 1"))
            continue
        _compare(drifts, "transaction", transaction.id, "total_revenue_cents", transaction.total_revenue_cents,
                 sum(r.total_price_cents for r in rows))
        _compare(drifts, "transaction", transaction.id, "total_profit_cents", transaction.total_profit_cents,
                 sum(sale_profit_cents(r) for r in rows))

    for debit in db.session.query(Debit).order_by(Debit.id).all():
        items = list(debit.items)
        if not items:
            drifts.append(Drift("debit", debit.id, "items", 0, ">= 1"))
            continue
        _compare(drifts, "debit", debit.id, "total_amount_cents", debit.total_amount_cents,
                 sum(i.amount_cents for i in items))
        expected_status, _ = derive_status(debit.paid_amount_cents, debit.total_amount_cents, debit.paid_at)
        _compare(drifts, "debit", debit.id, "status", debit.status, expected_status.value)
        for item in items:
            if item.amount_cents > item.sell_history.total_price_cents:
                drifts.append(Drift(
                    "debit_item", item.id, "amount_cents",
                    item.amount_cents, f"<= {item.sell_history.total_price_cents}",
                ))

    return drifts
