"""
Sell Service - the sales side of the ledger.

Every function here that writes keeps Product, Service and Transaction
aggregates equal to the sums over their live SellHistory rows:

    product.revenue_cents = sum(total_price_cents)
    product.profit_cents  = sum(total_price_cents - initial_price_cents * amount)
    service.revenue_cents = sum(total_price_cents)
    transaction totals    = resum over member rows

All writes go through run_in_transaction so a failure never leaves a
partial update behind.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from flask import current_app
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Product, Service, SellHistory, SaleKind, Transaction
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_sale_item,
    enforce_rules_sale_amendment,
    check_sale_total,
    ValidationError,
    InsufficientStockError,
    NotFoundError,
    ConflictError,
)
from .unit_of_work import lock_for_update, run_in_transaction


SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "service_id", "amount", "sold_price_cents"},
    required_on_create={"amount", "sold_price_cents"},
)

SALE_AMEND_POLICY = ModelValidationPolicy(
    writable_fields={"amount", "sold_price_cents", "created_at"},
)


# ---------------------------------------------------------------------------
# Ledger arithmetic
# ---------------------------------------------------------------------------

def unit_cost_cents(sale: SellHistory) -> int:
    """
    Cost basis of one unit of a product sale.

    Uses the snapshot taken at sale time, falling back to the product's
    current cost for rows recorded without one.
    """
    if sale.initial_price_cents is not None:
        return sale.initial_price_cents
    if sale.product is not None:
        return sale.product.initial_price_cents
    return 0


def sale_profit_cents(sale: SellHistory) -> int:
    kind = sale.sale_kind
    if kind is SaleKind.PRODUCT:
        return sale.total_price_cents - unit_cost_cents(sale) * sale.amount
    if kind is SaleKind.SERVICE:
        # Services have no cost
        return sale.total_price_cents
    raise ValueError(f"Unknown sale kind: {kind}")


def resum_transaction(transaction: Transaction, rows: list[SellHistory]) -> None:
    """Recompute batch totals from its member rows instead of applying deltas."""
    transaction.total_revenue_cents = sum(r.total_price_cents for r in rows)
    transaction.total_profit_cents = sum(sale_profit_cents(r) for r in rows)


def _apply_sale_delta(
    sale: SellHistory,
    *,
    amount_delta: int,
    revenue_delta: int,
    profit_delta: int,
) -> None:
    """Add a sale's contribution change to its product or service aggregates."""
    kind = sale.sale_kind
    if kind is SaleKind.PRODUCT:
        product = sale.product
        product.quantity -= amount_delta
        product.total_sold += amount_delta
        product.revenue_cents += revenue_delta
        product.profit_cents += profit_delta
    elif kind is SaleKind.SERVICE:
        service = sale.service
        service.total_sold += amount_delta
        service.revenue_cents += revenue_delta
    else:
        raise ValueError(f"Unknown sale kind: {kind}")


# ---------------------------------------------------------------------------
# Sale creation
# ---------------------------------------------------------------------------

def normalize_sale_item(raw: dict) -> dict:
    """Validate one {product_id | service_id, amount, sold_price_cents} item."""
    patch = validate_payload(model=SellHistory, payload=raw, policy=SALE_ITEM_POLICY, partial=False)
    enforce_rules_sale_item(patch)
    return patch


def _load_targets(session: Session, items: list[dict]) -> tuple[dict[int, Product], dict[int, Service]]:
    product_ids = {i["product_id"] for i in items if i.get("product_id") is not None}
    service_ids = {i["service_id"] for i in items if i.get("service_id") is not None}

    products: dict[int, Product] = {}
    if product_ids:
        rows = lock_for_update(session.query(Product).filter(Product.id.in_(product_ids))).all()
        products = {p.id: p for p in rows}
    services: dict[int, Service] = {}
    if service_ids:
        rows = lock_for_update(session.query(Service).filter(Service.id.in_(service_ids))).all()
        services = {s.id: s for s in rows}

    missing_products = sorted(product_ids - products.keys())
    if missing_products:
        raise NotFoundError(
            f"Product {missing_products[0]} not found",
            details={"product_ids": missing_products},
        )
    missing_services = sorted(service_ids - services.keys())
    if missing_services:
        raise NotFoundError(
            f"Service {missing_services[0]} not found",
            details={"service_ids": missing_services},
        )
    return products, services


def _check_stock(items: list[dict], products: dict[int, Product]) -> None:
    # Sum per product so a batch listing one product twice cannot oversell it
    requested: dict[int, int] = defaultdict(int)
    for item in items:
        if item.get("product_id") is not None:
            requested[item["product_id"]] += item["amount"]

    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.quantity < qty:
            insufficient.append({
                "product_id": product_id,
                "name": product.name,
                "requested_quantity": qty,
                "available": product.quantity,
            })

    if insufficient:
        first = insufficient[0]
        raise InsufficientStockError(
            f'Insufficient quantity for product "{first["name"]}". '
            f'Available: {first["available"]}, Requested: {first["requested_quantity"]}',
            details={"items": insufficient},
        )


def _record_sales(
    session: Session,
    items: list[dict],
    *,
    batch: bool,
    created_at: datetime | None = None,
) -> tuple[Transaction | None, list[SellHistory]]:
    products, services = _load_targets(session, items)
    _check_stock(items, products)

    transaction = Transaction() if batch else None
    if transaction is not None:
        session.add(transaction)

    created: list[SellHistory] = []
    for item in items:
        amount = item["amount"]
        sold_price = item["sold_price_cents"]
        total = check_sale_total(amount, sold_price)

        if item.get("product_id") is not None:
            product = products[item["product_id"]]
            sale = SellHistory(
                kind=SaleKind.PRODUCT.value,
                product=product,
                amount=amount,
                sold_price_cents=sold_price,
                total_price_cents=total,
                initial_price_cents=product.initial_price_cents,
            )
        else:
            sale = SellHistory(
                kind=SaleKind.SERVICE.value,
                service=services[item["service_id"]],
                amount=amount,
                sold_price_cents=sold_price,
                total_price_cents=total,
                initial_price_cents=None,
            )
        if created_at is not None:
            sale.created_at = created_at
        if transaction is not None:
            sale.transaction = transaction

        _apply_sale_delta(
            sale,
            amount_delta=amount,
            revenue_delta=total,
            profit_delta=sale_profit_cents(sale),
        )
        session.add(sale)
        created.append(sale)

    if transaction is not None:
        resum_transaction(transaction, created)

    session.flush()
    return transaction, created


def sell_product(
    product_id: int,
    *,
    amount,
    sold_price_cents,
    created_at: datetime | str | None = None,
) -> SellHistory:
    """Record a single product sale (no Transaction)."""
    item = normalize_sale_item({
        "product_id": product_id,
        "amount": amount,
        "sold_price_cents": sold_price_cents,
    })
    when = _coerce_created_at(created_at)

    def _op(session: Session) -> SellHistory:
        _, created = _record_sales(session, [item], batch=False, created_at=when)
        return created[0]

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded sale %s: product=%s amount=%s total_cents=%s",
        sale.id, product_id, sale.amount, sale.total_price_cents,
    )
    return sale


def sell_service(
    service_id: int,
    *,
    amount,
    sold_price_cents,
    created_at: datetime | str | None = None,
) -> SellHistory:
    """Record a single service sale (no Transaction)."""
    item = normalize_sale_item({
        "service_id": service_id,
        "amount": amount,
        "sold_price_cents": sold_price_cents,
    })
    when = _coerce_created_at(created_at)

    def _op(session: Session) -> SellHistory:
        _, created = _record_sales(session, [item], batch=False, created_at=when)
        return created[0]

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded sale %s: service=%s amount=%s total_cents=%s",
        sale.id, service_id, sale.amount, sale.total_price_cents,
    )
    return sale


def bulk_sell(items: list[dict]) -> Transaction:
    """
    Record a batch of sales as one Transaction.

    Stock is checked for every item before anything is written; one short
    item rejects the whole batch.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")
    max_items = current_app.config.get("MAX_BULK_ITEMS", 100)
    if len(items) > max_items:
        raise ValidationError(f"Maximum {max_items} items per transaction")

    normalized = []
    for index, raw in enumerate(items):
        try:
            normalized.append(normalize_sale_item(raw))
        except ValidationError as e:
            raise ValidationError(f"Item {index + 1}: {e}", details={"index": index}) from e

    def _op(session: Session) -> Transaction:
        transaction, _ = _record_sales(session, normalized, batch=True)
        return transaction

    transaction = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded transaction %s: items=%s revenue_cents=%s profit_cents=%s",
        transaction.id, len(normalized), transaction.total_revenue_cents, transaction.total_profit_cents,
    )
    return transaction


def _coerce_created_at(value) -> datetime | None:
    if value is None:
        return None
    patch = validate_payload(
        model=SellHistory,
        payload={"created_at": value},
        policy=SALE_AMEND_POLICY,
        partial=True,
    )
    return patch["created_at"]


# ---------------------------------------------------------------------------
# Amendment and deletion
# ---------------------------------------------------------------------------

def _get_sale_locked(session: Session, sale_id: int) -> SellHistory:
    sale = lock_for_update(session.query(SellHistory).filter_by(id=sale_id)).first()
    if not sale:
        raise NotFoundError("Sell history not found")
    # Lock the aggregate rows this sale feeds as well
    if sale.product_id is not None:
        lock_for_update(session.query(Product).filter_by(id=sale.product_id)).first()
    if sale.service_id is not None:
        lock_for_update(session.query(Service).filter_by(id=sale.service_id)).first()
    return sale


def amend_sale(sale_id: int, payload: dict) -> SellHistory:
    """
    Change amount, unit price and/or date of a recorded sale.

    Aggregates move by the difference between the old and new contribution.
    Profit is recomputed with the row's own cost snapshot, so editing an
    old sale never picks up today's product cost.
    """
    patch = validate_payload(model=SellHistory, payload=payload, policy=SALE_AMEND_POLICY, partial=True)
    enforce_rules_sale_amendment(patch)

    def _op(session: Session) -> SellHistory:
        sale = _get_sale_locked(session, sale_id)

        old_amount = sale.amount
        old_total = sale.total_price_cents
        new_amount = patch.get("amount") or old_amount
        new_sold_price = patch.get("sold_price_cents") or sale.sold_price_cents
        new_total = check_sale_total(new_amount, new_sold_price)

        debit_item = sale.debit_item
        if debit_item is not None and new_total < debit_item.amount_cents:
            raise ConflictError(
                f"Sale {sale.id} has {debit_item.amount_cents} cents on debit {debit_item.debit_id}; "
                f"its total cannot drop below that. Remove it from the debit first.",
                details={"debit_id": debit_item.debit_id},
            )

        kind = sale.sale_kind
        if kind is SaleKind.PRODUCT:
            product = sale.product
            extra_units = new_amount - old_amount
            if extra_units > product.quantity:
                raise InsufficientStockError(
                    f'Insufficient quantity for product "{product.name}". '
                    f"Available: {product.quantity}, Requested: {extra_units}",
                    details={"items": [{
                        "product_id": product.id,
                        "requested_quantity": extra_units,
                        "available": product.quantity,
                    }]},
                )
            cost = unit_cost_cents(sale)
            # Pin the cost basis so later reads agree with what we book now
            sale.initial_price_cents = cost
            old_profit = old_total - cost * old_amount
            new_profit = new_total - cost * new_amount
        elif kind is SaleKind.SERVICE:
            old_profit = old_total
            new_profit = new_total
        else:
            raise ValueError(f"Unknown sale kind: {kind}")

        _apply_sale_delta(
            sale,
            amount_delta=new_amount - old_amount,
            revenue_delta=new_total - old_total,
            profit_delta=new_profit - old_profit,
        )

        sale.amount = new_amount
        sale.sold_price_cents = new_sold_price
        sale.total_price_cents = new_total
        if patch.get("created_at") is not None:
            sale.created_at = patch["created_at"]

        transaction = sale.transaction
        if transaction is not None:
            lock_for_update(session.query(Transaction).filter_by(id=transaction.id)).first()
            resum_transaction(transaction, list(transaction.sales))

        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Amended sale %s: amount=%s sold_price_cents=%s",
        sale.id, sale.amount, sale.sold_price_cents,
    )
    return sale


def _detach_from_transaction(session: Session, sale: SellHistory) -> None:
    """Resum the sale's batch without it, or drop the batch if it was the last row."""
    transaction = sale.transaction
    if transaction is None:
        return
    lock_for_update(session.query(Transaction).filter_by(id=transaction.id)).first()
    remaining = [s for s in transaction.sales if s.id != sale.id]
    if remaining:
        resum_transaction(transaction, remaining)
    else:
        session.delete(transaction)


def delete_sale(sale_id: int) -> None:
    """
    Delete a sale and roll back everything it contributed.

    A sale placed on a debit must be removed from the debit first.
    """
    def _op(session: Session) -> None:
        sale = _get_sale_locked(session, sale_id)

        if sale.debit_item is not None:
            raise ConflictError(
                "Cannot delete sell history entry that is part of a debit. "
                "Please remove it from the debit first.",
                details={"debit_id": sale.debit_item.debit_id},
            )

        _apply_sale_delta(
            sale,
            amount_delta=-sale.amount,
            revenue_delta=-sale.total_price_cents,
            profit_delta=-sale_profit_cents(sale),
        )
        _detach_from_transaction(session, sale)
        session.delete(sale)

    run_in_transaction(_op)
    current_app.logger.info("Deleted sale %s", sale_id)


def purge_sales(session: Session, sales: list[SellHistory]) -> None:
    """
    Delete sales whose product or service is itself being deleted.

    Aggregates of the owning row are not touched (it is going away); batch
    totals are resummed. Runs inside the caller's unit of work.
    """
    on_debit = [s.id for s in sales if s.debit_item is not None]
    if on_debit:
        raise ConflictError(
            "Some sales are part of a debit. Remove them from the debit first.",
            details={"sell_history_ids": on_debit},
        )

    doomed = {s.id for s in sales}
    touched: dict[int, Transaction] = {}
    for sale in sales:
        if sale.transaction is not None:
            touched[sale.transaction.id] = sale.transaction

    for transaction in touched.values():
        remaining = [s for s in transaction.sales if s.id not in doomed]
        if remaining:
            resum_transaction(transaction, remaining)
        else:
            session.delete(transaction)

    for sale in sales:
        session.delete(sale)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_sale(sale_id: int) -> SellHistory:
    sale = db.session.query(SellHistory).filter_by(id=sale_id).first()
    if not sale:
        raise NotFoundError("Sell history not found")
    return sale


def list_sales(
    *,
    product_id: int | None = None,
    service_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[SellHistory]:
    query = db.session.query(SellHistory)
    if product_id is not None:
        query = query.filter(SellHistory.product_id == product_id)
    if service_id is not None:
        query = query.filter(SellHistory.service_id == service_id)
    if start is not None:
        query = query.filter(SellHistory.created_at >= start)
    if end is not None:
        query = query.filter(SellHistory.created_at <= end)
    query = query.order_by(SellHistory.created_at.desc(), SellHistory.id.desc())
    if limit is not None and limit > 0:
        query = query.limit(limit)
    return query.all()


def get_transaction(transaction_id: int) -> Transaction:
    transaction = db.session.query(Transaction).filter_by(id=transaction_id).first()
    if not transaction:
        raise NotFoundError("Transaction not found")
    return transaction
