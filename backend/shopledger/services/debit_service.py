"""
Debit Service - sales placed on customer credit.

A Debit groups DebitItems; each item credits part (or all) of one sale.
total_amount_cents always equals the sum of its items, and status/paid_at
are always derived from paid vs total by derive_status.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Debit, DebitItem, DebitStatus, SellHistory
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_debit_item,
    enforce_rules_debit_update,
    ValidationError,
    NotFoundError,
    ConflictError,
)
from shopledger.time_utils import utcnow
from .unit_of_work import lock_for_update, run_in_transaction


DEBIT_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "notes"},
)

DEBIT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "notes", "paid_amount_cents"},
)

DEBIT_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"sell_history_id", "amount_cents"},
    required_on_create={"sell_history_id", "amount_cents"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents"},
    required_on_create={"amount_cents"},
)


def derive_status(
    paid_cents: int,
    total_cents: int,
    paid_at: datetime | None,
    now: datetime | None = None,
) -> tuple[DebitStatus, datetime | None]:
    """
    Status rule, checked in this order:

    paid >= total (and total > 0) -> PAID, keeping the first paid_at
    paid > 0                      -> PARTIAL
    otherwise                     -> PENDING

    paid_at is only kept while the debit is PAID.
    """
    if total_cents > 0 and paid_cents >= total_cents:
        return DebitStatus.PAID, paid_at or now or utcnow()
    if paid_cents > 0:
        return DebitStatus.PARTIAL, None
    return DebitStatus.PENDING, None


def _apply_paid_amount(debit: Debit, paid_cents: int) -> None:
    status, paid_at = derive_status(paid_cents, debit.total_amount_cents, debit.paid_at)
    debit.paid_amount_cents = paid_cents
    debit.status = status.value
    debit.paid_at = paid_at


def _get_debit_locked(session: Session, debit_id: int) -> Debit:
    debit = lock_for_update(session.query(Debit).filter_by(id=debit_id)).first()
    if not debit:
        raise NotFoundError("Debit not found")
    return debit


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def create_debit(payload: dict) -> Debit:
    """
    Put one or more sales on credit under a new debit.

    payload: {customer_name?, notes?, items: [{sell_history_id, amount_cents}]}
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_items = payload.pop("items", None)
    header = validate_payload(model=Debit, payload=payload, policy=DEBIT_POLICY, partial=True)

    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one debit item is required")

    items = []
    for index, raw in enumerate(raw_items):
        try:
            item = validate_payload(model=DebitItem, payload=raw, policy=DEBIT_ITEM_POLICY, partial=False)
            enforce_rules_debit_item(item)
        except ValidationError as e:
            raise ValidationError(f"Item {index + 1}: {e}", details={"index": index}) from e
        items.append(item)

    sale_ids = [i["sell_history_id"] for i in items]
    duplicates = sorted({sid for sid in sale_ids if sale_ids.count(sid) > 1})
    if duplicates:
        raise ValidationError(
            f"Sell history entry {duplicates[0]} is listed more than once",
            details={"sell_history_ids": duplicates},
        )

    def _op(session: Session) -> Debit:
        sales = {
            s.id: s
            for s in lock_for_update(session.query(SellHistory).filter(SellHistory.id.in_(sale_ids))).all()
        }
        missing = [sid for sid in sale_ids if sid not in sales]
        if missing:
            raise NotFoundError(
                f"Sell history entry {missing[0]} not found",
                details={"sell_history_ids": missing},
            )

        for sid in sale_ids:
            existing = sales[sid].debit_item
            if existing is not None:
                raise ConflictError(
                    f"Sell history entry {sid} is already part of a debit",
                    details={"sell_history_id": sid, "debit_id": existing.debit_id},
                )

        for item in items:
            sale = sales[item["sell_history_id"]]
            if item["amount_cents"] > sale.total_price_cents:
                raise ValidationError(
                    f"Amount for sell history {sale.id} exceeds total price of {sale.total_price_cents}",
                    details={"sell_history_id": sale.id, "total_price_cents": sale.total_price_cents},
                )

        debit = Debit(
            customer_name=header.get("customer_name") or None,
            notes=header.get("notes") or None,
            total_amount_cents=sum(i["amount_cents"] for i in items),
            paid_amount_cents=0,
            status=DebitStatus.PENDING.value,
            paid_at=None,
        )
        session.add(debit)
        for item in items:
            debit.items.append(DebitItem(
                sell_history=sales[item["sell_history_id"]],
                amount_cents=item["amount_cents"],
            ))
        session.flush()
        return debit

    debit = run_in_transaction(_op)
    current_app.logger.info(
        "Created debit %s: items=%s total_cents=%s",
        debit.id, len(items), debit.total_amount_cents,
    )
    return debit


# ---------------------------------------------------------------------------
# Payment / update
# ---------------------------------------------------------------------------

def update_debit(debit_id: int, payload: dict) -> Debit:
    """Edit customer/notes and optionally set the paid amount outright."""
    patch = validate_payload(model=Debit, payload=payload, policy=DEBIT_UPDATE_POLICY, partial=True)
    enforce_rules_debit_update(patch)

    def _op(session: Session) -> Debit:
        debit = _get_debit_locked(session, debit_id)

        if "customer_name" in patch:
            debit.customer_name = patch["customer_name"] or None
        if "notes" in patch:
            debit.notes = patch["notes"] or None

        paid = patch.get("paid_amount_cents")
        if paid is not None:
            if paid > debit.total_amount_cents:
                raise ValidationError(
                    "Paid amount cannot exceed total amount",
                    details={"total_amount_cents": debit.total_amount_cents},
                )
            _apply_paid_amount(debit, paid)
        return debit

    debit = run_in_transaction(_op)
    current_app.logger.info(
        "Updated debit %s: paid_cents=%s status=%s",
        debit.id, debit.paid_amount_cents, debit.status,
    )
    return debit


def record_payment(debit_id: int, amount_cents) -> Debit:
    """Add a payment on top of what has already been paid."""
    amount_cents = validate_payload(
        model=DebitItem,
        payload={"amount_cents": amount_cents},
        policy=PAYMENT_POLICY,
        partial=False,
    )["amount_cents"]
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    def _op(session: Session) -> Debit:
        debit = _get_debit_locked(session, debit_id)
        new_paid = debit.paid_amount_cents + amount_cents
        if new_paid > debit.total_amount_cents:
            raise ValidationError(
                "Payment amount would exceed total amount. "
                f"Maximum payment: {debit.remaining_cents}",
                details={"max_payment_cents": debit.remaining_cents},
            )
        _apply_paid_amount(debit, new_paid)
        return debit

    debit = run_in_transaction(_op)
    current_app.logger.info(
        "Payment on debit %s: amount_cents=%s paid_cents=%s status=%s",
        debit.id, amount_cents, debit.paid_amount_cents, debit.status,
    )
    return debit


# ---------------------------------------------------------------------------
# Item removal and deletion
# ---------------------------------------------------------------------------

def remove_item(sell_history_id: int) -> Debit | None:
    """
    Take one sale off its debit.

    The debit total is resummed from the remaining items, the paid amount
    is clamped down to it, then the status is rederived. Returns the
    updated debit, or None when that was its last item and it was deleted.
    """
    def _op(session: Session) -> tuple[int, Debit | None]:
        item = lock_for_update(
            session.query(DebitItem).filter_by(sell_history_id=sell_history_id)
        ).first()
        if not item:
            raise NotFoundError("Debit item not found")

        debit = _get_debit_locked(session, item.debit_id)
        debit_id = debit.id
        debit.items.remove(item)

        remaining = list(debit.items)
        if not remaining:
            session.delete(debit)
            return debit_id, None

        new_total = sum(i.amount_cents for i in remaining)
        new_paid = min(debit.paid_amount_cents, new_total)
        debit.total_amount_cents = new_total
        _apply_paid_amount(debit, new_paid)
        return debit_id, debit

    debit_id, debit = run_in_transaction(_op)
    if debit is None:
        current_app.logger.info("Removed sale %s from debit %s; debit emptied and deleted", sell_history_id, debit_id)
    else:
        current_app.logger.info(
            "Removed sale %s from debit %s: total_cents=%s paid_cents=%s status=%s",
            sell_history_id, debit_id, debit.total_amount_cents, debit.paid_amount_cents, debit.status,
        )
    return debit


def delete_debit(debit_id: int) -> None:
    """Delete a debit and all of its items. The sales themselves stay."""
    def _op(session: Session) -> None:
        debit = _get_debit_locked(session, debit_id)
        for item in list(debit.items):
            session.delete(item)
        session.delete(debit)

    run_in_transaction(_op)
    current_app.logger.info("Deleted debit %s", debit_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_debit(debit_id: int) -> Debit:
    debit = db.session.query(Debit).filter_by(id=debit_id).first()
    if not debit:
        raise NotFoundError("Debit not found")
    return debit


def list_debits(
    *,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Debit]:
    query = db.session.query(Debit)
    if status:
        try:
            query = query.filter(Debit.status == DebitStatus(status).value)
        except ValueError:
            raise ValidationError("status must be PENDING, PARTIAL or PAID")
    if start is not None:
        query = query.filter(Debit.created_at >= start)
    if end is not None:
        query = query.filter(Debit.created_at <= end)
    return query.order_by(Debit.created_at.desc(), Debit.id.desc()).all()
