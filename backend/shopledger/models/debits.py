from __future__ import annotations

import enum

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class DebitStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class Debit(db.Model):
    """
    A customer's deferred / partial payment record.

    total_amount_cents is the sum of the item amounts. status and paid_at
    are derived from paid_amount_cents vs total_amount_cents by
    debit_service.derive_status; nothing else should write them.
    """
    __tablename__ = "debits"
    __table_args__ = (
        db.CheckConstraint("paid_amount_cents >= 0", name="ck_debits_paid_nonneg"),
        db.CheckConstraint("paid_amount_cents <= total_amount_cents", name="ck_debits_paid_le_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=DebitStatus.PENDING.value, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    @property
    def remaining_cents(self) -> int:
        return self.total_amount_cents - self.paid_amount_cents

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer_name": self.customer_name,
            "notes": self.notes,
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_cents": self.remaining_cents,
            "status": self.status,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in sorted(self.items, key=lambda i: i.id)]
        return data


class DebitItem(db.Model):
    """Join between one debit and one sale, carrying the credited amount."""
    __tablename__ = "debit_items"
    __table_args__ = (
        db.UniqueConstraint("sell_history_id", name="uq_debit_items_sell_history"),
        db.CheckConstraint("amount_cents > 0", name="ck_debit_items_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    debit_id = db.Column(db.Integer, db.ForeignKey("debits.id", ondelete="CASCADE"), nullable=False, index=True)
    sell_history_id = db.Column(db.Integer, db.ForeignKey("sell_history.id"), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    debit = db.relationship(
        "Debit",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan", passive_deletes=True),
    )
    sell_history = db.relationship(
        "SellHistory",
        backref=db.backref("debit_item", uselist=False, lazy=True),
    )

    def to_dict(self) -> dict:
        sale = self.sell_history
        return {
            "id": self.id,
            "debit_id": self.debit_id,
            "sell_history_id": self.sell_history_id,
            "amount_cents": self.amount_cents,
            "sale": {
                "kind": sale.kind,
                "name": sale.target_name,
                "amount": sale.amount,
                "sold_price_cents": sale.sold_price_cents,
                "total_price_cents": sale.total_price_cents,
                "created_at": to_utc_z(sale.created_at),
            } if sale else None,
            "created_at": to_utc_z(self.created_at),
        }
