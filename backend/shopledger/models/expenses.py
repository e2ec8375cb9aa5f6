from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class DailyExpense(db.Model):
    """Running cost of the shop (rent, utilities, transport, ...)."""
    __tablename__ = "daily_expenses"
    __table_args__ = (
        db.Index("ix_daily_expenses_date", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "notes": self.notes,
            "expense_date": to_utc_z(self.expense_date),
            "created_at": to_utc_z(self.created_at),
        }


class SupplyExpense(db.Model):
    """Stock purchase from a supplier."""
    __tablename__ = "supply_expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    supplier = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "supplier": self.supplier,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
