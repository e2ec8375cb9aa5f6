from __future__ import annotations

import enum

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class SaleKind(str, enum.Enum):
    """What a sell history row sold. Decides which aggregates it feeds."""
    PRODUCT = "PRODUCT"
    SERVICE = "SERVICE"


class Transaction(db.Model):
    """
    A batch of sales submitted together through bulk sell.

    total_revenue_cents / total_profit_cents are resummed from the member
    rows whenever one of them is amended or deleted.
    """
    __tablename__ = "sale_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    total_profit_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self, include_sales: bool = False) -> dict:
        data = {
            "id": self.id,
            "total_revenue_cents": self.total_revenue_cents,
            "total_profit_cents": self.total_profit_cents,
            "created_at": to_utc_z(self.created_at),
        }
        if include_sales:
            data["sell_history"] = [s.to_dict() for s in sorted(self.sales, key=lambda s: s.id)]
        return data


class SellHistory(db.Model):
    """
    One recorded sale of a product or a service.

    kind tags the row; exactly the matching foreign key is set. total_price
    is stored, never recomputed at read time. initial_price_cents snapshots
    the product cost at sale time so later cost changes do not rewrite
    historical profit (always NULL for services).
    """
    __tablename__ = "sell_history"
    __table_args__ = (
        db.CheckConstraint(
            "(kind = 'PRODUCT' AND product_id IS NOT NULL AND service_id IS NULL)"
            " OR (kind = 'SERVICE' AND service_id IS NOT NULL AND product_id IS NULL)",
            name="ck_sell_history_kind_target",
        ),
        db.CheckConstraint("amount > 0", name="ck_sell_history_amount_pos"),
        db.Index("ix_sell_history_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True, index=True)

    amount = db.Column(db.Integer, nullable=False)
    sold_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)
    initial_price_cents = db.Column(db.Integer, nullable=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product")
    service = db.relationship("Service")
    transaction = db.relationship("Transaction", backref=db.backref("sales", lazy=True))

    @property
    def sale_kind(self) -> SaleKind:
        return SaleKind(self.kind)

    @property
    def target_name(self) -> str | None:
        if self.sale_kind is SaleKind.PRODUCT:
            return self.product.name if self.product else None
        return self.service.name if self.service else None

    def __repr__(self) -> str:
        target = self.product_id if self.kind == SaleKind.PRODUCT.value else self.service_id
        return f"<SellHistory id={self.id} kind={self.kind} target={target} amount={self.amount}>"

    def to_dict(self) -> dict:
        debit_item = self.debit_item
        return {
            "id": self.id,
            "kind": self.kind,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "name": self.target_name,
            "amount": self.amount,
            "sold_price_cents": self.sold_price_cents,
            "total_price_cents": self.total_price_cents,
            "initial_price_cents": self.initial_price_cents,
            "transaction_id": self.transaction_id,
            "debit_id": debit_item.debit_id if debit_item else None,
            "debit_amount_cents": debit_item.amount_cents if debit_item else None,
            "created_at": to_utc_z(self.created_at),
        }
