# Overview: Pytest coverage for selling, amending and deleting sales.

"""
Sell Service Tests

Covers the aggregate bookkeeping of the sell service:
- single product/service sales and bulk transactions
- stock checks (single and batch, repeated products summed)
- amendments, including idempotent amend and the debit floor
- deletions, including transaction resum and removal of emptied batches
"""

import pytest

from shopledger.extensions import db
from shopledger.models import SellHistory, Transaction
from shopledger.services import sell_service, debit_service
from shopledger.services.sell_service import sale_profit_cents
from shopledger.validation import (
    ValidationError,
    InsufficientStockError,
    NotFoundError,
    ConflictError,
)


def _product_state(p):
    return (p.quantity, p.total_sold, p.revenue_cents, p.profit_cents)


class TestSingleSales:

    def test_sell_product_updates_aggregates(self, db_session, product):
        """Selling 5 of a 1000/1500 product with 100 in stock."""
        sale = sell_service.sell_product(product.id, amount=5, sold_price_cents=1500)

        assert product.quantity == 95
        assert product.total_sold == 5
        assert product.revenue_cents == 7500
        assert product.profit_cents == 2500

        assert sale.kind == "PRODUCT"
        assert sale.total_price_cents == 7500
        assert sale.initial_price_cents == 1000
        assert sale.transaction_id is None

    def test_sell_below_list_price_books_lower_profit(self, db_session, product):
        sell_service.sell_product(product.id, amount=2, sold_price_cents=1200)
        assert product.revenue_cents == 2400
        assert product.profit_cents == 400

    def test_sell_more_than_stock_rejected(self, db_session, make_product):
        p = make_product(quantity=3)
        with pytest.raises(InsufficientStockError) as exc:
            sell_service.sell_product(p.id, amount=4, sold_price_cents=1500)

        assert "Available: 3, Requested: 4" in str(exc.value)
        assert exc.value.details["items"][0]["product_id"] == p.id
        assert _product_state(p) == (3, 0, 0, 0)
        assert db.session.query(SellHistory).count() == 0

    def test_sell_unknown_product_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            sell_service.sell_product(9999, amount=1, sold_price_cents=100)

    @pytest.mark.parametrize("amount,price", [(0, 100), (-1, 100), (1, 0), (1.5, 100), (None, 100)])
    def test_sell_invalid_input_rejected(self, db_session, product, amount, price):
        with pytest.raises(ValidationError):
            sell_service.sell_product(product.id, amount=amount, sold_price_cents=price)
        assert product.quantity == 100

    def test_sell_can_be_backdated(self, db_session, product):
        sale = sell_service.sell_product(
            product.id, amount=1, sold_price_cents=1500, created_at="2026-01-05T10:00:00Z",
        )
        assert sale.created_at.year == 2026
        assert sale.created_at.month == 1
        assert sale.created_at.day == 5

    def test_sell_service_has_no_cost(self, db_session, make_service):
        s = make_service(default_price_cents=500)
        sale = sell_service.sell_service(s.id, amount=2, sold_price_cents=500)

        assert s.total_sold == 2
        assert s.revenue_cents == 1000
        assert sale.kind == "SERVICE"
        assert sale.initial_price_cents is None
        assert sale_profit_cents(sale) == 1000

    def test_oversized_service_sale_rejected(self, db_session, make_service):
        s = make_service()
        with pytest.raises(ValidationError):
            sell_service.sell_service(s.id, amount=10 ** 10, sold_price_cents=999_999_999)
        with pytest.raises(ValidationError):
            sell_service.sell_service(s.id, amount=10_000_000, sold_price_cents=999_999_999)
        assert s.total_sold == 0
        assert s.revenue_cents == 0

    def test_later_cost_change_does_not_rewrite_profit(self, db_session, product):
        from shopledger.services import catalog_service

        sale = sell_service.sell_product(product.id, amount=2, sold_price_cents=1500)
        catalog_service.update_product(product.id, patch={"initial_price_cents": 1400})

        assert sale_profit_cents(sale) == 1000
        assert product.profit_cents == 1000


class TestBulkSell:

    def test_bulk_creates_transaction(self, db_session, make_product, make_service):
        p = make_product(initial_price_cents=1000, quantity=10)
        s = make_service()

        transaction = sell_service.bulk_sell([
            {"product_id": p.id, "amount": 2, "sold_price_cents": 1500},
            {"service_id": s.id, "amount": 1, "sold_price_cents": 700},
        ])

        assert transaction.total_revenue_cents == 3000 + 700
        assert transaction.total_profit_cents == 1000 + 700
        assert len(transaction.sales) == 2
        assert all(row.transaction_id == transaction.id for row in transaction.sales)
        assert p.quantity == 8
        assert s.total_sold == 1

    def test_bulk_rejects_whole_batch_on_short_item(self, db_session, make_product):
        p1 = make_product(quantity=10)
        p2 = make_product(quantity=2)

        with pytest.raises(InsufficientStockError):
            sell_service.bulk_sell([
                {"product_id": p1.id, "amount": 1, "sold_price_cents": 1500},
                {"product_id": p2.id, "amount": 5, "sold_price_cents": 1500},
            ])

        assert _product_state(p1) == (10, 0, 0, 0)
        assert _product_state(p2) == (2, 0, 0, 0)
        assert db.session.query(SellHistory).count() == 0
        assert db.session.query(Transaction).count() == 0

    def test_bulk_sums_repeated_product(self, db_session, make_product):
        p = make_product(quantity=5)
        with pytest.raises(InsufficientStockError):
            sell_service.bulk_sell([
                {"product_id": p.id, "amount": 3, "sold_price_cents": 1500},
                {"product_id": p.id, "amount": 3, "sold_price_cents": 1500},
            ])
        assert p.quantity == 5

    def test_bulk_requires_items(self, db_session):
        with pytest.raises(ValidationError):
            sell_service.bulk_sell([])
        with pytest.raises(ValidationError):
            sell_service.bulk_sell(None)

    def test_bulk_reports_item_index(self, db_session, product):
        with pytest.raises(ValidationError) as exc:
            sell_service.bulk_sell([
                {"product_id": product.id, "amount": 1, "sold_price_cents": 1500},
                {"product_id": product.id, "sold_price_cents": 1500},
            ])
        assert str(exc.value).startswith("Item 2:")

    def test_bulk_item_needs_exactly_one_target(self, db_session, product, make_service):
        s = make_service()
        with pytest.raises(ValidationError):
            sell_service.bulk_sell([
                {"product_id": product.id, "service_id": s.id, "amount": 1, "sold_price_cents": 100},
            ])
        with pytest.raises(ValidationError):
            sell_service.bulk_sell([{"amount": 1, "sold_price_cents": 100}])

    def test_bulk_item_limit(self, app, db_session, product, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_BULK_ITEMS", 2)
        item = {"product_id": product.id, "amount": 1, "sold_price_cents": 1500}
        with pytest.raises(ValidationError) as exc:
            sell_service.bulk_sell([dict(item), dict(item), dict(item)])
        assert "Maximum 2 items" in str(exc.value)

    def test_bulk_unknown_service_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            sell_service.bulk_sell([{"service_id": 4242, "amount": 1, "sold_price_cents": 100}])


class TestAmendSale:

    def test_amend_amount_down(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=5, sold_price_cents=1500)
        sell_service.amend_sale(sale.id, {"amount": 3})

        assert _product_state(product) == (97, 3, 4500, 1500)
        assert sale.total_price_cents == 4500

    def test_amend_price(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=4, sold_price_cents=1500)
        sell_service.amend_sale(sale.id, {"sold_price_cents": 1100})

        assert product.revenue_cents == 4400
        assert product.profit_cents == 400
        assert product.quantity == 96

    def test_amend_to_same_values_is_noop(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=5, sold_price_cents=1500)
        before = _product_state(product)

        sell_service.amend_sale(sale.id, {"amount": 5, "sold_price_cents": 1500})

        assert _product_state(product) == before

    def test_amend_beyond_stock_rejected(self, db_session, make_product):
        p = make_product(quantity=10)
        sale = sell_service.sell_product(p.id, amount=8, sold_price_cents=1500)

        with pytest.raises(InsufficientStockError):
            sell_service.amend_sale(sale.id, {"amount": 11})
        assert _product_state(p) == (2, 8, 12000, 4000)

        sell_service.amend_sale(sale.id, {"amount": 10})
        assert p.quantity == 0
        assert p.total_sold == 10

    def test_amend_service_sale(self, db_session, make_service):
        s = make_service()
        sale = sell_service.sell_service(s.id, amount=4, sold_price_cents=500)
        sell_service.amend_sale(sale.id, {"amount": 1, "sold_price_cents": 800})

        assert s.total_sold == 1
        assert s.revenue_cents == 800

    def test_amend_resums_transaction(self, db_session, make_product):
        p1 = make_product(initial_price_cents=1000)
        p2 = make_product(initial_price_cents=200)
        transaction = sell_service.bulk_sell([
            {"product_id": p1.id, "amount": 2, "sold_price_cents": 1500},
            {"product_id": p2.id, "amount": 1, "sold_price_cents": 500},
        ])
        first = min(transaction.sales, key=lambda s: s.id)

        sell_service.amend_sale(first.id, {"amount": 1})

        assert transaction.total_revenue_cents == 1500 + 500
        assert transaction.total_profit_cents == 500 + 300

    def test_amend_below_debit_amount_conflicts(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=5, sold_price_cents=1000)
        debit_service.create_debit({"items": [{"sell_history_id": sale.id, "amount_cents": 5000}]})

        with pytest.raises(ConflictError):
            sell_service.amend_sale(sale.id, {"amount": 4})
        assert sale.amount == 5

        sell_service.amend_sale(sale.id, {"amount": 6})
        assert sale.total_price_cents == 6000
        assert sale.debit_item.amount_cents == 5000

    def test_amend_pins_missing_cost_snapshot(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=2, sold_price_cents=1500)
        sale.initial_price_cents = None
        db.session.commit()

        sell_service.amend_sale(sale.id, {"amount": 3})

        assert sale.initial_price_cents == 1000
        assert product.profit_cents == 1500

    def test_amend_rejects_unknown_fields(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=1, sold_price_cents=1500)
        with pytest.raises(ValidationError):
            sell_service.amend_sale(sale.id, {"total_price_cents": 1})

    def test_amend_total_past_limit_rejected(self, db_session, make_service):
        s = make_service()
        sale = sell_service.sell_service(s.id, amount=1, sold_price_cents=999_999_999)

        with pytest.raises(ValidationError):
            sell_service.amend_sale(sale.id, {"amount": 10 ** 10, "sold_price_cents": 999_999_999})
        with pytest.raises(ValidationError):
            sell_service.amend_sale(sale.id, {"amount": 10_000_000})

        assert sale.amount == 1
        assert s.revenue_cents == 999_999_999

    def test_amend_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sell_service.amend_sale(12345, {"amount": 1})


class TestDeleteSale:

    def test_create_then_delete_restores_product(self, db_session, product):
        before = _product_state(product)
        sale = sell_service.sell_product(product.id, amount=7, sold_price_cents=1300)

        sell_service.delete_sale(sale.id)

        assert _product_state(product) == before
        assert db.session.query(SellHistory).count() == 0

    def test_delete_on_debit_conflicts_until_removed(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=5, sold_price_cents=1500)
        debit_service.create_debit({"items": [{"sell_history_id": sale.id, "amount_cents": 7500}]})

        with pytest.raises(ConflictError) as exc:
            sell_service.delete_sale(sale.id)
        assert "remove it from the debit first" in str(exc.value)
        assert product.quantity == 95

        assert debit_service.remove_item(sale.id) is None
        sell_service.delete_sale(sale.id)

        assert _product_state(product) == (100, 0, 0, 0)

    def test_delete_resums_then_drops_transaction(self, db_session, make_product):
        p1 = make_product()
        p2 = make_product()
        transaction = sell_service.bulk_sell([
            {"product_id": p1.id, "amount": 1, "sold_price_cents": 1500},
            {"product_id": p2.id, "amount": 2, "sold_price_cents": 1500},
        ])
        transaction_id = transaction.id
        first, second = sorted(transaction.sales, key=lambda s: s.id)
        first_id, second_id = first.id, second.id

        sell_service.delete_sale(first_id)
        assert transaction.total_revenue_cents == 3000
        assert transaction.total_profit_cents == 1000

        sell_service.delete_sale(second_id)
        with pytest.raises(NotFoundError):
            sell_service.get_transaction(transaction_id)

    def test_delete_service_sale(self, db_session, make_service):
        s = make_service()
        sale = sell_service.sell_service(s.id, amount=3, sold_price_cents=500)
        sell_service.delete_sale(sale.id)
        assert s.total_sold == 0
        assert s.revenue_cents == 0


class TestSaleReads:

    def test_list_filters_and_order(self, db_session, make_product):
        p1 = make_product()
        p2 = make_product()
        a = sell_service.sell_product(p1.id, amount=1, sold_price_cents=1500, created_at="2026-02-01T09:00:00Z")
        b = sell_service.sell_product(p2.id, amount=1, sold_price_cents=1500, created_at="2026-02-03T09:00:00Z")
        c = sell_service.sell_product(p1.id, amount=1, sold_price_cents=1500, created_at="2026-02-05T09:00:00Z")

        assert [s.id for s in sell_service.list_sales()] == [c.id, b.id, a.id]
        assert [s.id for s in sell_service.list_sales(product_id=p1.id)] == [c.id, a.id]
        assert [s.id for s in sell_service.list_sales(limit=1)] == [c.id]

        from shopledger.time_utils import parse_date_range
        start, end = parse_date_range("2026-02-02", "2026-02-03")
        assert [s.id for s in sell_service.list_sales(start=start, end=end)] == [b.id]

    def test_sale_serialises_debit_link(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=2, sold_price_cents=1500)
        debit = debit_service.create_debit({"items": [{"sell_history_id": sale.id, "amount_cents": 1000}]})

        data = sale.to_dict()
        assert data["name"] == "Widget"
        assert data["debit_id"] == debit.id
        assert data["debit_amount_cents"] == 1000
