# Overview: Pytest coverage for ledger reconciliation and the CLI commands.

from shopledger.extensions import db
from shopledger.models import Product, Debit
from shopledger.services import sell_service, debit_service, catalog_service
from shopledger.services.reconcile_service import check_ledger


def _exercise_ledger(make_product, make_service):
    """Run a mixed sequence of engine operations."""
    p1 = make_product(quantity=50)
    p2 = make_product(initial_price_cents=300, quantity=20)
    s = make_service()

    single = sell_service.sell_product(p1.id, amount=3, sold_price_cents=1500)
    transaction = sell_service.bulk_sell([
        {"product_id": p1.id, "amount": 2, "sold_price_cents": 1400},
        {"product_id": p2.id, "amount": 5, "sold_price_cents": 500},
        {"service_id": s.id, "amount": 1, "sold_price_cents": 900},
    ])
    rows = sorted(transaction.sales, key=lambda r: r.id)

    sell_service.amend_sale(rows[0].id, {"amount": 4, "sold_price_cents": 1300})
    sell_service.amend_sale(single.id, {"amount": 3, "sold_price_cents": 1500})
    sell_service.delete_sale(rows[1].id)

    debit = debit_service.create_debit({"items": [
        {"sell_history_id": single.id, "amount_cents": 4500},
        {"sell_history_id": rows[2].id, "amount_cents": 500},
    ]})
    debit_service.record_payment(debit.id, 4600)
    debit_service.remove_item(rows[2].id)

    catalog_service.update_product(p2.id, patch={"initial_price_cents": 350, "quantity": 40})
    return p1, p2, s


class TestReconcile:

    def test_clean_after_engine_operations(self, db_session, make_product, make_service):
        _exercise_ledger(make_product, make_service)
        assert check_ledger() == []

    def test_reports_product_drift(self, db_session, product):
        sell_service.sell_product(product.id, amount=2, sold_price_cents=1500)
        product.revenue_cents += 1
        db.session.commit()

        drifts = check_ledger()

        assert len(drifts) == 1
        assert drifts[0].to_dict() == {
            "entity": "product",
            "entity_id": product.id,
            "field": "revenue_cents",
            "stored": 3001,
            "expected": 3000,
        }

    def test_reports_debit_status_drift(self, db_session, product):
        sale = sell_service.sell_product(product.id, amount=2, sold_price_cents=1500)
        debit = debit_service.create_debit({"items": [{"sell_history_id": sale.id, "amount_cents": 3000}]})
        db.session.query(Debit).filter_by(id=debit.id).update({Debit.status: "PAID"})
        db.session.commit()

        fields = [(d.entity, d.field) for d in check_ledger()]
        assert fields == [("debit", "status")]


class TestCli:

    def test_ledger_check_passes(self, app, db_session, make_product, make_service):
        _exercise_ledger(make_product, make_service)
        result = app.test_cli_runner().invoke(args=["ledger", "check"])
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_ledger_check_fails_on_drift(self, app, db_session, product):
        db.session.query(Product).filter_by(id=product.id).update({Product.total_sold: 9})
        db.session.commit()

        result = app.test_cli_runner().invoke(args=["ledger", "check"])

        assert result.exit_code == 1
        assert "total_sold" in result.output

    def test_seed_demo_is_consistent(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "seed-demo"])
        assert result.exit_code == 0, result.output
        assert "DONE" in result.output
        assert check_ledger() == []

        again = runner.invoke(args=["system", "seed-demo"])
        assert "skipping" in again.output
