# Overview: Flask CLI command groups for database bootstrap and ledger inspection.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Load a small demo catalog with a few sales and a debit (skipped when products exist).
#
# Ledger:
# - python -m flask ledger check
#   Recompute every stored aggregate and list mismatches. Exits 1 on drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import catalog_service, sell_service, debit_service, expense_service
from .services.reconcile_service import check_ledger


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load demo categories, products, services, sales and one debit."""
    if db.session.query(Product).count() > 0:
        click.echo("WARN Products already exist, skipping demo seed.")
        return

    drinks = catalog_service.create_category(patch={"name": "Drinks"})
    stationery = catalog_service.create_category(patch={"name": "Stationery"})

    cola = catalog_service.create_product(patch={
        "name": "Cola 500ml", "initial_price_cents": 2500, "selling_price_cents": 3500,
        "quantity": 48, "category_id": drinks.id,
    })
    water = catalog_service.create_product(patch={
        "name": "Water 1L", "initial_price_cents": 1500, "selling_price_cents": 2000,
        "quantity": 60, "category_id": drinks.id,
    })
    notebook = catalog_service.create_product(patch={
        "name": "Notebook A5", "initial_price_cents": 4000, "selling_price_cents": 6000,
        "quantity": 25, "category_id": stationery.id,
    })
    printing = catalog_service.create_service(patch={
        "name": "Printing (per page)", "description": "Black and white A4", "default_price_cents": 300,
    })
    click.echo("PASS Created 2 categories, 3 products and 1 service")

    sale = sell_service.sell_product(cola.id, amount=4, sold_price_cents=3500)
    sell_service.sell_service(printing.id, amount=20, sold_price_cents=300)
    transaction = sell_service.bulk_sell([
        {"product_id": water.id, "amount": 6, "sold_price_cents": 2000},
        {"product_id": notebook.id, "amount": 2, "sold_price_cents": 5500},
    ])
    click.echo(f"PASS Recorded 2 single sales and transaction {transaction.id}")

    debit = debit_service.create_debit({
        "customer_name": "Abebe",
        "items": [{"sell_history_id": sale.id, "amount_cents": sale.total_price_cents}],
    })
    debit_service.record_payment(debit.id, 5000)
    click.echo(f"PASS Created debit {debit.id} ({debit.status})")

    expense_service.create_daily_expense(patch={
        "description": "Electricity bill", "amount_cents": 45000, "category": "Utilities",
    })
    click.echo("DONE Demo data loaded.")


@click.group('ledger')
def ledger_group():
    """Ledger inspection commands."""


@ledger_group.command('check')
@with_appcontext
def ledger_check():
    """Recompute aggregates from sell history and debit items; exit 1 on any drift."""
    drifts = check_ledger()
    if not drifts:
        click.echo("PASS Ledger consistent: no drift found.")
        return

    click.echo(f"FAIL {len(drifts)} drift(s) found:")
    for d in drifts:
        click.echo(f"  {d.entity} {d.entity_id} {d.field}: stored={d.stored} expected={d.expected}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
