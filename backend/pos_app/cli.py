# Overview: Flask CLI command groups for bootstrap, catalog seeding and ledger inspection.

# backend/pos_app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pos_app (PowerShell: $env:FLASK_APP="pos_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed [--principal system]
#   Idempotent: sample categories and products with opening stock.
# - python -m flask catalog low-stock
#   List active products at or below their reorder level.
#
# Inventory ledger:
# - python -m flask inventory stock-in --product-id 1 --quantity 24 --principal admin
#   Record received stock.
# - python -m flask inventory reconcile
#   Compare every product's quantity_on_hand with the sum of its ledger entries.
# - python -m flask inventory value
#   Inventory value at cost over active products.

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Category, Product
from .models.inventory import TX_STOCK_IN
from .money import cents_to_decimal
from .services import catalog_service, inventory_service

SAMPLE_CATEGORIES = [
    ("Beverages", "Hot and cold drinks", "☕"),
    ("Food", "Meals and snacks", "🍔"),
    ("Bakery", "Fresh baked goods", "🥐"),
    ("Dairy", "Milk and dairy products", "🥛"),
]

# (category, sku, name, description, price, cost, tax %, opening qty, reorder level)
SAMPLE_PRODUCTS = [
    ("Beverages", "BEV001", "Coffee - Regular", "Hot brewed coffee", "3.50", "1.00", "0", 50, 20),
    ("Beverages", "COFFEE-001", "Coffee Beans 1kg", "Whole bean house blend", "12.99", "6.50", "10", 30, 5),
    ("Bakery", "BAK001", "Croissant", "Butter croissant", "2.75", "0.90", "8.25", 40, 10),
    ("Dairy", "DAI001", "Milk 1L", "Whole milk", "1.89", "0.95", "0", 25, 8),
    ("Food", "FOOD001", "Club Sandwich", "Turkey and bacon", "8.50", "3.20", "8.25", 15, 5),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed' for sample data.")


@click.group('catalog')
def catalog_group():
    """Product catalog commands."""


@catalog_group.command('seed')
@click.option('--principal', default='system', show_default=True, help='Principal recorded on opening stock entries')
@with_appcontext
def seed_catalog(principal):
    """Create sample categories and products (skips existing names/SKUs)."""
    categories = {}
    for name, description, icon in SAMPLE_CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if category is None:
            category = catalog_service.create_category(name, description, icon)
            click.echo(f"PASS Created category: {name}")
        categories[name] = category

    for cat, sku, name, description, price, cost, tax, qty, reorder in SAMPLE_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue
        try:
            catalog_service.create_product(
                patch={
                    "category_id": categories[cat].id,
                    "sku": sku,
                    "name": name,
                    "description": description,
                    "price": price,
                    "cost": cost,
                    "tax_rate": tax,
                    "reorder_level": reorder,
                },
                principal_id=principal,
                opening_quantity=qty,
            )
            click.echo(f"PASS Created product: {sku} ({name}) with {qty} on hand")
        except PosError as e:
            click.echo(f"FAIL Failed to create product '{sku}': {e.message}")


@catalog_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products at or below their reorder level."""
    products = catalog_service.list_low_stock()
    if not products:
        click.echo("PASS No products below reorder level")
        return
    click.echo(f"{'SKU':<16} {'Name':<32} {'On hand':>8} {'Reorder':>8}")
    for p in products:
        click.echo(f"{p.sku:<16} {p.name[:32]:<32} {p.quantity_on_hand:>8} {p.reorder_level:>8}")


@click.group('inventory')
def inventory_group():
    """Inventory ledger commands."""


@inventory_group.command('stock-in')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--quantity', type=click.IntRange(min=1), required=True, help='Units received')
@click.option('--principal', required=True, help='Principal receiving the stock')
@click.option('--notes', help='Free text note')
@with_appcontext
def stock_in(product_id, quantity, principal, notes):
    """Record received stock for a product."""
    try:
        product, entry = inventory_service.update_stock(
            product_id=product_id,
            quantity_change=quantity,
            transaction_type=TX_STOCK_IN,
            principal_id=principal,
            notes=notes,
        )
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {product.sku}: +{quantity} (log #{entry.id}), now {product.quantity_on_hand} on hand")


@inventory_group.command('reconcile')
@with_appcontext
def reconcile():
    """Compare live stock counters with the ledger; exits non-zero on mismatch."""
    discrepancies = inventory_service.find_discrepancies()
    if not discrepancies:
        click.echo("PASS All products balance with the inventory ledger")
        return
    for d in discrepancies:
        click.echo(
            f"FAIL {d['sku']}: on hand {d['quantity_on_hand']}, "
            f"ledger {d['ledger_quantity']} (diff {d['difference']:+d})"
        )
    raise SystemExit(1)


@inventory_group.command('value')
@with_appcontext
def value():
    """Inventory value at cost over active products."""
    cents = inventory_service.total_value()
    click.echo(f"Inventory value: {cents_to_decimal(cents):.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(inventory_group)
