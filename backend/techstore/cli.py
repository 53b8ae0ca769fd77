# Overview: Flask CLI command group for schema bootstrap, demo data, and reports.

# backend/techstore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask commerce <command> [options]
#
# Schema/bootstrap:
# - python -m flask commerce init-db
#   Create all tables (dev only; use `flask db upgrade` for migrations).
# - python -m flask commerce seed-demo
#   Insert demo users, products and a discount (idempotent by email/name).
#
# Reports:
# - python -m flask commerce revenue --start 2026-01-01 --end 2026-01-31
#   Revenue, cost and profit for an inclusive date range.
# - python -m flask commerce monthly --year 2026
#   Twelve-month revenue summary.
# - python -m flask commerce stock-audit 42
#   What a cancelled/refunded order returned to stock, next to current stock.

from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Discount, Product, User
from .models.catalog import DISCOUNT_PERCENTAGE
from .models.users import ROLE_CUSTOMER, ROLE_PRODUCT_MANAGER, ROLE_SALES_MANAGER
from .errors import CommerceError
from .time_utils import parse_iso_date, utcnow


def _services():
    return current_app.extensions["commerce"]


def _cents(value: int) -> str:
    return f"${value / 100:,.2f}"


@click.group('commerce')
def commerce_group():
    """Commerce engine bootstrap and reporting commands."""


@commerce_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current models."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Schema ready.")


DEMO_USERS = [
    ("Demo Customer", "customer@techstore.local", ROLE_CUSTOMER),
    ("Demo Product Manager", "pm@techstore.local", ROLE_PRODUCT_MANAGER),
    ("Demo Sales Manager", "sales@techstore.local", ROLE_SALES_MANAGER),
]

# name, price_cents, cost_cents, stock
DEMO_PRODUCTS = [
    ("Laptop Pro 14", 149_900, 110_000, 10),
    ("Noise Cancelling Headphones", 29_900, None, 25),
    ("USB-C Charger 65W", 4_900, 2_000, 100),
]


@commerce_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Insert demo users, products and one active discount."""
    for name, email, role in DEMO_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"SKIP  User {email} exists")
            continue
        db.session.add(User(name=name, email=email, role=role))
        click.echo(f"ADD   User {email} ({role})")

    headphones = None
    for name, price, cost, stock in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(name=name).first()
        if product:
            click.echo(f"SKIP  Product {name!r} exists")
        else:
            product = Product(
                name=name,
                price_cents=price,
                cost_cents=cost,
                stock=stock,
                price_approved=True,
                is_visible=True,
            )
            db.session.add(product)
            click.echo(f"ADD   Product {name!r} at {_cents(price)}")
        if name == "Noise Cancelling Headphones":
            headphones = product

    db.session.flush()

    if headphones is not None and not headphones.discounts:
        now = utcnow()
        db.session.add(Discount(
            product_id=headphones.id,
            discount_type=DISCOUNT_PERCENTAGE,
            discount_value=2000,
            start_at=now - timedelta(days=1),
            end_at=now + timedelta(days=30),
        ))
        click.echo("ADD   20% discount on headphones for 30 days")

    db.session.commit()
    click.echo("PASS Demo data ready.")


@commerce_group.command('revenue')
@click.option('--start', required=True, help='First day, YYYY-MM-DD')
@click.option('--end', required=True, help='Last day (inclusive), YYYY-MM-DD')
@with_appcontext
def revenue(start, end):
    """Revenue, cost and profit for a date range."""
    try:
        start_day, end_day = parse_iso_date(start), parse_iso_date(end)
        if start_day is None or end_day is None:
            raise click.ClickException("--start and --end must be dates (YYYY-MM-DD)")
        report = _services().revenue.revenue_for_range(start_day, end_day)
    except (CommerceError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo("\n" + "=" * 70)
    click.echo(f"{'Date':<12} {'Orders':>7} {'Revenue':>16} {'Cost':>16} {'Profit':>16}")
    click.echo("=" * 70)
    for row in report["daily_breakdown"]:
        click.echo(
            f"{row['date']:<12} {row['order_count']:>7} {_cents(row['revenue_cents']):>16} "
            f"{_cents(row['cost_cents']):>16} {_cents(row['profit_cents']):>16}"
        )
    click.echo("-" * 70)
    click.echo(
        f"{'TOTAL':<12} {report['order_count']:>7} {_cents(report['total_revenue_cents']):>16} "
        f"{_cents(report['total_cost_cents']):>16} {_cents(report['total_profit_cents']):>16}"
    )


@commerce_group.command('monthly')
@click.option('--year', required=True, type=int)
@with_appcontext
def monthly(year):
    """Twelve-month revenue summary."""
    try:
        rows = _services().revenue.monthly_summary(year)
    except CommerceError as e:
        raise click.ClickException(str(e))

    click.echo("\n" + "=" * 55)
    click.echo(f"{'Month':<12} {'Orders':>7} {'Items':>7} {'Revenue':>16}")
    click.echo("=" * 55)
    for row in rows:
        click.echo(
            f"{row['month_name']:<12} {row['order_count']:>7} {row['items_sold']:>7} "
            f"{_cents(row['revenue_cents']):>16}"
        )


@commerce_group.command('stock-audit')
@click.argument('order_id', type=int)
@with_appcontext
def stock_audit(order_id):
    """Show what an order returned to stock. Read-only."""
    try:
        report = _services().inventory.audit_restock(order_id)
    except CommerceError as e:
        raise click.ClickException(str(e))

    restocked = "yes" if report["restocked"] else "no"
    click.echo(f"Order {report['order_id']} status={report['status']} restocked={restocked}")
    for item in report["items"]:
        click.echo(
            f"  product {item['product_id']:<6} {item['product_name']:<30} "
            f"qty={item['quantity']:<5} current_stock={item['current_stock']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(commerce_group)
