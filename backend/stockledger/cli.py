# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables plus a default owner and staff account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
# - python -m flask users create --email staff2@shop.local --name "Staff 2" --password "Password123" --role STAFF
#
# Inventory:
# - python -m flask inventory verify-stock [--dry-run]
#   Compare stock_cached with the ledger and repair drift (report only with --dry-run).
# - python -m flask inventory seed-demo
#   Demo products with initial stock and a few sales, written through the ledger.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .permissions import ROLES, MovementType, Role
from .services.auth_service import create_user, PasswordValidationError
from .services import maintenance_service
from .services import movement_service
from .services import products_service
from .services.movement_service import MovementError


DEFAULT_PASSWORD = "Password123"

DEMO_PRODUCTS = [
    # (sku, name, price_cents, initial stock, units sold)
    ("DEMO-COFFEE-250", "Ground coffee 250g", 899, 40, 6),
    ("DEMO-TEA-GREEN", "Green tea (20 bags)", 449, 25, 3),
    ("DEMO-MUG-WHITE", "White ceramic mug", 1250, 12, 2),
    ("DEMO-FILTER-02", "Paper filters #2", 325, 4, 1),
    ("DEMO-KETTLE", "Gooseneck kettle", 4999, 0, 0),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--owner-email', default='owner@shop.local', show_default=True)
@click.option('--owner-password', default=DEFAULT_PASSWORD, show_default=True)
@click.option('--staff-email', default='staff@shop.local', show_default=True)
@click.option('--staff-password', default=DEFAULT_PASSWORD, show_default=True)
@with_appcontext
def init_system(owner_email, owner_password, staff_email, staff_password):
    """
    Initialize the shop: tables plus one OWNER and one STAFF account.

    Safe to run repeatedly; existing accounts are left untouched.

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing stock ledger...")
    db.create_all()

    default_users = [
        (owner_email, "Owner", Role.OWNER, owner_password),
        (staff_email, "Staff", Role.STAFF, staff_password),
    ]

    for email, name, role, password in default_users:
        if db.session.query(User).filter_by(email=email.strip().lower()).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(email, password, name=name, role=role)
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {e}")
            continue
        click.echo(f"PASS Created user: {email} with role '{role}'")

    click.echo("DONE Stock ledger initialized")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES), case_sensitive=False), default=Role.STAFF, show_default=True)
@with_appcontext
def create_user_cli(email, name, password, role):
    """
    Create a new user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(email, password, name=name, role=role)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<30} {'Name':<20} {'Role':<8} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<30} {(user.name or '-'):<20} {user.role:<8} {active_str}")

    click.echo("="*80 + "\n")


@click.group('inventory')
def inventory_group():
    """Stock ledger maintenance commands."""


@inventory_group.command('verify-stock')
@click.option('--dry-run', is_flag=True, help='Report mismatches without repairing them')
@with_appcontext
def verify_stock_cli(dry_run):
    """
    Compare every product's stock_cached with SUM(qty) of its movements.

    Without --dry-run, drifted balances are overwritten with the ledger sum.
    Exits with status 1 when --dry-run finds mismatches.
    """
    mismatches = maintenance_service.verify_stock_consistency(fix=not dry_run)

    if not mismatches:
        click.echo("PASS All product balances match the ledger.")
        return

    for m in mismatches:
        click.echo(
            f"MISMATCH product {m['product_id']} ({m['name']}): "
            f"cached={m['cached']} calculated={m['calculated']}"
        )

    if dry_run:
        click.echo(f"FAIL {len(mismatches)} mismatched product(s); run without --dry-run to repair.")
        raise SystemExit(1)

    click.echo(f"PASS Repaired {len(mismatches)} product(s).")


@inventory_group.command('seed-demo')
@click.option('--owner-email', default='owner@shop.local', show_default=True)
@with_appcontext
def seed_demo_cli(owner_email):
    """
    Create demo products, record their initial stock as ADJUSTMENT movements
    and a few offline sales, then verify the balances.

    Products whose SKU already exists are skipped.
    """
    owner = db.session.query(User).filter_by(email=owner_email.strip().lower()).first()
    if owner is None or owner.role != Role.OWNER:
        raise click.ClickException(f"No OWNER account '{owner_email}'. Run 'python -m flask system init' first.")

    created = 0
    for sku, name, price_cents, initial_stock, sold in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue

        try:
            product = products_service.create_product(
                {"sku": sku, "name": name, "price_cents": price_cents},
                actor_id=owner.id,
            )
            if initial_stock:
                movement_service.create_stock_adjustment(
                    product.id, initial_stock, "Initial stock",
                    actor_id=owner.id, actor_role=owner.role,
                )
            if sold:
                movement_service.create_movement(
                    product_id=product.id,
                    movement_type=MovementType.SALE_OFFLINE,
                    qty=sold,
                    unit_price_cents=price_cents,
                    actor_id=owner.id,
                    actor_role=owner.role,
                )
        except MovementError as e:
            raise click.ClickException(f"Failed to seed '{sku}': {e}")

        created += 1
        click.echo(f"PASS Seeded {sku}: stock {product.stock_cached}")

    mismatches = maintenance_service.verify_stock_consistency(fix=False)
    if mismatches:
        raise click.ClickException(f"{len(mismatches)} product(s) out of sync after seeding")

    click.echo(f"DONE Seeded {created} demo product(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
