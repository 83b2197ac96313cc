"""
CLI command tests via app.test_cli_runner().
"""

from stockledger.extensions import db
from stockledger.models import Product, User
from stockledger.permissions import Role
from stockledger.services.maintenance_service import verify_stock_consistency


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    assert first.exit_code == 0, first.output
    assert "PASS Created user: owner@shop.local" in first.output

    second = runner.invoke(args=["system", "init"])
    assert second.exit_code == 0
    assert "already exists" in second.output

    roles = sorted(u.role for u in db.session.query(User).all())
    assert roles == [Role.OWNER, Role.STAFF]


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create", "--email", "clerk@shop.local", "--name", "Clerk",
        "--password", "Password123", "--role", "STAFF",
    ])
    assert result.exit_code == 0, result.output

    listing = runner.invoke(args=["users", "list"])
    assert "clerk@shop.local" in listing.output


def test_users_create_weak_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create", "--email", "weak@shop.local", "--password", "weak", "--role", "STAFF",
    ])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output


def test_verify_stock_dry_run_then_fix(app, make_product):
    product = make_product(stock=5)
    product.stock_cached = 9
    db.session.commit()

    runner = app.test_cli_runner()

    dry = runner.invoke(args=["inventory", "verify-stock", "--dry-run"])
    assert dry.exit_code == 1
    assert "cached=9 calculated=5" in dry.output

    fixed = runner.invoke(args=["inventory", "verify-stock"])
    assert fixed.exit_code == 0
    assert "Repaired 1 product(s)" in fixed.output

    clean = runner.invoke(args=["inventory", "verify-stock", "--dry-run"])
    assert clean.exit_code == 0


def test_seed_demo_goes_through_ledger(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["system", "init"])

    result = runner.invoke(args=["inventory", "seed-demo"])
    assert result.exit_code == 0, result.output

    coffee = db.session.query(Product).filter_by(sku="DEMO-COFFEE-250").one()
    assert coffee.stock_cached == 34
    assert verify_stock_consistency(fix=False) == []

    again = runner.invoke(args=["inventory", "seed-demo"])
    assert again.exit_code == 0
    assert "skipping" in again.output


def test_seed_demo_requires_owner(app, db_session):
    result = app.test_cli_runner().invoke(args=["inventory", "seed-demo"])
    assert result.exit_code != 0
