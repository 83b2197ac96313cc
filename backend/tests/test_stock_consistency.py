"""
Consistency verification between Product.stock_cached and the ledger.
"""

from stockledger.extensions import db
from stockledger.models import InventoryMovement
from stockledger.services import maintenance_service


def test_consistent_ledger_reports_nothing(make_product):
    make_product(stock=10)
    make_product(stock=0)

    assert maintenance_service.verify_stock_consistency() == []


def test_drift_is_reported_and_repaired(app, make_product, caplog):
    product = make_product("Drifted", stock=10)
    product.stock_cached = 13
    db.session.commit()

    with caplog.at_level("WARNING"):
        mismatches = maintenance_service.verify_stock_consistency(fix=True)

    assert mismatches == [{"product_id": product.id, "name": "Drifted", "cached": 13, "calculated": 10}]
    assert "Stock mismatch" in caplog.text

    db.session.expire_all()
    assert product.stock_cached == 10
    assert maintenance_service.verify_stock_consistency() == []


def test_dry_run_does_not_repair(make_product):
    product = make_product(stock=4)
    product.stock_cached = 1
    db.session.commit()

    mismatches = maintenance_service.verify_stock_consistency(fix=False)

    assert len(mismatches) == 1
    db.session.expire_all()
    assert product.stock_cached == 1


def test_product_without_movements_sums_to_zero(make_product):
    product = make_product(stock=0)
    product.stock_cached = 2
    db.session.commit()

    mismatches = maintenance_service.verify_stock_consistency(fix=True)

    assert mismatches[0]["calculated"] == 0
    assert product.stock_cached == 0
    assert maintenance_service.calculate_ledger_stock(product.id) == 0


def test_repair_never_touches_ledger(make_product):
    product = make_product(stock=6)
    count = db.session.query(InventoryMovement).count()
    product.stock_cached = 0
    db.session.commit()

    maintenance_service.verify_stock_consistency(fix=True)

    assert db.session.query(InventoryMovement).count() == count
