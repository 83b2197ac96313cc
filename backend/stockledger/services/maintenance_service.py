# Overview: Maintenance jobs; detects and repairs drift between stock_cached and the ledger.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import InventoryMovement, Product


def calculate_ledger_stock(product_id: int) -> int:
    """SUM(qty) over a product's movements (0 when it has none)."""
    total = db.session.query(
        func.coalesce(func.sum(InventoryMovement.qty), 0)
    ).filter(InventoryMovement.product_id == product_id).scalar()
    return int(total or 0)


def verify_stock_consistency(*, fix: bool = True) -> list[dict]:
    """
    Compare every product's stock_cached with the signed sum of its ledger.

    Each mismatch is logged as a warning. With fix=True the cached value is
    overwritten with the ledger sum and committed; the ledger itself is never
    modified. Returns the mismatches found.
    """
    ledger_sums = dict(
        db.session.query(
            InventoryMovement.product_id,
            func.coalesce(func.sum(InventoryMovement.qty), 0),
        ).group_by(InventoryMovement.product_id).all()
    )

    mismatches = []
    for product in db.session.query(Product).order_by(Product.id.asc()).all():
        calculated = int(ledger_sums.get(product.id, 0))
        if calculated == product.stock_cached:
            continue

        current_app.logger.warning(
            "Stock mismatch for product %s (%s): cached=%s, calculated=%s",
            product.id, product.name, product.stock_cached, calculated,
        )
        mismatches.append({
            "product_id": product.id,
            "name": product.name,
            "cached": product.stock_cached,
            "calculated": calculated,
        })
        if fix:
            product.stock_cached = calculated

    if fix and mismatches:
        db.session.commit()

    return mismatches
