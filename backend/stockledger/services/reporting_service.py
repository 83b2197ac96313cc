# Overview: Service-layer operations for reporting; read-only aggregation over the movement ledger.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, func

from stockledger.extensions import db
from stockledger.models import InventoryMovement, Product
from stockledger.permissions import MovementType
from stockledger.time_utils import start_of_day, to_utc_z, utcnow

# Sales net of cancellations: SALE_OFFLINE rows are negative, CANCEL_SALE rows positive.
SALE_TYPES = (MovementType.SALE_OFFLINE, MovementType.CANCEL_SALE)


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _net_units_expr():
    return func.coalesce(func.sum(-InventoryMovement.qty), 0)


def _net_revenue_expr():
    return func.coalesce(
        func.sum(-InventoryMovement.qty * func.coalesce(InventoryMovement.unit_price_cents, 0)),
        0,
    )


def movement_stats(since: datetime, until: datetime | None = None) -> dict:
    """Units moved per kind of movement, over created_at >= since."""
    sales = func.sum(case((InventoryMovement.type == MovementType.SALE_OFFLINE, -InventoryMovement.qty), else_=0))
    returns = func.sum(case((InventoryMovement.type == MovementType.RETURN, InventoryMovement.qty), else_=0))
    adjustments = func.sum(
        case((InventoryMovement.type == MovementType.ADJUSTMENT, func.abs(InventoryMovement.qty)), else_=0)
    )
    losses = func.sum(case((InventoryMovement.type == MovementType.LOSS, -InventoryMovement.qty), else_=0))
    cancellations = func.sum(
        case((InventoryMovement.type == MovementType.CANCEL_SALE, InventoryMovement.qty), else_=0)
    )

    q = db.session.query(
        func.count(InventoryMovement.id).label("total"),
        sales.label("sales"),
        returns.label("returns"),
        adjustments.label("adjustments"),
        losses.label("losses"),
        cancellations.label("cancellations"),
    ).filter(InventoryMovement.created_at >= since)
    if until is not None:
        q = q.filter(InventoryMovement.created_at <= until)

    row = q.one()
    return {
        "sales": int(row.sales or 0),
        "returns": int(row.returns or 0),
        "adjustments": int(row.adjustments or 0),
        "losses": int(row.losses or 0),
        "cancellations": int(row.cancellations or 0),
        "total_movements": int(row.total or 0),
    }


def dashboard_metrics(*, now: datetime | None = None, low_stock_threshold: int = 5) -> dict:
    now = now or utcnow()
    start_of_today = start_of_day(now)
    start_of_week = now - timedelta(days=7)
    start_of_month = start_of_today.replace(day=1)

    active = db.session.query(Product).filter(Product.is_active.is_(True))

    total_products = active.count()
    low_stock = active.filter(
        Product.stock_cached > 0,
        Product.stock_cached <= low_stock_threshold,
    ).count()
    out_of_stock = active.filter(Product.stock_cached == 0).count()

    total_value = db.session.query(
        func.coalesce(func.sum(Product.price_cents * Product.stock_cached), 0)
    ).filter(Product.is_active.is_(True)).scalar()

    total_revenue = db.session.query(_net_revenue_expr()).filter(
        InventoryMovement.type.in_(SALE_TYPES)
    ).scalar()

    return {
        "generated_at": to_utc_z(now),
        "total_products": total_products,
        "total_movements": db.session.query(InventoryMovement).count(),
        "low_stock_products": low_stock,
        "out_of_stock_products": out_of_stock,
        "total_value_cents": int(total_value or 0),
        "total_revenue_cents": int(total_revenue or 0),
        "today": movement_stats(start_of_today),
        "week": movement_stats(start_of_week),
        "month": movement_stats(start_of_month),
    }


def staff_dashboard_metrics(*, now: datetime | None = None, low_stock_threshold: int = 5) -> dict:
    """
    Counters for the shop floor: no inventory value, today only.

    low_stock_products counts active products at or below the threshold,
    including those out of stock. Today's figures are net of cancellations;
    today_sales counts SALE_OFFLINE entries.
    """
    if low_stock_threshold < 0:
        raise ReportError("threshold must be >= 0")

    now = now or utcnow()
    start_of_today = start_of_day(now)

    active = db.session.query(Product).filter(Product.is_active.is_(True))

    today_sales = db.session.query(func.count(InventoryMovement.id)).filter(
        InventoryMovement.type == MovementType.SALE_OFFLINE,
        InventoryMovement.created_at >= start_of_today,
    ).scalar()

    units, revenue = db.session.query(_net_units_expr(), _net_revenue_expr()).filter(
        InventoryMovement.type.in_(SALE_TYPES),
        InventoryMovement.created_at >= start_of_today,
    ).one()

    return {
        "generated_at": to_utc_z(now),
        "total_products": active.count(),
        "low_stock_products": active.filter(Product.stock_cached <= low_stock_threshold).count(),
        "today_sales": int(today_sales or 0),
        "today_units_sold": int(units or 0),
        "today_revenue_cents": int(revenue or 0),
    }


def top_products(*, limit: int = 10) -> list[dict]:
    """Best sellers by net units sold, with net revenue."""
    if limit < 1:
        raise ReportError("limit must be >= 1")

    units = _net_units_expr()
    rows = db.session.query(
        Product.id.label("product_id"),
        Product.name.label("name"),
        Product.sku.label("sku"),
        Product.stock_cached.label("stock_cached"),
        units.label("units_sold"),
        _net_revenue_expr().label("revenue_cents"),
    ).join(
        InventoryMovement, InventoryMovement.product_id == Product.id
    ).filter(
        InventoryMovement.type.in_(SALE_TYPES)
    ).group_by(
        Product.id, Product.name, Product.sku, Product.stock_cached
    ).having(units > 0).order_by(
        units.desc(), Product.id.asc()
    ).limit(limit).all()

    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "sku": row.sku,
            "units_sold": int(row.units_sold or 0),
            "revenue_cents": int(row.revenue_cents or 0),
            "stock_cached": row.stock_cached,
        }
        for row in rows
    ]


def low_stock_products(*, threshold: int = 5) -> list[dict]:
    if threshold < 0:
        raise ReportError("threshold must be >= 0")

    products = db.session.query(Product).filter(
        Product.is_active.is_(True),
        Product.stock_cached <= threshold,
    ).order_by(Product.stock_cached.asc(), Product.name.asc()).all()

    return [
        {
            "product_id": p.id,
            "name": p.name,
            "sku": p.sku,
            "stock_cached": p.stock_cached,
            "price_cents": p.price_cents,
        }
        for p in products
    ]


def sales_trend(*, days: int = 30, now: datetime | None = None) -> dict:
    """Net units and revenue per UTC day over the last `days` days, oldest first."""
    if days < 1 or days > 366:
        raise ReportError("days must be between 1 and 366")

    now = now or utcnow()
    start_dt = start_of_day(now) - timedelta(days=days - 1)

    period_expr = func.strftime("%Y-%m-%d", InventoryMovement.created_at)

    rows = db.session.query(
        period_expr.label("period"),
        _net_units_expr().label("units"),
        _net_revenue_expr().label("revenue_cents"),
    ).filter(
        InventoryMovement.type.in_(SALE_TYPES),
        InventoryMovement.created_at >= start_dt,
        InventoryMovement.created_at <= now,
    ).group_by("period").order_by("period").all()

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(now),
        "rows": [
            {
                "date": row.period,
                "units": int(row.units or 0),
                "revenue_cents": int(row.revenue_cents or 0),
            }
            for row in rows
        ],
    }
