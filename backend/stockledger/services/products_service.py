# backend/stockledger/services/products_service.py
"""
Products Service

Catalog CRUD around the Product row. stock_cached is deliberately absent
from PRODUCT_MUTABLE_FIELDS: only the movement ledger moves stock. A new
product starts at zero; opening stock is recorded as an ADJUSTMENT.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import ConflictError
from .audit_service import AuditAction, AuditEntity, record_audit_event
from .categories_service import ensure_category_exists
from .movement_service import ProductNotFoundError

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "price_cents", "category_id"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(sku: str | None, *, exclude_id: int | None = None) -> None:
    if not sku:
        return
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("Product with this SKU already exists")


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(
    *,
    include_inactive: bool = False,
    search: str | None = None,
    category_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing ordered by name, optionally paginated.

    Returns {"items", "count"} plus "pagination" when page is given.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(Product.name.ilike(like) | Product.sku.ilike(like))
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(patch: dict, *, actor_id: int | None = None) -> Product:
    _ensure_sku_available(patch.get("sku"))
    ensure_category_exists(patch.get("category_id"))

    product = Product(stock_cached=0, is_active=True)
    apply_product_patch(product, patch)
    if product.price_cents is None:
        product.price_cents = 0

    db.session.add(product)
    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.PRODUCT_CREATE,
        entity=AuditEntity.PRODUCT,
        entity_id=product.id,
        meta={"name": product.name, "sku": product.sku, "price_cents": product.price_cents},
    )
    current_app.logger.info("Product created (product_id=%s, actor_id=%s)", product.id, actor_id)
    return product


def update_product(product_id: int, patch: dict, *, actor_id: int | None = None) -> Product:
    product = get_product(product_id)
    if "sku" in patch:
        _ensure_sku_available(patch["sku"], exclude_id=product.id)
    if "category_id" in patch:
        ensure_category_exists(patch["category_id"])

    apply_product_patch(product, patch)
    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.PRODUCT_UPDATE,
        entity=AuditEntity.PRODUCT,
        entity_id=product.id,
        meta={k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS},
    )
    return product


def set_product_active(product_id: int, is_active: bool, *, actor_id: int | None = None) -> Product:
    product = get_product(product_id)
    product.is_active = bool(is_active)
    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.PRODUCT_ACTIVATE if product.is_active else AuditAction.PRODUCT_DEACTIVATE,
        entity=AuditEntity.PRODUCT,
        entity_id=product.id,
    )
    return product
