# Overview: Service-layer operations for product categories; CRUD with uniqueness and delete guards.

# backend/stockledger/services/categories_service.py
"""
Categories Service

Categories group products in the catalog. They carry no stock of their
own; listing reports how many active products each one holds.
"""
from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, ValidationError
from .audit_service import AuditAction, AuditEntity, record_audit_event


class CategoryNotFoundError(Exception):
    code = "CategoryNotFound"

    def __init__(self, message: str = "Category not found", details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return slug[:100]


def _ensure_unique(field: str, value: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Category).filter(getattr(Category, field) == value)
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Category with this {field} already exists")


def _active_product_counts() -> dict[int, int]:
    rows = (
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None), Product.is_active.is_(True))
        .group_by(Product.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise CategoryNotFoundError(details={"category_id": category_id})
    return category


def list_categories() -> list[dict]:
    """Categories ordered by name, each with its active product count."""
    counts = _active_product_counts()
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    return [
        {**c.to_dict(), "product_count": counts.get(c.id, 0)}
        for c in categories
    ]


def category_detail(category_id: int) -> dict:
    """One category with its active products."""
    category = get_category(category_id)
    products = (
        category.products.filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return {
        **category.to_dict(),
        "product_count": len(products),
        "products": [p.to_dict() for p in products],
    }


def create_category(patch: dict, *, actor_id: int | None = None) -> Category:
    """
    Create a category. The slug is derived from the name when omitted.

    Raises ConflictError on a duplicate name or slug, ValidationError when
    no slug can be derived.
    """
    name = patch["name"]
    slug = patch.get("slug") or slugify(name)
    if not slug:
        raise ValidationError("Cannot derive a slug from this name; provide one")

    _ensure_unique("name", name)
    _ensure_unique("slug", slug)

    category = Category(name=name, slug=slug)
    db.session.add(category)
    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.CATEGORY_CREATE,
        entity=AuditEntity.CATEGORY,
        entity_id=category.id,
        meta={"name": category.name, "slug": category.slug},
    )
    current_app.logger.info("Category created (category_id=%s, actor_id=%s)", category.id, actor_id)
    return category


def update_category(category_id: int, patch: dict, *, actor_id: int | None = None) -> Category:
    category = get_category(category_id)
    if "name" in patch:
        _ensure_unique("name", patch["name"], exclude_id=category.id)
        category.name = patch["name"]
    if "slug" in patch:
        _ensure_unique("slug", patch["slug"], exclude_id=category.id)
        category.slug = patch["slug"]

    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.CATEGORY_UPDATE,
        entity=AuditEntity.CATEGORY,
        entity_id=category.id,
        meta={"changes": patch},
    )
    return category


def delete_category(category_id: int, *, actor_id: int | None = None) -> None:
    """
    Delete an empty category.

    Raises ConflictError while any product (active or not) references it.
    """
    category = get_category(category_id)
    in_use = db.session.query(Product).filter(Product.category_id == category.id).count()
    if in_use:
        raise ConflictError(f"Cannot delete category with products ({in_use}). Remove products first.")

    meta = {"name": category.name, "slug": category.slug}
    db.session.delete(category)
    db.session.commit()

    record_audit_event(
        actor_id=actor_id,
        action=AuditAction.CATEGORY_DELETE,
        entity=AuditEntity.CATEGORY,
        entity_id=category_id,
        meta=meta,
    )
    current_app.logger.info("Category deleted (category_id=%s, actor_id=%s)", category_id, actor_id)


def ensure_category_exists(category_id: int | None) -> None:
    """Product payload check: a category_id must point at an existing category."""
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError(f"category_id {category_id} does not exist")
