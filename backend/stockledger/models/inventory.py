from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class Category(db.Model):
    """
    Product grouping for the catalog.

    name and slug are unique. A category cannot be deleted while products
    still reference it (see services.categories_service).
    """
    __tablename__ = "categories"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    slug = db.Column(db.String(100), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} slug={self.slug!r}>"

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "slug": self.slug}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    Product.stock_cached is a materialized balance, NOT the source of truth.
    The inventory_movements ledger is authoritative:

        stock_cached == SUM(inventory_movements.qty WHERE product_id = id)

    stock_cached is written only by services.movement_service (in the same
    transaction as the movement insert that changes it) and by the
    consistency repair in services.maintenance_service.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_stock", "is_active", "stock_cached"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_cached = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    category = db.relationship("Category", backref=db.backref("products", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock_cached}>"

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "sku": self.sku}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "category": self.category.summary() if self.category else None,
            "price_cents": self.price_cents,
            "stock_cached": self.stock_cached,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    One append-only stock ledger entry.

    qty is signed: outbound movements (SALE_OFFLINE, LOSS) are negative,
    inbound movements (RETURN, CANCEL_SALE) are positive, ADJUSTMENT keeps
    the caller's sign. Rows are never updated or deleted; a sale is
    cancelled by appending a CANCEL_SALE row whose reverses_movement_id
    points at the sale.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        db.Index("ix_movements_type_created", "type", "created_at"),
        db.Index("ix_movements_created_id", "created_at", "id"),
        # One compensating entry per original movement (NULLs are not compared)
        db.UniqueConstraint("reverses_movement_id", name="uq_movements_reverses"),
        db.CheckConstraint("qty <> 0", name="ck_movements_qty_non_zero"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)

    # Price snapshot at movement time (revenue analytics), independent of Product.price_cents
    unit_price_cents = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(500), nullable=True)

    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    reverses_movement_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_movements.id"),
        nullable=True,
    )

    # Set in Python so ordering keeps sub-second precision on SQLite
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    actor = db.relationship("User", backref=db.backref("movements", lazy="dynamic"))
    reverses = db.relationship("InventoryMovement", remote_side=[id], uselist=False)

    def __repr__(self) -> str:
        return f"<InventoryMovement id={self.id} type={self.type} qty={self.qty} product_id={self.product_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "note": self.note,
            "actor_id": self.actor_id,
            "reverses_movement_id": self.reverses_movement_id,
            "created_at": to_utc_z(self.created_at),
            "product": self.product.summary() if self.product else None,
            "actor": self.actor.summary() if self.actor else None,
        }
