"""
Product catalog tests (service and routes).

stock_cached is never writable through the catalog; opening stock goes
through the ledger.
"""

import pytest

from stockledger.extensions import db
from stockledger.models import AuditLog, InventoryMovement
from stockledger.permissions import MovementType
from stockledger.services import products_service
from stockledger.services.movement_service import ProductNotFoundError
from stockledger.validation import ConflictError


class TestProductsService:

    def test_create_starts_at_zero(self, owner):
        product = products_service.create_product(
            {"sku": "TEA-01", "name": "Tea", "price_cents": 450}, actor_id=owner.id
        )
        assert product.stock_cached == 0
        assert product.is_active is True
        assert db.session.query(AuditLog).filter_by(action="PRODUCT_CREATE", entity_id=product.id).count() == 1

    def test_duplicate_sku(self, owner):
        products_service.create_product({"sku": "TEA-01", "name": "Tea"}, actor_id=owner.id)
        with pytest.raises(ConflictError):
            products_service.create_product({"sku": "TEA-01", "name": "Tea 2"}, actor_id=owner.id)

    def test_update_ignores_stock(self, make_product, owner):
        product = make_product(stock=4)
        products_service.update_product(
            product.id, {"name": "Renamed", "stock_cached": 99}, actor_id=owner.id
        )
        assert product.name == "Renamed"
        assert product.stock_cached == 4

    def test_toggle_active(self, make_product, owner):
        product = make_product()
        products_service.set_product_active(product.id, False, actor_id=owner.id)
        assert product.is_active is False
        assert products_service.list_products()["count"] == 0
        assert products_service.list_products(include_inactive=True)["count"] == 1

    def test_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            products_service.get_product(12345)

    def test_search_and_pagination(self, make_product):
        make_product("Green tea", sku="TEA-G")
        make_product("Black tea", sku="TEA-B")
        make_product("Coffee", sku="COF-1")

        found = products_service.list_products(search="tea")
        assert [p["name"] for p in found["items"]] == ["Black tea", "Green tea"]

        page = products_service.list_products(page=2, per_page=2)
        assert page["count"] == 1
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["has_prev"] is True


class TestProductRoutes:

    def test_owner_creates_with_initial_stock(self, client, owner_headers):
        resp = client.post("/api/products", json={
            "sku": "MUG-01", "name": "Mug", "price_cents": 1200, "initial_stock": 8,
        }, headers=owner_headers)

        assert resp.status_code == 201
        assert resp.json["product"]["stock_cached"] == 8
        movement = db.session.query(InventoryMovement).filter_by(product_id=resp.json["product"]["id"]).one()
        assert movement.type == MovementType.ADJUSTMENT
        assert movement.note == "Initial stock"

    def test_staff_cannot_create(self, client, staff_headers):
        resp = client.post("/api/products", json={"name": "Mug"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_stock_not_writable(self, client, owner_headers):
        resp = client.post("/api/products", json={"name": "Mug", "stock_cached": 5}, headers=owner_headers)
        assert resp.status_code == 400

    def test_negative_price(self, client, owner_headers):
        resp = client.post("/api/products", json={"name": "Mug", "price_cents": -1}, headers=owner_headers)
        assert resp.status_code == 400

    def test_duplicate_sku_is_409(self, client, owner_headers, make_product):
        make_product(sku="DUP-1")
        resp = client.post("/api/products", json={"name": "Other", "sku": "DUP-1"}, headers=owner_headers)
        assert resp.status_code == 409
        assert resp.json["code"] == "Conflict"

    def test_patch_and_toggle(self, client, owner_headers, make_product):
        product = make_product("Old name")

        patched = client.patch(f"/api/products/{product.id}", json={"name": "New name"}, headers=owner_headers)
        assert patched.status_code == 200
        assert patched.json["product"]["name"] == "New name"

        toggled = client.post(f"/api/products/{product.id}/toggle-status", headers=owner_headers)
        assert toggled.json["product"]["is_active"] is False

    def test_staff_lists(self, client, staff_headers, make_product):
        make_product("Visible", stock=1)
        resp = client.get("/api/products", headers=staff_headers)
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["items"]] == ["Visible"]

    def test_unknown_product_is_404(self, client, owner_headers):
        resp = client.patch("/api/products/999", json={"name": "x"}, headers=owner_headers)
        assert resp.status_code == 404
