"""
HTTP tests for /api/movements and /api/analytics.

Verifies:
- Unauthenticated requests return 401
- Route role gates (403) and the movement role policy (403)
- Error kinds map to status codes with {"error", "code", "details"}
"""

import pytest

from stockledger.extensions import db
from stockledger.models import InventoryMovement
from stockledger.permissions import MovementType


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/movements"),
            ("POST", "/api/movements"),
            ("POST", "/api/movements/bulk"),
            ("POST", "/api/movements/1/cancel"),
            ("POST", "/api/movements/cancel-sale"),
            ("POST", "/api/movements/adjust-stock"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/analytics/dashboard"),
            ("GET", "/api/analytics/low-stock"),
            ("GET", "/api/analytics/staff-dashboard"),
            ("GET", "/api/users"),
            ("POST", "/api/users/1/deactivate"),
            ("GET", "/api/categories"),
            ("DELETE", "/api/categories/1"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/movements", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401


# =============================================================================
# CREATE
# =============================================================================


class TestCreateMovementRoute:

    def test_staff_records_sale(self, client, staff_headers, make_product):
        product = make_product(stock=10, price_cents=250)

        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "SALE_OFFLINE", "qty": 3, "unit_price_cents": 250,
        }, headers=staff_headers)

        assert resp.status_code == 201
        movement = resp.json["movement"]
        assert movement["qty"] == -3
        assert movement["product"]["id"] == product.id
        assert movement["actor"]["email"] == "staff@shop.test"
        db.session.expire_all()
        assert product.stock_cached == 7

    def test_type_is_case_insensitive(self, client, staff_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "return", "qty": 1,
        }, headers=staff_headers)
        assert resp.status_code == 201
        assert resp.json["movement"]["type"] == MovementType.RETURN

    def test_insufficient_stock_is_409(self, client, staff_headers, make_product):
        product = make_product(stock=7)

        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "SALE_OFFLINE", "qty": 20,
        }, headers=staff_headers)

        assert resp.status_code == 409
        assert resp.json["code"] == "InsufficientStock"
        assert resp.json["error"] == "Insufficient stock: available 7, requested 20"
        assert resp.json["details"]["available"] == 7

    def test_staff_adjustment_is_403(self, client, staff_headers, make_product):
        product = make_product(stock=10)

        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "ADJUSTMENT", "qty": 5, "note": "found",
        }, headers=staff_headers)

        assert resp.status_code == 403
        assert resp.json["code"] == "PermissionDenied"
        db.session.expire_all()
        assert product.stock_cached == 10

    def test_unknown_product_is_404(self, client, staff_headers):
        resp = client.post("/api/movements", json={
            "product_id": 999, "type": "RETURN", "qty": 1,
        }, headers=staff_headers)
        assert resp.status_code == 404
        assert resp.json["code"] == "ProductNotFound"

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "RETURN", "qty": 1},
            {"product_id": 1, "type": "RETURN", "qty": 1.5},
            {"product_id": 1, "type": "RETURN", "qty": "1e3"},
            {"product_id": 1, "type": "RETURN", "qty": 1, "actor_id": 1},
            {"product_id": 1, "type": "RETURN", "qty": 1, "note": "x" * 501},
            {"product_id": 1, "type": "RETURN", "qty": 10**19},
            {"product_id": 1, "type": "RETURN", "qty": -(10**19)},
            {"product_id": 1, "type": "SALE_OFFLINE", "qty": 1, "unit_price_cents": 10**12},
            {"product_id": 10**19, "type": "RETURN", "qty": 1},
        ],
    )
    def test_bad_payload_is_400(self, client, staff_headers, payload):
        resp = client.post("/api/movements", json=payload, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "ValidationError"

    def test_oversized_qty_leaves_stock_alone(self, client, staff_headers, make_product):
        product = make_product(stock=10)

        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "RETURN", "qty": 10**19,
        }, headers=staff_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "ValidationError"
        assert "qty" in resp.json["error"]
        db.session.expire_all()
        assert product.stock_cached == 10
        assert db.session.query(InventoryMovement).filter_by(product_id=product.id).count() == 1

    def test_zero_qty_is_400(self, client, staff_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "SALE_OFFLINE", "qty": 0,
        }, headers=staff_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "InvalidQuantity"


# =============================================================================
# LIST
# =============================================================================


class TestListMovementsRoute:

    def test_pagination(self, client, staff_headers, make_product):
        product = make_product(stock=10)
        for _ in range(3):
            client.post("/api/movements", json={
                "product_id": product.id, "type": "SALE_OFFLINE", "qty": 1,
            }, headers=staff_headers)

        first = client.get(f"/api/movements?product_id={product.id}&limit=2", headers=staff_headers)
        assert first.status_code == 200
        assert len(first.json["movements"]) == 2
        assert first.json["has_more"] is True

        cursor = first.json["next_cursor"]
        second = client.get(f"/api/movements?product_id={product.id}&limit=2&cursor={cursor}", headers=staff_headers)
        assert len(second.json["movements"]) == 2
        assert second.json["has_more"] is False
        assert second.json["movements"][-1]["type"] == MovementType.ADJUSTMENT

    def test_type_filter_and_date_only_end_bound(self, client, staff_headers, make_product):
        product = make_product(stock=10)
        client.post("/api/movements", json={
            "product_id": product.id, "type": "SALE_OFFLINE", "qty": 1,
        }, headers=staff_headers)
        today = db.session.query(InventoryMovement).first().created_at.strftime("%Y-%m-%d")

        resp = client.get(
            f"/api/movements?type=SALE_OFFLINE&start_date={today}&end_date={today}",
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert [m["type"] for m in resp.json["movements"]] == ["SALE_OFFLINE"]

    @pytest.mark.parametrize("query", ["limit=0", "limit=101", "limit=abc", "start_date=yesterday"])
    def test_bad_query_is_400(self, client, staff_headers, query):
        resp = client.get(f"/api/movements?{query}", headers=staff_headers)
        assert resp.status_code == 400


# =============================================================================
# BULK
# =============================================================================


class TestBulkRoute:

    def test_bulk_created(self, client, staff_headers, make_product):
        a = make_product(stock=5)
        b = make_product(stock=5)

        resp = client.post("/api/movements/bulk", json={"movements": [
            {"product_id": a.id, "type": "SALE_OFFLINE", "qty": 2},
            {"product_id": b.id, "type": "SALE_OFFLINE", "qty": 1},
        ]}, headers=staff_headers)

        assert resp.status_code == 201
        assert resp.json["count"] == 2

    def test_bulk_is_all_or_nothing(self, client, staff_headers, make_product):
        a = make_product(stock=5)
        b = make_product(stock=0)

        resp = client.post("/api/movements/bulk", json={"movements": [
            {"product_id": a.id, "type": "SALE_OFFLINE", "qty": 2},
            {"product_id": b.id, "type": "SALE_OFFLINE", "qty": 1},
        ]}, headers=staff_headers)

        assert resp.status_code == 409
        assert resp.json["details"]["index"] == 1
        db.session.expire_all()
        assert a.stock_cached == 5

    def test_bulk_oversized_qty_is_400(self, client, staff_headers, make_product):
        product = make_product(stock=5)

        resp = client.post("/api/movements/bulk", json={"movements": [
            {"product_id": product.id, "type": "SALE_OFFLINE", "qty": 1},
            {"product_id": product.id, "type": "RETURN", "qty": 10**19},
        ]}, headers=staff_headers)

        assert resp.status_code == 400
        assert resp.json["error"].startswith("movements[1]")
        db.session.expire_all()
        assert product.stock_cached == 5

    def test_empty_bulk_is_400(self, client, staff_headers):
        resp = client.post("/api/movements/bulk", json={"movements": []}, headers=staff_headers)
        assert resp.status_code == 400


# =============================================================================
# CANCEL / ADJUST
# =============================================================================


class TestCancelRoute:

    def _sale(self, client, headers, product, qty=3):
        resp = client.post("/api/movements", json={
            "product_id": product.id, "type": "SALE_OFFLINE", "qty": qty,
        }, headers=headers)
        return resp.json["movement"]["id"]

    def test_owner_cancels_once(self, client, owner_headers, staff_headers, make_product):
        product = make_product(stock=10)
        sale_id = self._sale(client, staff_headers, product)

        first = client.post(f"/api/movements/{sale_id}/cancel", headers=owner_headers)
        assert first.status_code == 201
        assert first.json["movement"]["reverses_movement_id"] == sale_id
        assert first.json["movement"]["qty"] == 3

        second = client.post("/api/movements/cancel-sale", json={"movement_id": sale_id}, headers=owner_headers)
        assert second.status_code == 409
        assert second.json["code"] == "AlreadyCancelled"

        db.session.expire_all()
        assert product.stock_cached == 10

    def test_staff_cannot_cancel(self, client, staff_headers, make_product):
        product = make_product(stock=10)
        sale_id = self._sale(client, staff_headers, product)

        resp = client.post(f"/api/movements/{sale_id}/cancel", headers=staff_headers)
        assert resp.status_code == 403

    def test_unknown_movement_is_404(self, client, owner_headers):
        resp = client.post("/api/movements/4040/cancel", headers=owner_headers)
        assert resp.status_code == 404
        assert resp.json["code"] == "MovementNotFound"

    def test_cancel_sale_requires_integer_id(self, client, owner_headers):
        resp = client.post("/api/movements/cancel-sale", json={"movement_id": "7"}, headers=owner_headers)
        assert resp.status_code == 400


class TestAdjustStockRoute:

    def test_owner_adjusts(self, client, owner_headers, make_product):
        product = make_product(stock=10)

        resp = client.post("/api/movements/adjust-stock", json={
            "product_id": product.id, "qty": -2, "reason": "breakage",
        }, headers=owner_headers)

        assert resp.status_code == 201
        assert resp.json["movement"]["note"] == "breakage"
        assert resp.json["product"]["stock_cached"] == 8

    def test_missing_reason(self, client, owner_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements/adjust-stock", json={
            "product_id": product.id, "qty": -2, "reason": "",
        }, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "ReasonRequired"

    def test_qty_bounds(self, client, owner_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements/adjust-stock", json={
            "product_id": product.id, "qty": 1001, "reason": "typo",
        }, headers=owner_headers)
        assert resp.status_code == 400

    def test_note_is_not_a_reason(self, client, owner_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements/adjust-stock", json={
            "product_id": product.id, "qty": -2, "note": "breakage",
        }, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Field not allowed: note"
        db.session.expire_all()
        assert product.stock_cached == 10

    def test_reason_too_long(self, client, owner_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements/adjust-stock", json={
            "product_id": product.id, "qty": -2, "reason": "x" * 501,
        }, headers=owner_headers)
        assert resp.status_code == 400
        assert "reason" in resp.json["error"]

    def test_staff_forbidden(self, client, staff_headers, make_product):
        product = make_product(stock=10)
        resp = client.post("/api/movements/adjust-stock", json={
            "product_id": product.id, "qty": 1, "reason": "recount",
        }, headers=staff_headers)
        assert resp.status_code == 403


# =============================================================================
# ANALYTICS
# =============================================================================


class TestAnalyticsRoutes:

    def test_owner_dashboard(self, client, owner_headers, make_product):
        make_product(stock=3)
        resp = client.get("/api/analytics/dashboard", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["low_stock_products"] == 1

    def test_owner_dashboard_forbidden_for_staff(self, client, staff_headers):
        resp = client.get("/api/analytics/dashboard", headers=staff_headers)
        assert resp.status_code == 403

    def test_staff_low_stock(self, client, staff_headers, make_product):
        make_product("Nearly gone", stock=2)
        resp = client.get("/api/analytics/low-stock?threshold=3", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["threshold"] == 3
        assert [p["name"] for p in resp.json["products"]] == ["Nearly gone"]

    def test_sales_trend_bad_days(self, client, owner_headers):
        resp = client.get("/api/analytics/sales-trend?days=0", headers=owner_headers)
        assert resp.status_code == 400

    def test_top_products(self, client, owner_headers):
        resp = client.get("/api/analytics/top-products?limit=5", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["products"] == []

    def test_staff_sees_staff_dashboard(self, client, staff_headers, make_product):
        make_product(stock=2)
        make_product(stock=50)
        resp = client.get("/api/analytics/staff-dashboard", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["total_products"] == 2
        assert resp.json["low_stock_products"] == 1
        assert resp.json["today_sales"] == 0


# =============================================================================
# UNEXPECTED ERRORS — 500
# =============================================================================


class TestUnexpectedErrors:

    def test_unhandled_exception_is_json_500(self, client, owner_headers, monkeypatch):
        from stockledger.services import reporting_service

        def boom(**kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(reporting_service, "top_products", boom)

        resp = client.get("/api/analytics/top-products", headers=owner_headers)

        assert resp.status_code == 500
        assert resp.is_json
        assert resp.json["error"] == "Internal server error"
        assert resp.json["code"] == "InternalError"
        assert "disk on fire" not in resp.get_data(as_text=True)

    def test_unknown_route_stays_404(self, client, owner_headers):
        resp = client.get("/api/nowhere", headers=owner_headers)
        assert resp.status_code == 404
