"""
Analytics aggregation tests.

Revenue and units are net of cancellations: a cancelled sale contributes
nothing to totals, top products or the trend.
"""

import pytest
from datetime import timedelta

from stockledger.extensions import db
from stockledger.permissions import MovementType
from stockledger.services import movement_service, reporting_service
from stockledger.services.reporting_service import ReportError
from stockledger.time_utils import utcnow


@pytest.fixture
def shop(make_product, owner, staff):
    """
    espresso: 10 in, 4 sold, 2 sold then cancelled -> 6 left
    tea:      3 in, 1 sold                         -> 2 left (low)
    kettle:   never stocked                        -> 0 (out)
    """
    espresso = make_product("Espresso", stock=10, price_cents=1000)
    tea = make_product("Tea", stock=3, price_cents=500)
    kettle = make_product("Kettle", stock=0, price_cents=200)

    def sell(product, qty):
        return movement_service.create_movement(
            product_id=product.id, movement_type=MovementType.SALE_OFFLINE, qty=qty,
            unit_price_cents=product.price_cents, actor_id=staff.id, actor_role=staff.role,
        )

    sell(espresso, 4)
    sell(tea, 1)
    cancelled = sell(espresso, 2)
    movement_service.cancel_sale_movement(cancelled.id, actor_id=owner.id, actor_role=owner.role)

    return {"espresso": espresso, "tea": tea, "kettle": kettle}


class TestDashboard:

    def test_totals(self, shop):
        metrics = reporting_service.dashboard_metrics(low_stock_threshold=5)

        assert metrics["total_products"] == 3
        assert metrics["total_movements"] == 6
        assert metrics["low_stock_products"] == 1
        assert metrics["out_of_stock_products"] == 1
        assert metrics["total_value_cents"] == 1000 * 6 + 500 * 2
        assert metrics["total_revenue_cents"] == 4000 + 500

    def test_today_window(self, shop):
        today = reporting_service.dashboard_metrics()["today"]

        assert today["sales"] == 7
        assert today["cancellations"] == 2
        assert today["returns"] == 0
        assert today["adjustments"] == 13
        assert today["losses"] == 0
        assert today["total_movements"] == 6

    def test_inactive_products_excluded(self, shop):
        shop["kettle"].is_active = False
        db.session.commit()

        metrics = reporting_service.dashboard_metrics()
        assert metrics["total_products"] == 2
        assert metrics["out_of_stock_products"] == 0

    def test_empty_shop(self, db_session):
        metrics = reporting_service.dashboard_metrics()
        assert metrics["total_products"] == 0
        assert metrics["total_revenue_cents"] == 0
        assert metrics["week"]["total_movements"] == 0


class TestTopProducts:

    def test_net_units_and_revenue(self, shop):
        rows = reporting_service.top_products(limit=10)

        assert [r["name"] for r in rows] == ["Espresso", "Tea"]
        assert rows[0]["units_sold"] == 4
        assert rows[0]["revenue_cents"] == 4000
        assert rows[0]["stock_cached"] == 6
        assert rows[1]["units_sold"] == 1

    def test_limit(self, shop):
        assert len(reporting_service.top_products(limit=1)) == 1

    def test_invalid_limit(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.top_products(limit=0)


class TestLowStock:

    def test_ascending_by_stock(self, shop):
        rows = reporting_service.low_stock_products(threshold=5)
        assert [r["name"] for r in rows] == ["Kettle", "Tea"]

    def test_threshold(self, shop):
        rows = reporting_service.low_stock_products(threshold=6)
        assert [r["name"] for r in rows] == ["Kettle", "Tea", "Espresso"]


class TestSalesTrend:

    def test_single_day_bucket(self, shop):
        now = utcnow()
        trend = reporting_service.sales_trend(days=7, now=now)

        assert trend["rows"] == [
            {"date": now.strftime("%Y-%m-%d"), "units": 5, "revenue_cents": 4500},
        ]
        assert trend["end"].endswith("Z")

    def test_window_excludes_older_days(self, shop):
        trend = reporting_service.sales_trend(days=1, now=utcnow() + timedelta(days=3))
        assert trend["rows"] == []

    @pytest.mark.parametrize("days", [0, 367])
    def test_invalid_days(self, db_session, days):
        with pytest.raises(ReportError):
            reporting_service.sales_trend(days=days)


class TestStaffDashboard:

    def test_today_counters(self, shop):
        metrics = reporting_service.staff_dashboard_metrics(low_stock_threshold=5)

        assert metrics["total_products"] == 3
        # tea (2) and kettle (0); espresso has 6
        assert metrics["low_stock_products"] == 2
        assert metrics["today_sales"] == 3
        assert metrics["today_units_sold"] == 5
        assert metrics["today_revenue_cents"] == 4500

    def test_yesterday_sales_not_counted(self, shop):
        metrics = reporting_service.staff_dashboard_metrics(now=utcnow() + timedelta(days=1))

        assert metrics["today_sales"] == 0
        assert metrics["today_revenue_cents"] == 0
        assert metrics["total_products"] == 3

    def test_negative_threshold(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.staff_dashboard_metrics(low_stock_threshold=-1)
