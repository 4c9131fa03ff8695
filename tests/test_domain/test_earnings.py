"""
벤더 정산 집계 테스트
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from marketplace.domain.earnings import EarningsReporter, aggregate_earnings, item_net_amount
from marketplace.errors import NotFoundError
from marketplace.models.base import round_money
from marketplace.models.order import Order, OrderItem
from marketplace.monitoring import global_metrics

VENDOR_A = "a" * 24
VENDOR_B = "b" * 24
VENDOR_C = "c" * 24


def item(vendor, price, quantity=1, commission=0, net=None):
    return {
        "vendor": vendor,
        "price": price,
        "quantity": quantity,
        "vendorCommissionAmount": commission,
        "vendorNetAmount": net,
    }


@pytest.fixture
def order_documents():
    """대기/배송완료/취소 주문 3건"""
    return [
        {
            "id": "order-1",
            "orderStatus": "pending",
            "createdAt": "2024-04-01T10:00:00Z",
            "items": [
                item(VENDOR_A, 100, 2, commission=20, net=180),
                item(VENDOR_B, 50, 1, commission=5),
            ],
        },
        {
            "id": "order-2",
            "orderStatus": "delivered",
            "createdAt": "2024-05-10T10:00:00Z",
            "items": [item(VENDOR_A, 300, 1, commission=30, net=270)],
        },
        {
            "id": "order-3",
            "orderStatus": "cancelled",
            "createdAt": "2024-05-11T10:00:00Z",
            "items": [item(VENDOR_A, 1000, 1, commission=100, net=900)],
        },
    ]


@pytest.fixture
def orders(order_documents):
    return [Order.model_validate(doc) for doc in order_documents]


class TestItemNetAmount:
    def test_frozen_net_is_used(self):
        assert item_net_amount(OrderItem(price=100, vendor_commission_amount=10, vendor_net_amount=0)) == Decimal("0")

    def test_legacy_line_falls_back(self):
        assert item_net_amount(OrderItem(price=40, quantity=2, vendor_commission_amount=8)) == Decimal("72")


class TestAggregateEarnings:
    def test_report_with_vendor_list(self, orders):
        """취소 주문은 건수에 포함, 금액에서 제외"""
        report = aggregate_earnings(
            orders, vendors={VENDOR_A: "Vendor A", VENDOR_B: "Vendor B", VENDOR_C: "Vendor C"}
        )

        assert [row.vendor_id for row in report.vendors] == [VENDOR_A, VENDOR_B, VENDOR_C]

        row_a = report.vendors[0]
        assert row_a.store_name == "Vendor A"
        assert row_a.total_orders == 3
        assert row_a.pending_orders == 1
        assert row_a.delivered_orders == 1
        assert row_a.gross_sales == Decimal("500")
        assert row_a.commission_total == Decimal("50")
        assert row_a.net_earnings == Decimal("450")

        row_b = report.vendors[1]
        assert row_b.net_earnings == Decimal("45")

        row_c = report.vendors[2]
        assert row_c.total_orders == 0
        assert row_c.gross_sales == Decimal("0")

        summary = report.summary
        assert summary.total_vendors == 3
        assert summary.total_orders == 4
        assert summary.gross_sales == Decimal("550")
        assert summary.commission_total == Decimal("55")
        assert summary.net_earnings == Decimal("495")

    def test_summary_equals_sum_of_rows(self, orders):
        report = aggregate_earnings(orders)

        assert report.summary.gross_sales == round_money(sum(r.gross_sales for r in report.vendors))
        assert report.summary.net_earnings == round_money(sum(r.net_earnings for r in report.vendors))

    def test_vendor_filter(self, orders):
        report = aggregate_earnings(orders, vendor_filter=VENDOR_B)

        assert [row.vendor_id for row in report.vendors] == [VENDOR_B]
        assert report.summary.total_orders == 1

    def test_unknown_vendors_are_skipped_with_vendor_list(self, orders):
        report = aggregate_earnings(orders, vendors={VENDOR_B: "Vendor B"})

        assert [row.vendor_id for row in report.vendors] == [VENDOR_B]

    def test_lines_without_vendor_are_ignored(self):
        orders = [Order(id="o", items=[OrderItem(price=10)])]

        assert aggregate_earnings(orders).vendors == []

    def test_unknown_status_counts_as_pending(self):
        orders = [Order.model_validate({"id": "o", "orderStatus": "lost", "items": [item(VENDOR_A, 10)]})]

        assert aggregate_earnings(orders).vendors[0].pending_orders == 1


class TestEarningsReporter:
    @pytest.mark.asyncio
    async def test_vendor_report_with_date_range(self, storage, vendor_a, vendor_b, order_documents):
        storage.seed("orders", *order_documents)

        report = await EarningsReporter(storage).vendor_report(datetime(2024, 5, 1, tzinfo=timezone.utc), None)

        rows = {row.vendor_id: row for row in report.vendors}
        assert rows[VENDOR_A].total_orders == 2
        assert rows[VENDOR_A].gross_sales == Decimal("300")
        assert rows[VENDOR_B].total_orders == 0
        assert report.summary.total_vendors == 2

    @pytest.mark.asyncio
    async def test_vendor_report_records_latency(self, storage, vendor_a):
        latency = global_metrics.get_metric("reports.latency")
        before = len(latency.values)

        await EarningsReporter(storage).vendor_report()

        assert len(latency.values) == before + 1

    @pytest.mark.asyncio
    async def test_vendor_dashboard(self, storage, vendor_a, order_documents):
        storage.seed("orders", *order_documents)
        storage.seed(
            "products",
            {"vendor": VENDOR_A, "approvalStatus": "pending"},
            {"vendor": VENDOR_A, "approvalStatus": "rejected"},
            {"vendor": VENDOR_A},
            {"vendor": VENDOR_B, "approvalStatus": "approved"},
        )

        dashboard = await EarningsReporter(storage).vendor_dashboard(VENDOR_A)

        assert dashboard.total_products == 3
        assert dashboard.pending_products == 1
        assert dashboard.approved_products == 1
        assert dashboard.rejected_products == 1
        assert dashboard.total_orders == 3
        assert dashboard.net_earnings == Decimal("450")

    @pytest.mark.asyncio
    async def test_dashboard_for_unknown_vendor(self, storage):
        with pytest.raises(NotFoundError, match="Vendor not found"):
            await EarningsReporter(storage).vendor_dashboard("missing")
