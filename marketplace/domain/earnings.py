"""
벤더 정산 집계
주문 라인에 고정된 수수료/정산액을 벤더별로 합산한다 (수수료 재계산 없음)
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Set

from marketplace.errors import NotFoundError
from marketplace.models.base import round_money
from marketplace.models.order import (
    EarningsReport,
    EarningsSummary,
    Order,
    OrderItem,
    OrderStatus,
    VendorDashboard,
    VendorEarnings,
)
from marketplace.monitoring import get_logger, global_metrics, performance_tracker
from marketplace.storage.base import BaseStorage

logger = get_logger(__name__)


def item_net_amount(item: OrderItem) -> Decimal:
    """고정 정산액, 구버전 주문이면 라인 금액 - 수수료"""
    if item.vendor_net_amount is not None:
        return item.vendor_net_amount
    return item.item_total - item.vendor_commission_amount


class _VendorTally:
    """벤더 한 명의 집계 중간값"""

    def __init__(self, vendor_id: str, store_name: str = ""):
        self.vendor_id = vendor_id
        self.store_name = store_name
        self.orders: Set[str] = set()
        self.pending: Set[str] = set()
        self.delivered: Set[str] = set()
        self.gross = Decimal("0")
        self.commission = Decimal("0")
        self.net = Decimal("0")

    def add(self, order: Order, item: OrderItem):
        self.orders.add(order.id)
        if order.order_status == OrderStatus.PENDING:
            self.pending.add(order.id)
        if order.order_status == OrderStatus.DELIVERED:
            self.delivered.add(order.id)

        # 취소 주문은 건수에는 포함, 금액에서는 제외
        if order.order_status == OrderStatus.CANCELLED:
            return
        self.gross += item.item_total
        self.commission += item.vendor_commission_amount
        self.net += item_net_amount(item)

    def to_row(self) -> VendorEarnings:
        return VendorEarnings(
            vendor_id=self.vendor_id,
            store_name=self.store_name,
            total_orders=len(self.orders),
            pending_orders=len(self.pending),
            delivered_orders=len(self.delivered),
            gross_sales=round_money(self.gross),
            commission_total=round_money(self.commission),
            net_earnings=round_money(self.net),
        )


def aggregate_earnings(
    orders: Iterable[Order],
    vendor_filter: Optional[str] = None,
    vendors: Optional[Dict[str, str]] = None,
) -> EarningsReport:
    """
    벤더별/전체 정산 집계

    Args:
        orders: 주문 목록
        vendor_filter: 특정 벤더만 집계
        vendors: {벤더 ID: 상호명}. 주어지면 모든 벤더가 (0건이어도) 행을 갖고,
            목록에 없는 벤더의 라인은 무시한다

    Returns:
        총매출 내림차순 벤더 행과 요약
    """
    tallies: Dict[str, _VendorTally] = {}
    if vendors is not None:
        for vendor_id, store_name in vendors.items():
            if vendor_filter and vendor_id != vendor_filter:
                continue
            tallies[vendor_id] = _VendorTally(vendor_id, store_name)

    for order in orders:
        for item in order.items:
            vendor_id = str(item.vendor or "")
            if not vendor_id:
                continue
            if vendor_filter and vendor_id != vendor_filter:
                continue

            tally = tallies.get(vendor_id)
            if tally is None:
                if vendors is not None:
                    continue
                tally = tallies[vendor_id] = _VendorTally(vendor_id)
            tally.add(order, item)

    rows = sorted(
        (tally.to_row() for tally in tallies.values()),
        key=lambda row: row.gross_sales,
        reverse=True,
    )

    summary = EarningsSummary(
        total_vendors=len(rows),
        total_orders=sum(row.total_orders for row in rows),
        pending_orders=sum(row.pending_orders for row in rows),
        delivered_orders=sum(row.delivered_orders for row in rows),
        gross_sales=round_money(sum((row.gross_sales for row in rows), Decimal("0"))),
        commission_total=round_money(sum((row.commission_total for row in rows), Decimal("0"))),
        net_earnings=round_money(sum((row.net_earnings for row in rows), Decimal("0"))),
    )
    return EarningsReport(summary=summary, vendors=rows)


class EarningsReporter:
    """정산 리포트 조회"""

    def __init__(self, storage: BaseStorage):
        self.storage = storage

    async def _load_orders(
        self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ):
        filters: Dict[str, Any] = {}
        if date_from is not None:
            filters["createdAt__gte"] = date_from
        if date_to is not None:
            filters["createdAt__lte"] = date_to
        documents = await self.storage.find("orders", filters or None)
        return [Order.model_validate(doc) for doc in documents]

    async def vendor_report(
        self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> EarningsReport:
        """관리자용 전체 벤더 리포트 (주문 생성일 기간 필터)"""
        async with performance_tracker.track_async("earnings.vendor_report", "reports.latency"):
            vendor_documents = await self.storage.find("vendors")
            vendors = {str(doc["id"]): doc.get("storeName") or "" for doc in vendor_documents}
            orders = await self._load_orders(date_from, date_to)

            report = aggregate_earnings(orders, vendors=vendors)
        global_metrics.increment("reports.generated")
        logger.info(
            f"벤더 리포트 생성: 벤더 {report.summary.total_vendors}명, "
            f"주문 {len(orders)}건, 총매출 {report.summary.gross_sales}"
        )
        return report

    async def vendor_dashboard(self, vendor_id: str) -> VendorDashboard:
        """벤더 대시보드: 상품 승인 현황 + 본인 매출"""
        vendor = await self.storage.get("vendors", vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor", vendor_id)

        products = await self.storage.find("products", {"vendor": vendor_id})
        approval_counts: Dict[str, int] = {}
        for product in products:
            status = product.get("approvalStatus") or "approved"
            approval_counts[status] = approval_counts.get(status, 0) + 1

        orders = await self._load_orders()
        report = aggregate_earnings(orders, vendor_filter=vendor_id)
        row = report.vendors[0] if report.vendors else VendorEarnings(vendor_id=vendor_id)

        global_metrics.increment("reports.generated")
        return VendorDashboard(
            vendor_id=vendor_id,
            total_products=len(products),
            pending_products=approval_counts.get("pending", 0),
            approved_products=approval_counts.get("approved", 0),
            rejected_products=approval_counts.get("rejected", 0),
            total_orders=row.total_orders,
            pending_orders=row.pending_orders,
            delivered_orders=row.delivered_orders,
            gross_sales=row.gross_sales,
            commission_total=row.commission_total,
            net_earnings=row.net_earnings,
        )
