"""
주문 및 정산 관련 데이터 모델
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from marketplace.models.base import MarketplaceModel, Money, ParsableEnum
from marketplace.models.product import CommissionType


class OrderStatus(ParsableEnum):
    """주문 상태"""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class CommissionSource(ParsableEnum):
    """수수료 규칙 출처"""

    NONE = "none"
    GLOBAL = "global"
    VENDOR = "vendor"
    CATEGORY = "category"
    PRODUCT = "product"


class OrderItem(MarketplaceModel):
    """주문 라인 (수수료는 주문 생성 시점에 고정된다)"""

    product: Optional[str] = None
    vendor: Optional[str] = None
    title: str = ""
    variation_id: Optional[str] = None
    quantity: int = 1
    price: Money = Decimal("0")

    vendor_commission_amount: Money = Decimal("0")
    vendor_commission_source: CommissionSource = CommissionSource.NONE
    vendor_commission_type: CommissionType = CommissionType.INHERIT
    vendor_commission_value: Money = Decimal("0")
    vendor_commission_fixed: Money = Decimal("0")
    # 구버전 주문에는 없을 수 있다
    vendor_net_amount: Optional[Money] = None

    @property
    def item_total(self) -> Decimal:
        return self.price * self.quantity


class Order(MarketplaceModel):
    id: str
    user: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    order_status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("order_status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return OrderStatus.parse(v)


class VendorEarnings(MarketplaceModel):
    """벤더별 정산 집계"""

    vendor_id: str
    store_name: str = ""
    total_orders: int = 0
    pending_orders: int = 0
    delivered_orders: int = 0
    gross_sales: Money = Decimal("0")
    commission_total: Money = Decimal("0")
    net_earnings: Money = Decimal("0")


class EarningsSummary(MarketplaceModel):
    total_vendors: int = 0
    total_orders: int = 0
    pending_orders: int = 0
    delivered_orders: int = 0
    gross_sales: Money = Decimal("0")
    commission_total: Money = Decimal("0")
    net_earnings: Money = Decimal("0")


class EarningsReport(MarketplaceModel):
    summary: EarningsSummary
    vendors: List[VendorEarnings] = Field(default_factory=list)


class VendorDashboard(MarketplaceModel):
    """벤더 대시보드 통계"""

    vendor_id: str
    total_products: int = 0
    pending_products: int = 0
    approved_products: int = 0
    rejected_products: int = 0
    total_orders: int = 0
    pending_orders: int = 0
    delivered_orders: int = 0
    gross_sales: Money = Decimal("0")
    commission_total: Money = Decimal("0")
    net_earnings: Money = Decimal("0")
