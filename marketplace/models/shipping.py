"""
배송 관련 데이터 모델
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field

from marketplace.models.base import MarketplaceModel, Money, ParsableEnum

DEFAULT_COUNTRY = "Bangladesh"
DEFAULT_ZONE_PRIORITY = 100


class ShippingScope(ParsableEnum):
    """배송존 적용 범위"""

    GLOBAL = "global"
    VENDOR = "vendor"


class ShippingRule(MarketplaceModel):
    """위치/주문금액 기반 배송 규칙 (빈 위치 필드는 와일드카드)"""

    id: Optional[str] = Field(None, alias="_id")
    label: str = ""
    country: str = DEFAULT_COUNTRY
    district: str = ""
    city: str = ""
    min_subtotal: Money = Decimal("0")
    max_subtotal: Optional[Money] = None
    shipping_fee: Money
    estimated_min_days: int = 2
    estimated_max_days: int = 5
    is_active: bool = True


class ShippingZone(MarketplaceModel):
    """우선순위를 가진 배송 규칙 묶음"""

    id: Optional[str] = None
    name: str
    scope: ShippingScope = ShippingScope.GLOBAL
    vendor: Optional[str] = None
    priority: int = DEFAULT_ZONE_PRIORITY
    is_active: bool = True
    rules: List[ShippingRule] = Field(default_factory=list)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Destination(MarketplaceModel):
    city: str = ""
    district: str = ""
    country: str = DEFAULT_COUNTRY


class MatchContext(Destination):
    """규칙 매칭 입력: 배송지 + 그룹 소계"""

    subtotal: Decimal = Decimal("0")


class CartLine(MarketplaceModel):
    """정규화된 장바구니 라인"""

    product_id: str
    quantity: int = 1
    unit_price: Money = Decimal("0")
    vendor: str = ""


class VendorGroup(MarketplaceModel):
    """벤더별 장바구니 묶음 (vendor_id None = 글로벌 그룹)"""

    vendor_id: Optional[str] = None
    subtotal: Money = Decimal("0")
    item_count: int = 0


class ShippingCandidate(MarketplaceModel):
    """매칭된 규칙 후보"""

    zone_id: Optional[str] = None
    zone_name: str = ""
    zone_priority: int = DEFAULT_ZONE_PRIORITY
    rule_label: str = ""
    shipping_fee: Money = Decimal("0")
    estimated_min_days: int = 0
    estimated_max_days: int = 0
    score: int = 0


class ShippingBreakdownRow(MarketplaceModel):
    vendor: Optional[str] = None
    vendor_name: str
    zone_id: Optional[str] = None
    zone_name: str
    rule_label: str
    item_count: int
    subtotal: Money
    shipping_fee: Money
    estimated_min_days: int
    estimated_max_days: int


class ShippingEstimate(MarketplaceModel):
    success: Literal[True] = True
    shipping_fee: Money
    estimated_min_days: int
    estimated_max_days: int
    breakdown: List[ShippingBreakdownRow] = Field(default_factory=list)
    destination: Destination


class EstimateFailure(MarketplaceModel):
    success: Literal[False] = False
    status: int = 400
    message: str
