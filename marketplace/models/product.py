"""
상품 데이터 모델 정의
가격 정규화에 관련된 필드 중심
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from marketplace.models.base import MarketplaceModel, Money, ParsableEnum


class MarketplaceType(ParsableEnum):
    """판매 방식"""

    SIMPLE = "simple"
    VARIABLE = "variable"
    DIGITAL = "digital"
    SERVICE = "service"
    GROUPED = "grouped"


class PriceType(ParsableEnum):
    """가격 유형"""

    SINGLE = "single"  # 단일 가격
    BEST = "best"  # 정가 + 할인가
    TBA = "tba"  # 가격 미정


class CommissionType(ParsableEnum):
    """수수료 유형"""

    INHERIT = "inherit"
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    HYBRID = "hybrid"


class RecurringInterval(ParsableEnum):
    """정기 결제 주기 (첫 멤버가 기본값)"""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


RECURRING_MARKETPLACE_TYPES = (
    MarketplaceType.SIMPLE,
    MarketplaceType.DIGITAL,
    MarketplaceType.SERVICE,
)


class VariationAttribute(MarketplaceModel):
    key: str
    value: str


class ProductVariation(MarketplaceModel):
    """가변 상품의 옵션 조합"""

    id: Optional[str] = Field(None, alias="_id")
    label: str
    sku: str = ""
    price: Money
    sale_price: Optional[Money] = None
    stock: int = 0
    is_active: bool = True
    attributes: List[VariationAttribute] = Field(default_factory=list)

    @property
    def effective_price(self) -> Decimal:
        """할인가가 있으면 할인가, 없으면 정가"""
        return self.sale_price if self.sale_price is not None else self.price


class MarketplacePayload(MarketplaceModel):
    """정규화된 가격/재고/판매 방식 필드"""

    marketplace_type: MarketplaceType = MarketplaceType.SIMPLE
    price_type: PriceType = PriceType.SINGLE

    commission_type: CommissionType = CommissionType.INHERIT
    commission_value: Money = Decimal("0")
    commission_fixed: Money = Decimal("0")

    is_recurring: bool = False
    recurring_interval: RecurringInterval = RecurringInterval.MONTHLY
    recurring_interval_count: int = 1
    recurring_total_cycles: int = 0
    recurring_trial_days: int = 0

    sku: str = ""
    price: Money = Decimal("0")
    sale_price: Optional[Money] = None
    stock: int = 0
    low_stock_threshold: int = 5
    allow_backorder: bool = False
    show_stock_to_public: bool = False

    delivery_min_days: int = 2
    delivery_max_days: int = 5
    download_url: str = ""
    service_duration_days: int = 0

    variations: List[ProductVariation] = Field(default_factory=list)
    grouped_products: List[str] = Field(default_factory=list)


class Product(MarketplacePayload):
    """저장된 상품 문서"""

    id: Optional[str] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    title: str = ""
    description: str = ""
    is_active: bool = True
    approval_status: str = "approved"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NormalizationResult(MarketplaceModel):
    """정규화 결과: payload는 오류가 있어도 항상 반환된다"""

    payload: MarketplacePayload
    errors: List[str] = Field(default_factory=list)
    clamped_fields: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors
