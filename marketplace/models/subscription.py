"""
벤더 구독 관련 데이터 모델
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import Field

from marketplace.models.base import MarketplaceModel, Money, ParsableEnum
from marketplace.models.product import CommissionType


def period_key(moment: datetime) -> str:
    """월 단위 카운터 키 (YYYY-MM, UTC 기준)"""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m")


class BillingCycle(ParsableEnum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        return {"monthly": 1, "quarterly": 3, "yearly": 12}[self.value]


class SubscriptionStatus(ParsableEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING = "pending"


class SubscriptionPlan(MarketplaceModel):
    """관리자가 정의하는 구독 플랜"""

    id: Optional[str] = None
    name: str
    description: str = ""
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    price: Money = Decimal("0")
    product_limit: int = 0
    upload_limit_per_month: int = 0
    featured_product_access: bool = False
    commission_type: CommissionType = CommissionType.INHERIT
    commission_value: Money = Decimal("0")
    is_active: bool = True
    sort_order: int = 0


class VendorSubscription(MarketplaceModel):
    """벤더 구독 (한도 0 = 무제한)"""

    id: Optional[str] = None
    vendor: str
    plan: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    starts_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime
    auto_renew: bool = False
    max_products: int = 0
    max_uploads_per_month: int = 0
    featured_product_access: bool = False
    commission_type: CommissionType = CommissionType.INHERIT
    commission_value: Money = Decimal("0")
    monthly_upload_count: int = 0
    monthly_upload_period: str = Field(
        default_factory=lambda: period_key(datetime.now(timezone.utc))
    )
    notes: str = ""
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SubscriptionLimits(MarketplaceModel):
    has_any_plan: bool
    has_active_subscription: bool
    subscription: Optional[VendorSubscription] = None
    max_products: int = 0
    max_uploads_per_month: int = 0
    featured_product_access: bool = False
    commission_type: CommissionType = CommissionType.INHERIT
    commission_value: Money = Decimal("0")


class UploadDecision(MarketplaceModel):
    """업로드 허용 여부 판정"""

    allowed: bool
    status: int = 200
    message: str
    limits: SubscriptionLimits
    current_product_count: Optional[int] = None
    monthly_upload_count: Optional[int] = None
    available: Optional[int] = None
