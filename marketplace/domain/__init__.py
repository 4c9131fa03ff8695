"""
도메인 로직
가격 정규화, 배송비 산정, 구독 한도, 수수료/정산
"""

from marketplace.domain.commission import calculate_commission, freeze_order_item, pick_commission_source
from marketplace.domain.earnings import EarningsReporter, aggregate_earnings
from marketplace.domain.pricing import ProductNormalizer, normalize_product
from marketplace.domain.shipping import ShippingEstimator, ShippingZoneService, pick_best_candidate
from marketplace.domain.subscription import SubscriptionGuard, evaluate_upload, reconcile

__all__ = [
    "ProductNormalizer",
    "normalize_product",
    "ShippingEstimator",
    "ShippingZoneService",
    "pick_best_candidate",
    "SubscriptionGuard",
    "evaluate_upload",
    "reconcile",
    "calculate_commission",
    "freeze_order_item",
    "pick_commission_source",
    "EarningsReporter",
    "aggregate_earnings",
]
