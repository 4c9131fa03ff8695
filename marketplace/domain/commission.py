"""
수수료 계산 모듈
주문 생성 시점에 상품 → 카테고리 → 벤더 → 글로벌 순으로 규칙을 골라
라인별 수수료와 정산액을 고정한다
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import Field

from marketplace.domain.coercion import as_non_negative_number
from marketplace.models.base import MarketplaceModel, Money, round_money
from marketplace.models.order import CommissionSource, OrderItem
from marketplace.models.product import CommissionType

HUNDRED = Decimal("100")


class CommissionConfig(MarketplaceModel):
    commission_type: CommissionType = CommissionType.INHERIT
    commission_value: Money = Decimal("0")
    commission_fixed: Money = Decimal("0")


class CommissionRule(CommissionConfig):
    source: CommissionSource = CommissionSource.NONE


class CommissionAmount(MarketplaceModel):
    commission: Money = Decimal("0")
    net: Money = Decimal("0")
    rule: CommissionRule = Field(default_factory=CommissionRule)


GLOBAL_DEFAULT = CommissionConfig(
    commission_type=CommissionType.PERCENTAGE, commission_value=Decimal("10")
)
_INHERIT = CommissionConfig()


def normalize_commission_config(
    source: Optional[Dict[str, Any]], fallback: CommissionConfig = _INHERIT
) -> CommissionConfig:
    """문서의 commissionType/Value/Fixed 필드를 설정 객체로 정규화"""
    source = source or {}
    return CommissionConfig(
        commission_type=CommissionType.parse(
            source.get("commissionType"), fallback.commission_type
        ),
        commission_value=as_non_negative_number(
            source.get("commissionValue"), fallback.commission_value
        ).value,
        commission_fixed=as_non_negative_number(
            source.get("commissionFixed"), fallback.commission_fixed
        ).value,
    )


def pick_commission_source(
    product: Optional[Dict[str, Any]] = None,
    category: Optional[Dict[str, Any]] = None,
    vendor: Optional[Dict[str, Any]] = None,
    global_config: Optional[Dict[str, Any]] = None,
) -> CommissionRule:
    """inherit가 아닌 첫 번째 규칙을 선택"""
    for source, document in (
        (CommissionSource.PRODUCT, product),
        (CommissionSource.CATEGORY, category),
        (CommissionSource.VENDOR, vendor),
    ):
        config = normalize_commission_config(document)
        if config.commission_type != CommissionType.INHERIT:
            return CommissionRule(source=source, **config.model_dump())

    config = normalize_commission_config(global_config, GLOBAL_DEFAULT)
    if config.commission_type == CommissionType.INHERIT:
        return CommissionRule()
    return CommissionRule(source=CommissionSource.GLOBAL, **config.model_dump())


def _fixed_amount(config: CommissionConfig) -> Decimal:
    if config.commission_fixed > 0:
        return config.commission_fixed
    return config.commission_value


def calculate_commission(item_total: Any, rule: CommissionRule) -> CommissionAmount:
    """
    수수료 계산

    percentage: 금액 × 비율 / 100
    fixed: 고정액 (없으면 value)
    hybrid: 고정액 + 금액 × 비율 / 100
    결과는 [0, 라인 금액] 범위로 제한된다.
    """
    total = round_money(as_non_negative_number(item_total).value)
    commission = Decimal("0")

    if rule.commission_type == CommissionType.PERCENTAGE:
        commission = total * rule.commission_value / HUNDRED
    elif rule.commission_type == CommissionType.FIXED:
        commission = _fixed_amount(rule)
    elif rule.commission_type == CommissionType.HYBRID:
        commission = rule.commission_fixed + total * rule.commission_value / HUNDRED

    commission = round_money(min(max(commission, Decimal("0")), total))
    return CommissionAmount(commission=commission, net=round_money(total - commission), rule=rule)


def freeze_order_item(
    item: OrderItem,
    product: Optional[Dict[str, Any]] = None,
    category: Optional[Dict[str, Any]] = None,
    vendor: Optional[Dict[str, Any]] = None,
    global_config: Optional[Dict[str, Any]] = None,
) -> OrderItem:
    """주문 라인에 수수료 스냅샷을 기록한 사본 반환"""
    rule = pick_commission_source(product, category, vendor, global_config)
    amount = calculate_commission(item.item_total, rule)

    return item.model_copy(
        update={
            "vendor_commission_amount": amount.commission,
            "vendor_commission_source": rule.source,
            "vendor_commission_type": rule.commission_type,
            "vendor_commission_value": rule.commission_value,
            "vendor_commission_fixed": rule.commission_fixed,
            "vendor_net_amount": amount.net,
        }
    )
