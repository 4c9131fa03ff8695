"""
상품 가격 정규화 엔진
판매 방식(simple/variable/digital/service/grouped)과 가격 유형(single/best/tba)에 따라
가격, 재고, 검증 오류를 일관되게 산출한다
"""

import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from marketplace.domain.coercion import (
    Sanitized,
    as_boolean,
    as_form_number,
    as_non_negative_integer,
    as_non_negative_number,
    as_nullable_non_negative_number,
    as_string,
    parse_json_maybe,
)
from marketplace.models.product import (
    RECURRING_MARKETPLACE_TYPES,
    CommissionType,
    MarketplacePayload,
    MarketplaceType,
    NormalizationResult,
    PriceType,
    Product,
    ProductVariation,
    RecurringInterval,
    VariationAttribute,
)
from marketplace.monitoring import get_logger

logger = get_logger(__name__)

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
MAX_RECURRING_INTERVAL_COUNT = 24


def normalize_variations(value: Any) -> List[ProductVariation]:
    """
    옵션 목록 정규화

    라벨이 없거나 가격이 유효하지 않은 항목은 제외하고,
    정가보다 큰 할인가는 정가로 맞춘다.
    """
    parsed = parse_json_maybe(value, value)
    if not isinstance(parsed, list):
        return []

    variations = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue

        label = as_string(entry.get("label")).strip()
        if not label:
            continue

        price = as_form_number(entry.get("price")).value
        if price is None:
            continue

        sale_price = as_nullable_non_negative_number(entry.get("salePrice")).value
        if sale_price is not None and sale_price > price:
            sale_price = price

        raw_attributes = entry.get("attributes")
        attributes = []
        if isinstance(raw_attributes, list):
            for attribute in raw_attributes:
                if not isinstance(attribute, dict):
                    continue
                key = as_string(attribute.get("key")).strip()
                attr_value = as_string(attribute.get("value")).strip()
                if key and attr_value:
                    attributes.append(VariationAttribute(key=key, value=attr_value))

        raw_id = as_string(entry.get("_id")).strip()
        variations.append(
            ProductVariation(
                id=raw_id if OBJECT_ID_PATTERN.match(raw_id) else None,
                label=label,
                sku=as_string(entry.get("sku")).strip(),
                price=price,
                sale_price=sale_price,
                stock=as_non_negative_integer(entry.get("stock"), 0).value,
                is_active=as_boolean(entry.get("isActive"), True).value,
                attributes=attributes,
            )
        )

    return variations


def normalize_grouped_products(value: Any, exclude_id: Optional[str] = None) -> List[str]:
    """묶음 상품 참조 정규화: 24자리 hex ID만, 중복/자기참조 제거"""
    parsed = parse_json_maybe(value, value)
    if isinstance(parsed, list):
        values = parsed
    elif isinstance(parsed, str):
        values = [entry.strip() for entry in parsed.split(",") if entry.strip()]
    else:
        values = []

    excluded = str(exclude_id) if exclude_id else None
    seen = set()
    result = []
    for entry in values:
        if isinstance(entry, dict):
            entry = (
                entry.get("_id") or entry.get("id") or entry.get("product") or entry.get("productId")
            )
        candidate = as_string(entry).strip()
        if not OBJECT_ID_PATTERN.match(candidate):
            continue
        if excluded and candidate == excluded:
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        result.append(candidate)

    return result


class ProductNormalizer:
    """상품 생성/수정 시 가격 관련 입력을 정규화하는 순수 함수 모음"""

    def normalize(
        self,
        raw: Dict[str, Any],
        existing: Optional[Product] = None,
        excluded_product_id: Optional[str] = None,
    ) -> NormalizationResult:
        """
        상품 입력 정규화

        Args:
            raw: 요청 본문 (camelCase 키)
            existing: 수정 시 기존 상품 (입력에 없는 필드의 기본값)
            excluded_product_id: 묶음 상품 목록에서 제외할 자기 자신 ID

        Returns:
            오류 여부와 무관하게 정규화된 payload를 담은 결과
        """
        raw = raw or {}
        current = existing.to_document() if existing is not None else {}
        clamped: List[str] = []

        def read(key: str, default: Any = None) -> Any:
            if key in raw:
                return raw[key]
            return current.get(key, default)

        def track(field: str, sanitized: Sanitized) -> Any:
            if sanitized.clamped:
                clamped.append(field)
            return sanitized.value

        marketplace_type = MarketplaceType.parse(
            read("marketplaceType"), current.get("marketplaceType")
        )
        price_type = PriceType.parse(read("priceType"), current.get("priceType"))
        commission_type = CommissionType.parse(
            read("commissionType"), current.get("commissionType")
        )
        recurring_interval = RecurringInterval.parse(
            read("recurringInterval"), current.get("recurringInterval")
        )

        parsed_price: Optional[Decimal] = track(
            "price", as_form_number(read("price"))
        )
        parsed_sale_price: Optional[Decimal] = track(
            "salePrice", as_nullable_non_negative_number(read("salePrice"))
        )
        price = parsed_price if parsed_price is not None else Decimal("0")
        sale_price = parsed_sale_price
        if sale_price is not None and parsed_price is not None and sale_price > parsed_price:
            clamped.append("salePrice")
            sale_price = None

        interval_count = track(
            "recurringIntervalCount",
            as_non_negative_integer(read("recurringIntervalCount"), 1),
        )

        payload: Dict[str, Any] = {
            "marketplace_type": marketplace_type,
            "price_type": price_type,
            "commission_type": commission_type,
            "commission_value": track(
                "commissionValue", as_non_negative_number(read("commissionValue"))
            ),
            "commission_fixed": track(
                "commissionFixed", as_non_negative_number(read("commissionFixed"))
            ),
            "is_recurring": track(
                "isRecurring",
                as_boolean(read("isRecurring"), bool(current.get("isRecurring", False))),
            ),
            "recurring_interval": recurring_interval,
            "recurring_interval_count": min(MAX_RECURRING_INTERVAL_COUNT, max(1, interval_count)),
            "recurring_total_cycles": track(
                "recurringTotalCycles", as_non_negative_integer(read("recurringTotalCycles"), 0)
            ),
            "recurring_trial_days": track(
                "recurringTrialDays", as_non_negative_integer(read("recurringTrialDays"), 0)
            ),
            "sku": as_string(read("sku")).strip(),
            "price": price,
            "sale_price": sale_price,
            "stock": track("stock", as_non_negative_integer(read("stock"), 0)),
            "low_stock_threshold": track(
                "lowStockThreshold", as_non_negative_integer(read("lowStockThreshold"), 5)
            ),
            "allow_backorder": track("allowBackorder", as_boolean(read("allowBackorder"))),
            "show_stock_to_public": track(
                "showStockToPublic", as_boolean(read("showStockToPublic"))
            ),
            "delivery_min_days": track(
                "deliveryMinDays", as_non_negative_integer(read("deliveryMinDays"), 2)
            ),
            "delivery_max_days": track(
                "deliveryMaxDays", as_non_negative_integer(read("deliveryMaxDays"), 5)
            ),
            "download_url": as_string(read("downloadUrl")).strip(),
            "service_duration_days": track(
                "serviceDurationDays", as_non_negative_integer(read("serviceDurationDays"), 0)
            ),
            "variations": normalize_variations(read("variations", [])),
            "grouped_products": normalize_grouped_products(
                read("groupedProducts", []), excluded_product_id
            ),
        }

        if payload["delivery_max_days"] < payload["delivery_min_days"]:
            clamped.append("deliveryMaxDays")
            payload["delivery_max_days"] = payload["delivery_min_days"]

        self._apply_commission_rules(payload)

        if not payload["is_recurring"]:
            self._reset_recurring(payload)

        errors = self._apply_type_rules(payload, parsed_price)

        result = NormalizationResult(
            payload=MarketplacePayload(**payload), errors=errors, clamped_fields=clamped
        )

        if errors:
            logger.debug(f"상품 정규화 오류 {len(errors)}건: {errors}")

        return result

    @staticmethod
    def _apply_commission_rules(payload: Dict[str, Any]):
        """수수료 유형별 불필요한 값 정리"""
        commission_type = payload["commission_type"]

        if commission_type == CommissionType.INHERIT:
            payload["commission_value"] = Decimal("0")
            payload["commission_fixed"] = Decimal("0")
        elif commission_type == CommissionType.PERCENTAGE:
            payload["commission_fixed"] = Decimal("0")
        elif commission_type == CommissionType.FIXED:
            if payload["commission_fixed"] <= 0:
                payload["commission_fixed"] = payload["commission_value"]
            payload["commission_value"] = Decimal("0")

    @staticmethod
    def _reset_recurring(payload: Dict[str, Any]):
        payload["recurring_interval"] = RecurringInterval.MONTHLY
        payload["recurring_interval_count"] = 1
        payload["recurring_total_cycles"] = 0
        payload["recurring_trial_days"] = 0

    def _apply_type_rules(
        self, payload: Dict[str, Any], parsed_price: Optional[Decimal]
    ) -> List[str]:
        """판매 방식/가격 유형별 파생값 계산 및 검증 오류 수집"""
        errors: List[str] = []
        marketplace_type = payload["marketplace_type"]
        price_type = payload["price_type"]
        composite = marketplace_type in (MarketplaceType.VARIABLE, MarketplaceType.GROUPED)

        if parsed_price is None and not composite and price_type != PriceType.TBA:
            errors.append("Valid price is required")

        if not composite:
            if price_type == PriceType.SINGLE:
                if parsed_price is None or parsed_price <= 0:
                    errors.append("Single price requires a valid price")
                payload["sale_price"] = None

            elif price_type == PriceType.BEST:
                regular = payload["price"]
                discounted = payload["sale_price"]
                if regular <= 0:
                    errors.append("Best price requires a valid previous price")
                if discounted is None or discounted <= 0:
                    errors.append("Best price requires a valid new price")
                elif discounted >= regular:
                    errors.append("Best price new price must be lower than previous price")

            elif price_type == PriceType.TBA:
                payload["price"] = Decimal("0")
                payload["sale_price"] = None
                payload["stock"] = 0
                payload["allow_backorder"] = False
        else:
            payload["price_type"] = PriceType.SINGLE

        if marketplace_type == MarketplaceType.VARIABLE:
            self._derive_variable_pricing(payload, errors)

        if marketplace_type == MarketplaceType.GROUPED:
            if not payload["grouped_products"]:
                errors.append("At least one grouped product is required for grouped product type")
            payload["stock"] = 0
            payload["sale_price"] = None

        if marketplace_type == MarketplaceType.DIGITAL and not payload["download_url"]:
            errors.append("Download URL is required for digital products")

        if payload["is_recurring"]:
            if payload["price_type"] == PriceType.TBA:
                errors.append("Recurring products cannot use TBA price type")
            if marketplace_type not in RECURRING_MARKETPLACE_TYPES:
                errors.append(
                    "Recurring products are allowed only for simple, digital, or service types"
                )

        return errors

    @staticmethod
    def _derive_variable_pricing(payload: Dict[str, Any], errors: List[str]):
        """가변 상품: 가격 = 활성 옵션 최저 실판매가, 재고 = 전체 옵션 재고 합"""
        variations: List[ProductVariation] = payload["variations"]

        if not variations:
            errors.append("At least one variation is required for variable products")
        else:
            active_prices = [v.effective_price for v in variations if v.is_active]
            payload["price"] = min(active_prices) if active_prices else variations[0].price
            payload["stock"] = sum(v.stock for v in variations)

        payload["sale_price"] = None


_default_normalizer = ProductNormalizer()


def normalize_product(
    raw: Dict[str, Any],
    existing: Optional[Product] = None,
    excluded_product_id: Optional[str] = None,
) -> NormalizationResult:
    """ProductNormalizer.normalize 단축 함수"""
    return _default_normalizer.normalize(raw, existing, excluded_product_id)
