"""
배송비 산정 엔진
장바구니를 벤더별로 묶고, 벤더 배송존 → 글로벌 배송존 → 기본값 순으로
가장 적합한 규칙을 골라 배송비와 예상 배송일을 합산한다
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from marketplace.domain.coercion import (
    as_boolean,
    as_non_negative_integer,
    as_non_negative_number,
    as_string,
    normalize_text,
    parse_json_maybe,
)
from marketplace.errors import InvalidRequestError, NotFoundError
from marketplace.models.base import round_money
from marketplace.models.shipping import (
    DEFAULT_COUNTRY,
    DEFAULT_ZONE_PRIORITY,
    CartLine,
    Destination,
    EstimateFailure,
    MatchContext,
    ShippingBreakdownRow,
    ShippingCandidate,
    ShippingEstimate,
    ShippingRule,
    ShippingScope,
    ShippingZone,
    VendorGroup,
)
from marketplace.monitoring import get_logger, global_metrics
from marketplace.storage.base import BaseStorage

logger = get_logger(__name__)

GLOBAL_GROUP_KEY = "global"
DEFAULT_MIN_DAYS = 3
DEFAULT_MAX_DAYS = 7


def specificity_score(rule: ShippingRule) -> int:
    """도시 4점, 구역 2점, 국가 1점 (합산)"""
    score = 0
    if normalize_text(rule.city):
        score += 4
    if normalize_text(rule.district):
        score += 2
    if normalize_text(rule.country):
        score += 1
    return score


def rule_matches(rule: ShippingRule, context: MatchContext) -> bool:
    """비어 있지 않은 위치 필드가 모두 일치하고 소계가 범위 안이면 매칭"""
    if not rule.is_active:
        return False

    country = normalize_text(context.country) or normalize_text(DEFAULT_COUNTRY)
    pairs = (
        (rule.country, country),
        (rule.district, normalize_text(context.district)),
        (rule.city, normalize_text(context.city)),
    )
    for expected, actual in pairs:
        expected = normalize_text(expected)
        if expected and expected != actual:
            return False

    subtotal = max(context.subtotal, Decimal("0"))
    if subtotal < rule.min_subtotal:
        return False
    if rule.max_subtotal is not None and subtotal > rule.max_subtotal:
        return False

    return True


def pick_best_candidate(
    zones: Iterable[ShippingZone], context: MatchContext
) -> Optional[ShippingCandidate]:
    """
    매칭 후보 중 최적 규칙 선택

    정렬 기준: 존 우선순위 오름차순 → 구체성 점수 내림차순
    → 배송비 오름차순 → 최대 배송일 오름차순 (동률은 입력 순서 유지)
    """
    candidates = []
    for zone in zones:
        for rule in zone.rules:
            if not rule_matches(rule, context):
                continue
            min_days = max(0, rule.estimated_min_days)
            candidates.append(
                ShippingCandidate(
                    zone_id=zone.id,
                    zone_name=zone.name,
                    zone_priority=zone.priority,
                    rule_label=rule.label,
                    shipping_fee=max(rule.shipping_fee, Decimal("0")),
                    estimated_min_days=min_days,
                    estimated_max_days=max(min_days, rule.estimated_max_days),
                    score=specificity_score(rule),
                )
            )

    if not candidates:
        return None

    candidates.sort(
        key=lambda c: (c.zone_priority, -c.score, c.shipping_fee, c.estimated_max_days)
    )
    return candidates[0]


def normalize_cart_items(items: Any) -> List[CartLine]:
    """장바구니 입력을 {productId, quantity≥1, unitPrice≥0, vendor} 라인으로 정규화"""
    if not isinstance(items, list):
        return []

    lines = []
    for item in items:
        if not isinstance(item, dict):
            continue
        product = item.get("product")
        product_doc = product if isinstance(product, dict) else {}

        product_id = item.get("productId") or product_doc.get("_id") or product_doc.get("id")
        if not product_id and product and not isinstance(product, dict):
            product_id = product
        if not product_id:
            continue

        raw_price = item.get("price")
        if raw_price is None:
            raw_price = product_doc.get("price", 0)

        vendor = item.get("vendor") or product_doc.get("vendor") or ""
        lines.append(
            CartLine(
                product_id=str(product_id),
                quantity=max(1, as_non_negative_integer(item.get("quantity"), 1).value),
                unit_price=as_non_negative_number(raw_price).value,
                vendor=str(vendor),
            )
        )

    return lines


def group_by_vendor(lines: Iterable[CartLine]) -> Dict[str, VendorGroup]:
    """벤더별 소계/수량 집계 (벤더 미상은 global 그룹)"""
    groups: Dict[str, VendorGroup] = {}
    for line in lines:
        key = line.vendor or GLOBAL_GROUP_KEY
        group = groups.get(key)
        if group is None:
            group = VendorGroup(vendor_id=None if key == GLOBAL_GROUP_KEY else key)
            groups[key] = group
        group.subtotal += line.unit_price * line.quantity
        group.item_count += line.quantity
    return groups


def parse_rules_input(rules_input: Any) -> List[ShippingRule]:
    """관리 화면 입력 규칙 정규화 (배송비가 없거나 음수면 제외)"""
    rules = parse_json_maybe(rules_input, [])
    if not isinstance(rules, list):
        return []

    parsed = []
    for rule in rules:
        if not isinstance(rule, dict):
            continue
        fee = as_non_negative_number(rule.get("shippingFee"), None).value
        if fee is None:
            continue

        min_days = as_non_negative_integer(rule.get("estimatedMinDays"), 0).value
        max_days = max(min_days, as_non_negative_integer(rule.get("estimatedMaxDays"), min_days).value)

        raw_max = rule.get("maxSubtotal")
        max_subtotal = None
        if raw_max is not None and as_string(raw_max).strip() != "":
            max_subtotal = as_non_negative_number(raw_max).value

        parsed.append(
            ShippingRule(
                label=as_string(rule.get("label")).strip(),
                country=as_string(rule.get("country") or DEFAULT_COUNTRY).strip(),
                district=as_string(rule.get("district")).strip(),
                city=as_string(rule.get("city")).strip(),
                min_subtotal=as_non_negative_number(rule.get("minSubtotal")).value,
                max_subtotal=max_subtotal,
                shipping_fee=fee,
                estimated_min_days=min_days,
                estimated_max_days=max_days,
                is_active=as_boolean(rule.get("isActive"), True).value,
            )
        )

    return parsed


class ShippingEstimator:
    """체크아웃 배송비 견적 (읽기 전용)"""

    def __init__(self, storage: BaseStorage, default_country: str = DEFAULT_COUNTRY):
        self.storage = storage
        self.default_country = default_country

    async def estimate(
        self,
        items: Any,
        city: str = "",
        district: str = "",
        country: Optional[str] = None,
    ) -> Union[ShippingEstimate, EstimateFailure]:
        """
        배송비 견적

        Args:
            items: 장바구니 라인 목록
            city, district, country: 배송지

        Returns:
            ShippingEstimate 또는 장바구니가 비어 있을 때 EstimateFailure
        """
        lines = normalize_cart_items(items)
        if not lines:
            return EstimateFailure(message="Cart items are required for shipping estimate")

        destination = Destination(
            city=as_string(city).strip(),
            district=as_string(district).strip(),
            country=as_string(country or self.default_country).strip(),
        )

        lines = await self._resolve_vendors(lines)
        groups = group_by_vendor(lines)
        vendor_names = await self._load_vendor_names(
            [g.vendor_id for g in groups.values() if g.vendor_id]
        )
        global_zones = await self._load_zones(ShippingScope.GLOBAL)

        breakdown = []
        for group in groups.values():
            context = MatchContext(subtotal=group.subtotal, **destination.model_dump())

            candidate = None
            if group.vendor_id:
                vendor_zones = await self._load_zones(ShippingScope.VENDOR, group.vendor_id)
                if vendor_zones:
                    candidate = pick_best_candidate(vendor_zones, context)
            if candidate is None:
                candidate = pick_best_candidate(global_zones, context)

            breakdown.append(self._breakdown_row(group, candidate, vendor_names))

        estimate = ShippingEstimate(
            shipping_fee=round_money(sum((row.shipping_fee for row in breakdown), Decimal("0"))),
            estimated_min_days=max(row.estimated_min_days for row in breakdown),
            estimated_max_days=max(row.estimated_max_days for row in breakdown),
            breakdown=breakdown,
            destination=destination,
        )
        global_metrics.increment("shipping.estimates")
        logger.info(
            f"배송비 견적: 그룹 {len(breakdown)}개, 배송비 {estimate.shipping_fee}, "
            f"{estimate.estimated_min_days}-{estimate.estimated_max_days}일"
        )
        return estimate

    def _breakdown_row(
        self,
        group: VendorGroup,
        candidate: Optional[ShippingCandidate],
        vendor_names: Dict[str, str],
    ) -> ShippingBreakdownRow:
        vendor_name = vendor_names.get(group.vendor_id, "Vendor") if group.vendor_id else "Global"
        common = {
            "vendor": group.vendor_id,
            "vendor_name": vendor_name,
            "item_count": group.item_count,
            "subtotal": round_money(group.subtotal),
        }

        if candidate is None:
            logger.debug(f"매칭 규칙 없음, 기본 배송 적용: {vendor_name}")
            global_metrics.increment("shipping.fallbacks")
            return ShippingBreakdownRow(
                zone_id=None,
                zone_name="Default",
                rule_label="Default shipping",
                shipping_fee=Decimal("0"),
                estimated_min_days=DEFAULT_MIN_DAYS,
                estimated_max_days=DEFAULT_MAX_DAYS,
                **common,
            )

        return ShippingBreakdownRow(
            zone_id=candidate.zone_id,
            zone_name=candidate.zone_name,
            rule_label=candidate.rule_label,
            shipping_fee=candidate.shipping_fee,
            estimated_min_days=candidate.estimated_min_days,
            estimated_max_days=candidate.estimated_max_days,
            **common,
        )

    async def _resolve_vendors(self, lines: List[CartLine]) -> List[CartLine]:
        """벤더 정보가 없는 라인은 상품 문서에서 일괄 조회"""
        unresolved = [line.product_id for line in lines if not line.vendor]
        if not unresolved:
            return lines

        products = await self.storage.find("products", {"id__in": unresolved})
        vendor_map = {str(p["id"]): str(p.get("vendor") or "") for p in products}

        return [
            line
            if line.vendor
            else line.model_copy(update={"vendor": vendor_map.get(line.product_id, "")})
            for line in lines
        ]

    async def _load_vendor_names(self, vendor_ids: List[str]) -> Dict[str, str]:
        if not vendor_ids:
            return {}
        vendors = await self.storage.find("vendors", {"id__in": vendor_ids})
        return {str(v["id"]): v.get("storeName") or "Vendor" for v in vendors}

    async def _load_zones(
        self, scope: ShippingScope, vendor_id: Optional[str] = None
    ) -> List[ShippingZone]:
        filters: Dict[str, Any] = {"scope": scope.value, "isActive": True}
        if vendor_id:
            filters["vendor"] = vendor_id
        documents = await self.storage.find(
            "shippingZones", filters, order_by=["priority", "createdAt"]
        )
        return [ShippingZone.model_validate(doc) for doc in documents]


class ShippingZoneService:
    """
    배송존 관리
    관리자는 global 범위, 벤더는 자신의 vendor 범위 배송존만 다룬다
    """

    def __init__(self, storage: BaseStorage):
        self.storage = storage

    @staticmethod
    def _scope_filters(scope: ShippingScope, vendor_id: Optional[str]) -> Dict[str, Any]:
        filters: Dict[str, Any] = {"scope": scope.value}
        if scope == ShippingScope.VENDOR:
            filters["vendor"] = vendor_id
        return filters

    async def list_zones(
        self, scope: ShippingScope, vendor_id: Optional[str] = None
    ) -> List[ShippingZone]:
        """범위 내 배송존 목록 (우선순위 오름차순, 최신순)"""
        documents = await self.storage.find(
            "shippingZones",
            self._scope_filters(scope, vendor_id),
            order_by=["priority", "-createdAt"],
        )
        return [ShippingZone.model_validate(doc) for doc in documents]

    async def get_zone(
        self, zone_id: str, scope: ShippingScope, vendor_id: Optional[str] = None
    ) -> ShippingZone:
        document = await self.storage.get("shippingZones", zone_id)
        if document is None or not matches_scope(document, scope, vendor_id):
            raise NotFoundError("Shipping zone", zone_id)
        return ShippingZone.model_validate(document)

    async def create_zone(
        self,
        data: Dict[str, Any],
        scope: ShippingScope,
        vendor_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ShippingZone:
        rules = parse_rules_input(data.get("rules"))
        if not rules:
            raise InvalidRequestError("At least one active shipping rule is required")

        name = as_string(data.get("name")).strip()
        if not name:
            raise InvalidRequestError("Zone name is required")

        zone = ShippingZone(
            name=name,
            scope=scope,
            vendor=vendor_id if scope == ShippingScope.VENDOR else None,
            priority=as_non_negative_integer(data.get("priority"), DEFAULT_ZONE_PRIORITY).value,
            is_active=as_boolean(data.get("isActive"), True).value,
            rules=rules,
            created_by=user_id,
            updated_by=user_id,
        )
        document = await self.storage.create("shippingZones", zone.to_document())
        logger.info(f"배송존 생성: {name} ({scope.value}, 규칙 {len(rules)}개)")
        return ShippingZone.model_validate(document)

    async def update_zone(
        self,
        zone_id: str,
        data: Dict[str, Any],
        scope: ShippingScope,
        vendor_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ShippingZone:
        zone = await self.get_zone(zone_id, scope, vendor_id)
        changes: Dict[str, Any] = {}

        if "name" in data:
            name = as_string(data.get("name")).strip()
            if not name:
                raise InvalidRequestError("Zone name is required")
            changes["name"] = name
        if "priority" in data:
            changes["priority"] = as_non_negative_integer(data.get("priority"), zone.priority).value
        if "isActive" in data:
            changes["is_active"] = as_boolean(data.get("isActive"), zone.is_active).value
        if "rules" in data:
            rules = parse_rules_input(data.get("rules"))
            if not rules:
                raise InvalidRequestError("At least one active shipping rule is required")
            changes["rules"] = rules
        changes["updated_by"] = user_id

        updated = zone.model_copy(update=changes)
        document = await self.storage.update("shippingZones", zone_id, updated.to_document())
        if document is None:
            raise NotFoundError("Shipping zone", zone_id)
        logger.info(f"배송존 수정: {zone_id}")
        return ShippingZone.model_validate(document)

    async def delete_zone(
        self, zone_id: str, scope: ShippingScope, vendor_id: Optional[str] = None
    ):
        await self.get_zone(zone_id, scope, vendor_id)
        if not await self.storage.delete("shippingZones", zone_id):
            raise NotFoundError("Shipping zone", zone_id)
        logger.info(f"배송존 삭제: {zone_id}")


def matches_scope(document: Dict[str, Any], scope: ShippingScope, vendor_id: Optional[str]) -> bool:
    if document.get("scope") != scope.value:
        return False
    if scope == ShippingScope.VENDOR:
        return str(document.get("vendor") or "") == str(vendor_id or "")
    return True
