"""
구독 한도 검사
상품 업로드 전에 벤더 구독의 상품 수/월간 업로드 한도를 확인하고,
업로드 성공 후 월간 카운터를 증가시킨다

검사와 증가는 별도 호출이다. 같은 벤더의 동시 대량 업로드는
한도를 소폭 초과할 수 있다 (원자적 증가 없음, 마지막 쓰기 우선).
"""

import calendar
from datetime import datetime
from typing import Any, Dict, List, Optional

from marketplace.domain.coercion import as_non_negative_integer, as_string
from marketplace.errors import InvalidRequestError, NotFoundError
from marketplace.models.base import ensure_utc, utc_now
from marketplace.models.subscription import (
    SubscriptionLimits,
    SubscriptionPlan,
    SubscriptionStatus,
    UploadDecision,
    VendorSubscription,
    period_key,
)
from marketplace.monitoring import get_logger, global_metrics
from marketplace.storage.base import BaseStorage

logger = get_logger(__name__)

COLLECTION = "vendorSubscriptions"
ALLOWED_STATUSES = {status.value for status in SubscriptionStatus}


def add_months(moment: datetime, months: int) -> datetime:
    """월 더하기 (말일 초과 시 해당 월 말일로 맞춤)"""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def reconcile(subscription: VendorSubscription, now: datetime) -> VendorSubscription:
    """
    시간 경과에 따른 상태 반영 (순수 함수)

    - 만료 시각이 지난 active 구독은 expired
    - 저장된 카운터 기간이 현재 월과 다르면 카운터 0으로 초기화
    """
    changes: Dict[str, Any] = {}

    if (
        subscription.status == SubscriptionStatus.ACTIVE
        and ensure_utc(subscription.expires_at) < ensure_utc(now)
    ):
        changes["status"] = SubscriptionStatus.EXPIRED

    current_period = period_key(ensure_utc(now))
    if subscription.monthly_upload_period != current_period:
        changes["monthly_upload_period"] = current_period
        changes["monthly_upload_count"] = 0

    if not changes:
        return subscription
    return subscription.model_copy(update=changes)


def no_subscription_limits(has_any_plan: bool) -> SubscriptionLimits:
    return SubscriptionLimits(has_any_plan=has_any_plan, has_active_subscription=False)


def limits_from_subscription(subscription: VendorSubscription) -> SubscriptionLimits:
    return SubscriptionLimits(
        has_any_plan=True,
        has_active_subscription=True,
        subscription=subscription,
        max_products=subscription.max_products,
        max_uploads_per_month=subscription.max_uploads_per_month,
        featured_product_access=subscription.featured_product_access,
        commission_type=subscription.commission_type,
        commission_value=subscription.commission_value,
    )


def evaluate_upload(
    limits: SubscriptionLimits, requested_count: int, current_product_count: int = 0
) -> UploadDecision:
    """
    업로드 허용 여부 판정 (순수 함수)

    Args:
        limits: 벤더 구독 한도
        requested_count: 업로드 요청 수 (1 미만은 1로 간주)
        current_product_count: 벤더의 현재 상품 수

    Returns:
        판정 결과 (한도 0은 무제한)
    """
    amount = max(1, requested_count)

    if not limits.has_active_subscription:
        if limits.has_any_plan:
            return UploadDecision(
                allowed=False,
                status=403,
                message=(
                    "You need an active subscription plan to upload products. "
                    "Please subscribe first."
                ),
                limits=limits,
            )
        return UploadDecision(
            allowed=True,
            message="No active subscription plans configured. Upload is allowed.",
            limits=limits,
        )

    if limits.max_products > 0 and current_product_count + amount > limits.max_products:
        available = max(0, limits.max_products - current_product_count)
        return UploadDecision(
            allowed=False,
            status=400,
            message=f"Plan product limit reached. Remaining slots: {available}",
            limits=limits,
            current_product_count=current_product_count,
            available=available,
        )

    monthly_upload_count = limits.subscription.monthly_upload_count
    if (
        limits.max_uploads_per_month > 0
        and monthly_upload_count + amount > limits.max_uploads_per_month
    ):
        available = max(0, limits.max_uploads_per_month - monthly_upload_count)
        return UploadDecision(
            allowed=False,
            status=400,
            message=f"Monthly upload limit reached. Remaining uploads this month: {available}",
            limits=limits,
            monthly_upload_count=monthly_upload_count,
            available=available,
        )

    return UploadDecision(
        allowed=True,
        message="Upload allowed",
        limits=limits,
        current_product_count=current_product_count,
        monthly_upload_count=monthly_upload_count,
    )


class SubscriptionGuard:
    """벤더 구독 조회/한도 검사/구독 신청"""

    def __init__(self, storage: BaseStorage):
        self.storage = storage

    async def _persist_reconciled(
        self, before: VendorSubscription, after: VendorSubscription
    ) -> VendorSubscription:
        if after is before:
            return after

        changes = {}
        if after.status != before.status:
            changes["status"] = after.status.value
            logger.info(f"구독 만료 처리: {after.id} (vendor={after.vendor})")
        if after.monthly_upload_period != before.monthly_upload_period:
            changes["monthlyUploadPeriod"] = after.monthly_upload_period
            changes["monthlyUploadCount"] = after.monthly_upload_count
            logger.debug(f"월간 업로드 카운터 초기화: {after.id} → {after.monthly_upload_period}")

        await self.storage.update(COLLECTION, after.id, changes)
        return after

    async def get_active_subscription(
        self, vendor_id: str, now: Optional[datetime] = None
    ) -> Optional[VendorSubscription]:
        """
        현재 유효한 구독 조회
        만료된 active 구독은 expired로 바꾸고, 선택된 구독의 월간 카운터를 동기화한다
        """
        if not vendor_id:
            return None
        now = now or utc_now()

        documents = await self.storage.find(
            COLLECTION,
            {"vendor": vendor_id, "status": SubscriptionStatus.ACTIVE.value},
            order_by=["-expiresAt", "-createdAt"],
        )

        current = None
        for document in documents:
            subscription = VendorSubscription.model_validate(document)
            reconciled = reconcile(subscription, now)
            if reconciled.status != SubscriptionStatus.ACTIVE:
                await self._persist_reconciled(subscription, reconciled)
            elif current is None:
                # 만료일 내림차순 정렬상 첫 번째 유효 구독
                current = await self._persist_reconciled(subscription, reconciled)

        return current

    async def has_any_plan(self) -> bool:
        return await self.storage.count("subscriptionPlans", {"isActive": True}) > 0

    async def get_limits(self, vendor_id: str, now: Optional[datetime] = None) -> SubscriptionLimits:
        subscription = await self.get_active_subscription(vendor_id, now)
        if subscription is None:
            return no_subscription_limits(await self.has_any_plan())
        return limits_from_subscription(subscription)

    async def can_upload(
        self, vendor_id: str, requested_count: Any = 1, now: Optional[datetime] = None
    ) -> UploadDecision:
        """업로드 가능 여부 확인 (카운터는 증가시키지 않는다)"""
        amount = max(1, as_non_negative_integer(requested_count, 1).value)
        limits = await self.get_limits(vendor_id, now)

        current_product_count = 0
        if limits.has_active_subscription:
            current_product_count = await self.storage.count("products", {"vendor": vendor_id})

        decision = evaluate_upload(limits, amount, current_product_count)
        if decision.allowed:
            global_metrics.increment("uploads.allowed")
        else:
            global_metrics.increment("uploads.denied")
            logger.info(f"업로드 거부 (vendor={vendor_id}, 요청 {amount}개): {decision.message}")
        return decision

    async def record_upload(
        self,
        subscription: Optional[VendorSubscription],
        count: Any = 1,
        now: Optional[datetime] = None,
    ) -> Optional[VendorSubscription]:
        """업로드 성공 후 월간 카운터 증가 (0 이하는 무시)"""
        if subscription is None:
            return None
        amount = as_non_negative_integer(count, 0).value
        if amount <= 0:
            return subscription

        synced = reconcile(subscription, now or utc_now())
        updated = subscription.model_copy(
            update={
                "monthly_upload_period": synced.monthly_upload_period,
                "monthly_upload_count": synced.monthly_upload_count + amount,
            }
        )
        await self.storage.update(
            COLLECTION,
            updated.id,
            {
                "monthlyUploadPeriod": updated.monthly_upload_period,
                "monthlyUploadCount": updated.monthly_upload_count,
            },
        )
        logger.debug(
            f"월간 업로드 카운터 증가: {updated.id} +{amount} → {updated.monthly_upload_count}"
        )
        return updated

    async def list_plans(self, active_only: bool = True) -> List[SubscriptionPlan]:
        filters = {"isActive": True} if active_only else None
        documents = await self.storage.find(
            "subscriptionPlans", filters, order_by=["sortOrder", "price"]
        )
        return [SubscriptionPlan.model_validate(doc) for doc in documents]

    async def subscribe(
        self,
        vendor_id: str,
        plan_id: Optional[str],
        duration_count: Any = 1,
        notes: Any = "",
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> VendorSubscription:
        """
        플랜 구독 신청

        기존 active 구독은 모두 cancelled 처리하고, 플랜 한도를 복사한 새 구독을 만든다.
        만료일 = 시작일 + 결제 주기 개월 수 × duration_count
        """
        if not plan_id:
            raise InvalidRequestError("Plan ID is required")

        document = await self.storage.get("subscriptionPlans", plan_id)
        if document is None:
            raise NotFoundError("Active plan", plan_id)
        plan = SubscriptionPlan.model_validate(document)
        if not plan.is_active:
            raise NotFoundError("Active plan", plan_id)

        multiplier = max(1, as_non_negative_integer(duration_count, 1).value)
        starts_at = ensure_utc(now or utc_now())
        expires_at = add_months(starts_at, plan.billing_cycle.months * multiplier)

        cancelled = await self.storage.update_many(
            COLLECTION,
            {"vendor": vendor_id, "status": SubscriptionStatus.ACTIVE.value},
            {"status": SubscriptionStatus.CANCELLED.value},
        )
        if cancelled:
            logger.info(f"기존 구독 {cancelled}건 취소 (vendor={vendor_id})")

        subscription = VendorSubscription(
            vendor=vendor_id,
            plan=plan.id,
            status=SubscriptionStatus.ACTIVE,
            starts_at=starts_at,
            expires_at=expires_at,
            max_products=plan.product_limit,
            max_uploads_per_month=plan.upload_limit_per_month,
            featured_product_access=plan.featured_product_access,
            commission_type=plan.commission_type,
            commission_value=plan.commission_value,
            monthly_upload_count=0,
            monthly_upload_period=period_key(starts_at),
            notes=as_string(notes).strip(),
            created_by=created_by,
            created_at=starts_at,
        )
        created = await self.storage.create(COLLECTION, subscription.to_document())
        logger.info(f"구독 활성화: vendor={vendor_id}, plan={plan.name}, 만료 {expires_at.date()}")
        return VendorSubscription.model_validate(created)

    async def history(self, vendor_id: str, limit: int = 20) -> List[VendorSubscription]:
        documents = await self.storage.find(
            COLLECTION, {"vendor": vendor_id}, order_by=["-createdAt"], limit=limit
        )
        return [VendorSubscription.model_validate(doc) for doc in documents]

    async def list_subscriptions(self, status: Optional[str] = None) -> List[VendorSubscription]:
        filters = {"status": status} if status else None
        documents = await self.storage.find(COLLECTION, filters, order_by=["-createdAt"])
        return [VendorSubscription.model_validate(doc) for doc in documents]

    async def update_status(self, subscription_id: str, status: Any) -> VendorSubscription:
        """관리자 상태 변경 (active/expired/cancelled/pending만 허용)"""
        normalized = as_string(status).strip()
        if normalized not in ALLOWED_STATUSES:
            raise InvalidRequestError("Invalid subscription status")

        document = await self.storage.update(COLLECTION, subscription_id, {"status": normalized})
        if document is None:
            raise NotFoundError("Subscription", subscription_id)

        logger.info(f"구독 상태 변경: {subscription_id} → {normalized}")
        return VendorSubscription.model_validate(document)
