"""
구독 관련 API 엔드포인트
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from marketplace.api.dependencies import get_current_vendor, get_storage, require_admin
from marketplace.domain.subscription import SubscriptionGuard
from marketplace.storage.base import BaseStorage

router = APIRouter()


@router.get("/plans")
async def list_plans(storage: BaseStorage = Depends(get_storage)):
    """활성 구독 플랜 목록"""
    plans = await SubscriptionGuard(storage).list_plans()
    return {"success": True, "plans": [plan.to_document() for plan in plans]}


@router.post("/subscribe", status_code=status.HTTP_201_CREATED)
async def subscribe(
    body: Dict[str, Any] = Body(...),
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    subscription = await SubscriptionGuard(storage).subscribe(
        vendor["id"],
        body.get("planId"),
        duration_count=body.get("durationCount", 1),
        notes=body.get("notes", ""),
        created_by=vendor.get("user"),
    )
    return {
        "success": True,
        "message": "Subscription activated successfully",
        "subscription": subscription.to_document(),
    }


@router.get("/me")
async def get_my_subscription(
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    """현재 구독, 최근 이력, 한도"""
    guard = SubscriptionGuard(storage)
    limits = await guard.get_limits(vendor["id"])
    history = await guard.history(vendor["id"])

    return {
        "success": True,
        "current": limits.subscription.to_document() if limits.subscription else None,
        "history": [entry.to_document() for entry in history],
        "limits": limits.to_document(),
    }


@router.get("/admin")
async def list_subscriptions(
    status_filter: Optional[str] = Query(None, alias="status"),
    _: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    subscriptions = await SubscriptionGuard(storage).list_subscriptions(status_filter)
    return {"success": True, "subscriptions": [entry.to_document() for entry in subscriptions]}


@router.patch("/{subscription_id}/status")
async def update_subscription_status(
    subscription_id: str,
    body: Dict[str, Any] = Body(...),
    _: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    subscription = await SubscriptionGuard(storage).update_status(
        subscription_id, body.get("status")
    )
    return {
        "success": True,
        "message": "Subscription status updated",
        "subscription": subscription.to_document(),
    }
