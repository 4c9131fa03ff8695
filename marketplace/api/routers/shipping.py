"""
배송 관련 API 엔드포인트
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from marketplace.api.dependencies import get_current_vendor, get_storage, require_admin
from marketplace.config import settings
from marketplace.domain.shipping import ShippingEstimator, ShippingZoneService
from marketplace.models.shipping import EstimateFailure, ShippingScope
from marketplace.storage.base import BaseStorage

router = APIRouter()


@router.post("/estimate")
async def estimate_shipping(
    body: Dict[str, Any] = Body(...),
    storage: BaseStorage = Depends(get_storage),
):
    """체크아웃 배송비 견적 (공개)"""
    estimator = ShippingEstimator(storage, default_country=settings.default_country)
    result = await estimator.estimate(
        body.get("items"),
        city=body.get("city", ""),
        district=body.get("district", ""),
        country=body.get("country"),
    )

    if isinstance(result, EstimateFailure):
        return JSONResponse(
            status_code=result.status,
            content={"success": False, "message": result.message},
        )
    return result.to_document()


# 관리자: global 배송존


@router.get("/zones/admin")
async def list_admin_zones(
    _: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    zones = await ShippingZoneService(storage).list_zones(ShippingScope.GLOBAL)
    return {"success": True, "zones": [zone.to_document() for zone in zones]}


@router.post("/zones/admin", status_code=status.HTTP_201_CREATED)
async def create_admin_zone(
    body: Dict[str, Any] = Body(...),
    user: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    zone = await ShippingZoneService(storage).create_zone(
        body, ShippingScope.GLOBAL, user_id=user["id"]
    )
    return {
        "success": True,
        "message": "Shipping zone created successfully",
        "zone": zone.to_document(),
    }


@router.put("/zones/admin/{zone_id}")
async def update_admin_zone(
    zone_id: str,
    body: Dict[str, Any] = Body(...),
    user: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    zone = await ShippingZoneService(storage).update_zone(
        zone_id, body, ShippingScope.GLOBAL, user_id=user["id"]
    )
    return {
        "success": True,
        "message": "Shipping zone updated successfully",
        "zone": zone.to_document(),
    }


@router.delete("/zones/admin/{zone_id}")
async def delete_admin_zone(
    zone_id: str,
    _: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    await ShippingZoneService(storage).delete_zone(zone_id, ShippingScope.GLOBAL)
    return {"success": True, "message": "Shipping zone deleted successfully"}


# 벤더: 자신의 vendor 배송존


@router.get("/zones/me")
async def list_my_zones(
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    zones = await ShippingZoneService(storage).list_zones(ShippingScope.VENDOR, vendor["id"])
    return {"success": True, "zones": [zone.to_document() for zone in zones]}


@router.post("/zones/me", status_code=status.HTTP_201_CREATED)
async def create_my_zone(
    body: Dict[str, Any] = Body(...),
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    zone = await ShippingZoneService(storage).create_zone(
        body, ShippingScope.VENDOR, vendor_id=vendor["id"], user_id=vendor.get("user")
    )
    return {
        "success": True,
        "message": "Shipping zone created successfully",
        "zone": zone.to_document(),
    }


@router.put("/zones/me/{zone_id}")
async def update_my_zone(
    zone_id: str,
    body: Dict[str, Any] = Body(...),
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    zone = await ShippingZoneService(storage).update_zone(
        zone_id, body, ShippingScope.VENDOR, vendor_id=vendor["id"], user_id=vendor.get("user")
    )
    return {
        "success": True,
        "message": "Shipping zone updated successfully",
        "zone": zone.to_document(),
    }


@router.delete("/zones/me/{zone_id}")
async def delete_my_zone(
    zone_id: str,
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    await ShippingZoneService(storage).delete_zone(zone_id, ShippingScope.VENDOR, vendor["id"])
    return {"success": True, "message": "Shipping zone deleted successfully"}
