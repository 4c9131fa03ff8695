"""
상품 관련 API 엔드포인트
"""

from typing import Any, Dict, List, NamedTuple, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from marketplace.api.dependencies import get_current_user, get_storage
from marketplace.domain.coercion import as_string
from marketplace.domain.pricing import normalize_product
from marketplace.domain.subscription import SubscriptionGuard
from marketplace.errors import ForbiddenError, NotFoundError
from marketplace.models.product import MarketplacePayload, NormalizationResult, Product
from marketplace.models.subscription import UploadDecision
from marketplace.monitoring import get_logger, global_metrics
from marketplace.storage.base import BaseStorage

logger = get_logger(__name__)

router = APIRouter()

MAX_BULK_PRODUCTS = 500
APPROVAL_STATUSES = ("pending", "approved", "rejected")


class UploadContext(NamedTuple):
    """업로드 요청자 정보"""

    vendor_id: Optional[str]
    approval_status: str
    is_admin: bool


async def resolve_vendor_profile(user: Dict[str, Any], storage: BaseStorage) -> Dict[str, Any]:
    vendor = await storage.find_one("vendors", {"user": user["id"]})
    if vendor is None:
        raise NotFoundError("Vendor profile")
    return vendor


async def resolve_upload_context(
    user: Dict[str, Any], storage: BaseStorage, requested_vendor: Any = None
) -> UploadContext:
    """
    업로드 대상 결정

    관리자: body의 vendor로 대리 등록, 없으면 플랫폼 상품(vendor 없음), 즉시 승인
    벤더: 자기 벤더 프로필로 등록, 승인 대기
    """
    role = user.get("role")
    if role == "admin":
        if not requested_vendor:
            return UploadContext(None, "approved", True)
        vendor = await storage.get("vendors", str(requested_vendor))
        if vendor is None:
            raise NotFoundError("Vendor", str(requested_vendor))
        return UploadContext(vendor["id"], "approved", True)

    if role != "vendor":
        raise ForbiddenError("Vendor access required")

    vendor = await resolve_vendor_profile(user, storage)
    return UploadContext(vendor["id"], "pending", False)


def build_product(
    raw: Dict[str, Any], payload: MarketplacePayload, context: UploadContext
) -> Product:
    return Product(
        **payload.model_dump(),
        vendor=context.vendor_id,
        approval_status=context.approval_status,
        category=raw.get("category") or None,
        title=as_string(raw.get("title")).strip(),
        description=as_string(raw.get("description")),
    )


def denial_response(decision: UploadDecision) -> JSONResponse:
    return JSONResponse(
        status_code=decision.status,
        content={"success": False, **decision.to_document()},
    )


def rejection_response(result: NormalizationResult) -> JSONResponse:
    global_metrics.increment("products.rejected")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": ", ".join(result.errors), "errors": result.errors},
    )


@router.post("/normalize")
async def normalize(raw: Dict[str, Any] = Body(...)):
    """상품 입력 정규화 결과 미리보기"""
    result = normalize_product(raw)
    global_metrics.increment("products.normalized")

    return {
        "success": result.is_valid,
        "payload": result.payload.to_document(),
        "errors": result.errors,
        "clampedFields": result.clamped_fields,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    raw: Dict[str, Any] = Body(...),
    user: Dict[str, Any] = Depends(get_current_user),
    storage: BaseStorage = Depends(get_storage),
):
    """상품 등록: 정규화 → 구독 한도 확인(벤더) → 저장 → 업로드 카운터 증가"""
    context = await resolve_upload_context(user, storage, raw.get("vendor"))

    result = normalize_product(raw)
    global_metrics.increment("products.normalized")
    if not result.is_valid:
        return rejection_response(result)

    guard = SubscriptionGuard(storage)
    decision = None
    if not context.is_admin:
        decision = await guard.can_upload(context.vendor_id, 1)
        if not decision.allowed:
            return denial_response(decision)

    product = build_product(raw, result.payload, context)
    document = await storage.create("products", product.to_document())
    if decision is not None:
        await guard.record_upload(decision.limits.subscription, 1)

    logger.info(f"상품 등록: {document['id']} (vendor={context.vendor_id})")
    return {"success": True, "product": document, "clampedFields": result.clamped_fields}


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def create_products_bulk(
    body: Dict[str, Any] = Body(...),
    user: Dict[str, Any] = Depends(get_current_user),
    storage: BaseStorage = Depends(get_storage),
):
    """
    상품 일괄 등록
    한도 확인은 요청 건수로 한 번, 카운터는 실제 생성 건수만큼 증가
    """
    items = body.get("products")
    if not isinstance(items, list) or not items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Products list is required"
        )
    if len(items) > MAX_BULK_PRODUCTS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Bulk upload limit exceeded. Max {MAX_BULK_PRODUCTS} products per request.",
        )

    context = await resolve_upload_context(user, storage, body.get("vendor"))

    guard = SubscriptionGuard(storage)
    decision = None
    if not context.is_admin:
        decision = await guard.can_upload(context.vendor_id, len(items))
        if not decision.allowed:
            return denial_response(decision)

    created: List[Dict[str, Any]] = []
    failed: List[Dict[str, Any]] = []
    for index, raw in enumerate(items):
        raw = raw if isinstance(raw, dict) else {}
        result = normalize_product(raw)
        global_metrics.increment("products.normalized")

        if not result.is_valid:
            global_metrics.increment("products.rejected")
            failed.append({"index": index, "errors": result.errors})
            continue

        product = build_product(raw, result.payload, context)
        created.append(await storage.create("products", product.to_document()))

    if created and decision is not None:
        await guard.record_upload(decision.limits.subscription, len(created))

    logger.info(
        f"상품 일괄 등록: 성공 {len(created)}건, 실패 {len(failed)}건 (vendor={context.vendor_id})"
    )

    content = {
        "success": bool(created),
        "message": (
            f"Bulk upload completed. {len(created)} product(s) created."
            if created
            else "Bulk upload failed. No products were created."
        ),
        "createdCount": len(created),
        "failedCount": len(failed),
        "products": created,
        "failed": failed,
    }
    if not created:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)
    return content


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    raw: Dict[str, Any] = Body(...),
    user: Dict[str, Any] = Depends(get_current_user),
    storage: BaseStorage = Depends(get_storage),
):
    """
    상품 수정
    기존 상품 값을 기본값으로 다시 정규화하고, 묶음 상품 목록에서 자기 자신은 제외한다.
    벤더가 수정하면 다시 승인 대기로 돌아간다.
    """
    document = await storage.get("products", product_id)
    if document is None:
        raise NotFoundError("Product", product_id)

    role = user.get("role")
    if role == "admin":
        approval_status = raw.get("approvalStatus")
        if approval_status not in APPROVAL_STATUSES:
            approval_status = document.get("approvalStatus") or "approved"
    elif role == "vendor":
        vendor = await resolve_vendor_profile(user, storage)
        if str(document.get("vendor") or "") != vendor["id"]:
            raise ForbiddenError("You can update only your own products")
        approval_status = "pending"
    else:
        raise ForbiddenError("Vendor access required")

    existing = Product.model_validate(document)
    result = normalize_product(raw, existing, product_id)
    global_metrics.increment("products.normalized")
    if not result.is_valid:
        return rejection_response(result)

    changes = result.payload.to_document()
    changes["approvalStatus"] = approval_status
    if "title" in raw:
        changes["title"] = as_string(raw.get("title")).strip()
    if "description" in raw:
        changes["description"] = as_string(raw.get("description"))
    if "category" in raw:
        changes["category"] = raw.get("category") or None

    updated = await storage.update("products", product_id, changes)

    logger.info(f"상품 수정: {product_id} (approval={approval_status})")
    return {"success": True, "product": updated, "clampedFields": result.clamped_fields}
