"""
정산 리포트 API 엔드포인트
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from marketplace.api.dependencies import get_current_vendor, get_storage, require_admin
from marketplace.domain.earnings import EarningsReporter
from marketplace.models.base import ensure_utc
from marketplace.storage.base import BaseStorage

router = APIRouter()


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """잘못된 날짜는 필터 없음으로 처리"""
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


@router.get("/vendors")
async def vendor_reports(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    _: Dict[str, Any] = Depends(require_admin),
    storage: BaseStorage = Depends(get_storage),
):
    """전체 벤더 정산 리포트 (관리자)"""
    report = await EarningsReporter(storage).vendor_report(
        parse_date(date_from), parse_date(date_to)
    )
    document = report.to_document()
    return {"success": True, "summary": document["summary"], "vendorReports": document["vendors"]}


@router.get("/vendors/me")
async def my_dashboard(
    vendor: Dict[str, Any] = Depends(get_current_vendor),
    storage: BaseStorage = Depends(get_storage),
):
    """벤더 대시보드 통계"""
    dashboard = await EarningsReporter(storage).vendor_dashboard(vendor["id"])
    return {"success": True, "stats": dashboard.to_document()}
