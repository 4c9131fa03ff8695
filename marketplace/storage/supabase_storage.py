"""
Supabase 저장소 구현
컬렉션별 테이블에 문서를 data(jsonb) 컬럼으로 저장한다

테이블 구조: id text primary key, data jsonb, created_at timestamptz
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger
from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from marketplace.config import settings
from marketplace.errors import StorageError
from marketplace.models.base import ensure_utc
from marketplace.storage.base import (
    BaseStorage,
    matches_filters,
    new_id,
    sort_documents,
    split_filter_key,
)

# 컬렉션 → 테이블 이름
TABLE_NAMES = {
    "products": "products",
    "vendors": "vendors",
    "shippingZones": "shipping_zones",
    "subscriptionPlans": "subscription_plans",
    "vendorSubscriptions": "vendor_subscriptions",
    "orders": "orders",
    "categories": "categories",
    "users": "users",
}

# PostgREST 기본 응답 행 수 상한
PAGE_SIZE = 1000
RANGE_OPERATORS = ("lt", "lte", "gt", "gte")


class SupabaseStorage(BaseStorage):
    """Supabase 저장소 구현"""

    def __init__(
        self,
        url: Optional[str] = None,
        service_key: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        """
        Args:
            url: Supabase 프로젝트 URL
            service_key: Supabase service role key
            client: 미리 생성된 클라이언트 (테스트용)
        """
        if client is not None:
            self.client = client
            self.url = url
            return

        self.url = url or (settings.supabase.url if settings.supabase else None)
        self.service_key = service_key or (
            settings.supabase.service_role_key if settings.supabase else None
        )

        if not self.url or not self.service_key:
            raise ValueError("Supabase URL과 Service Key가 필요합니다")

        # Supabase 클라이언트 생성
        self.client = create_client(
            self.url,
            self.service_key,
            options=ClientOptions(
                auto_refresh_token=False,  # Service role key는 갱신 불필요
                persist_session=False,
            ),
        )

        logger.info(f"Supabase 저장소 초기화: {self.url}")

    def _table(self, collection: str):
        return self.client.table(TABLE_NAMES.get(collection, collection))

    @staticmethod
    def _to_document(row: Dict[str, Any]) -> Dict[str, Any]:
        document = dict(row.get("data") or {})
        document["id"] = str(row["id"])
        return document

    async def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = (
                self._table(collection).select("id,data").eq("id", str(document_id)).execute()
            )
        except Exception as e:
            logger.error(f"{collection} 조회 실패: {str(e)}")
            raise StorageError("get", collection, e) from e

        return self._to_document(result.data[0]) if result.data else None

    def _select(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]],
        columns: str = "id,data",
        count: Optional[str] = None,
    ):
        """
        서버 측 필터를 적용한 select 쿼리

        Returns:
            (쿼리, 모든 조건이 서버에서 정확히 처리되었는지 여부)
        """
        if count:
            query = self._table(collection).select(columns, count=count)
        else:
            query = self._table(collection).select(columns)
        exact = True

        for key, value in (filters or {}).items():
            field, operator = split_filter_key(key)
            if field == "id" and operator == "in":
                query = query.in_("id", [str(v) for v in value])
            elif field == "id" and operator == "eq":
                query = query.eq("id", str(value))
            elif operator == "eq" and isinstance(value, bool):
                query = query.eq(f"data->>{field}", "true" if value else "false")
            elif operator == "eq" and isinstance(value, str):
                query = query.eq(f"data->>{field}", value)
            elif operator in RANGE_OPERATORS and isinstance(value, datetime):
                # 날짜는 UTC ISO 문자열로 저장되므로 문자열 비교로 범위를 좁힌다
                query = getattr(query, operator)(f"data->>{field}", ensure_utc(value).isoformat())
                exact = False
            else:
                exact = False

        return query, exact

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        documents: List[Dict[str, Any]] = []
        offset = 0

        # 응답 행 수 상한이 있으므로 페이지 단위로 모두 읽는다
        while True:
            query, _ = self._select(collection, filters)
            query = query.order("id").range(offset, offset + PAGE_SIZE - 1)
            try:
                result = query.execute()
            except Exception as e:
                logger.error(f"{collection} 목록 조회 실패: {str(e)}")
                raise StorageError("find", collection, e) from e

            rows = result.data or []
            documents.extend(self._to_document(row) for row in rows)
            if len(rows) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        documents = [doc for doc in documents if matches_filters(doc, filters)]
        documents = sort_documents(documents, order_by)
        if limit is not None:
            documents = documents[:limit]
        return documents

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        query, exact = self._select(collection, filters, columns="id", count="exact")
        if not exact:
            return len(await self.find(collection, filters))

        try:
            result = query.limit(1).execute()
        except Exception as e:
            logger.error(f"{collection} 개수 조회 실패: {str(e)}")
            raise StorageError("count", collection, e) from e

        return result.count or 0

    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        document = dict(data)
        document["id"] = str(document.get("id") or new_id())
        document.setdefault("createdAt", datetime.now(timezone.utc).isoformat())

        try:
            result = (
                self._table(collection)
                .insert({"id": document["id"], "data": document})
                .execute()
            )
        except Exception as e:
            logger.error(f"{collection} 저장 실패: {str(e)}")
            raise StorageError("create", collection, e) from e

        if not result.data:
            raise StorageError("create", collection, ValueError("데이터 저장 실패"))

        logger.debug(f"{collection} 문서 생성: {document['id']}")
        return self._to_document(result.data[0])

    async def update(
        self, collection: str, document_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        current = await self.get(collection, document_id)
        if current is None:
            return None

        current.update(changes)
        current["id"] = str(document_id)
        current["updatedAt"] = datetime.now(timezone.utc).isoformat()

        try:
            result = (
                self._table(collection)
                .update({"data": current})
                .eq("id", str(document_id))
                .execute()
            )
        except Exception as e:
            logger.error(f"{collection} 업데이트 실패: {str(e)}")
            raise StorageError("update", collection, e) from e

        return self._to_document(result.data[0]) if result.data else current

    async def delete(self, collection: str, document_id: str) -> bool:
        try:
            result = self._table(collection).delete().eq("id", str(document_id)).execute()
        except Exception as e:
            logger.error(f"{collection} 삭제 실패: {str(e)}")
            raise StorageError("delete", collection, e) from e

        return bool(result.data)
