"""
저장소 기본 인터페이스
컬렉션 단위 문서 저장소 (JSON 파일, Supabase 등) 구현을 위한 추상 클래스
"""

import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from marketplace.models.base import ensure_utc

OPERATORS = ("in", "lt", "lte", "gt", "gte", "ne")

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")


def new_id() -> str:
    """24자리 hex 문서 ID"""
    return uuid.uuid4().hex[:24]


def _comparable(value: Any) -> Any:
    """비교 가능한 값으로 변환 (ISO 날짜 문자열 → datetime, 숫자 → Decimal)"""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and _ISO_DATETIME.match(value):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Decimal(str(value))
    return value


def split_filter_key(key: str):
    """'expiresAt__lt' → ('expiresAt', 'lt')"""
    field, _, operator = key.partition("__")
    if operator and operator not in OPERATORS:
        raise ValueError(f"Unsupported filter operator: {operator}")
    return field, operator or "eq"


def matches_filters(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """문서가 모든 필터 조건을 만족하는지 확인"""
    for key, expected in (filters or {}).items():
        field, operator = split_filter_key(key)
        actual = document.get(field)

        if operator == "in":
            if actual not in list(expected):
                return False
            continue
        if operator == "eq":
            if actual != expected:
                return False
            continue
        if operator == "ne":
            if actual == expected:
                return False
            continue

        if actual is None or expected is None:
            return False
        left, right = _comparable(actual), _comparable(expected)
        try:
            if operator == "lt" and not left < right:
                return False
            if operator == "lte" and not left <= right:
                return False
            if operator == "gt" and not left > right:
                return False
            if operator == "gte" and not left >= right:
                return False
        except TypeError:
            return False

    return True


def sort_documents(documents: Iterable[Dict[str, Any]], order_by: Optional[List[str]]) -> List[Dict[str, Any]]:
    """
    order_by 필드 순으로 안정 정렬 ('-' 접두사는 내림차순)
    None 값은 오름차순 기준 항상 뒤로 간다
    """
    result = list(documents)
    for spec in reversed(order_by or []):
        descending = spec.startswith("-")
        field = spec.lstrip("-")
        present = [doc for doc in result if doc.get(field) is not None]
        missing = [doc for doc in result if doc.get(field) is None]
        present.sort(key=lambda doc: _comparable(doc[field]), reverse=descending)
        result = present + missing
    return result


class BaseStorage(ABC):
    """문서 저장소 추상 클래스 (필드명은 camelCase 문서 키)"""

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        """
        ID로 문서 조회

        Args:
            collection: 컬렉션 이름
            document_id: 문서 ID

        Returns:
            문서 또는 None
        """
        pass

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        조건 조회

        Args:
            collection: 컬렉션 이름
            filters: {필드[__연산자]: 값} (연산자: in, lt, lte, gt, gte, ne)
            order_by: 정렬 필드 목록 ('-' 접두사는 내림차순)
            limit: 최대 개수

        Returns:
            문서 목록
        """
        pass

    async def find_one(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[List[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        documents = await self.find(collection, filters, order_by, limit=1)
        return documents[0] if documents else None

    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return len(await self.find(collection, filters))

    @abstractmethod
    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """문서 생성 (id가 없으면 발급), 저장된 문서 반환"""
        pass

    @abstractmethod
    async def update(
        self, collection: str, document_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """필드 병합 업데이트, 문서가 없으면 None"""
        pass

    async def update_many(
        self, collection: str, filters: Dict[str, Any], changes: Dict[str, Any]
    ) -> int:
        """조건에 맞는 문서 일괄 업데이트, 변경 건수 반환"""
        documents = await self.find(collection, filters)
        for document in documents:
            await self.update(collection, document["id"], changes)
        return len(documents)

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> bool:
        """문서 삭제, 삭제 여부 반환"""
        pass
