"""
공통 모델 베이스
문서 저장소와 API 모두 camelCase 필드명을 사용한다
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

E = TypeVar("E", bound="ParsableEnum")

CENT = Decimal("0.01")

# JSON 직렬화 시 숫자로 내보내는 금액 타입
Money = Annotated[
    Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")
]


def round_money(value: Decimal) -> Decimal:
    """소수점 둘째 자리 반올림 (ROUND_HALF_UP)"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """시간대 없는 값은 UTC로 간주"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class ParsableEnum(str, Enum):
    """느슨한 문자열 입력을 닫힌 열거형으로 변환"""

    @classmethod
    def parse(cls: Type[E], value: Any, default: Optional[Any] = None) -> E:
        """
        입력값을 열거형으로 변환한다. 알 수 없는 값이면 default,
        default도 유효하지 않으면 첫 번째 멤버를 반환한다.
        """
        for candidate in (value, default):
            if isinstance(candidate, cls):
                return candidate
            normalized = str(candidate if candidate is not None else "").strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return next(iter(cls))


class MarketplaceModel(BaseModel):
    """camelCase 별칭을 쓰는 기본 모델"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_document(self) -> Dict[str, Any]:
        """저장소/응답용 딕셔너리로 변환"""
        return self.model_dump(by_alias=True, mode="json")
