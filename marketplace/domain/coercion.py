"""
입력값 정제 유틸리티
잘못된 숫자 입력은 예외 대신 안전한 기본값으로 대체하고,
대체 여부(clamped)를 함께 돌려준다
"""

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple, Optional

_INTEGER_PREFIX = re.compile(r"^\s*([+-]?\d+)")
# 배정밀도 실수 최댓값 (이보다 크면 무한대로 본다)
_MAX_FINITE = Decimal("1.7976931348623157e308")
_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class Sanitized(NamedTuple):
    """정제 결과"""

    value: Any
    clamped: bool


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def as_string(value: Any, fallback: str = "") -> str:
    return fallback if value is None else str(value)


def parse_json_maybe(value: Any, fallback: Any = None) -> Any:
    """폼 입력처럼 문자열로 들어온 JSON을 파싱, 실패하면 원본 문자열 유지"""
    if is_missing(value):
        return fallback
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def to_decimal(value: Any) -> Optional[Decimal]:
    """유한한 Decimal로 변환, 불가하면 None"""
    if is_missing(value) or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite() or abs(parsed) > _MAX_FINITE:
        return None
    return parsed


def as_non_negative_number(value: Any, fallback: Any = Decimal("0")) -> Sanitized:
    """0 이상 유한수, 아니면 fallback"""
    parsed = to_decimal(value)
    if parsed is None or parsed < 0:
        return Sanitized(fallback, not is_missing(value))
    return Sanitized(parsed, False)


def as_form_number(value: Any, fallback: Any = None) -> Sanitized:
    """폼 숫자 입력: 빈 문자열은 0, 값이 없으면 fallback"""
    if isinstance(value, str) and not value.strip():
        return Sanitized(Decimal("0"), False)
    return as_non_negative_number(value, fallback)


def as_nullable_non_negative_number(value: Any) -> Sanitized:
    """비어 있으면 None, 잘못된 값도 None"""
    if is_missing(value):
        return Sanitized(None, False)
    parsed = to_decimal(value)
    if parsed is None or parsed < 0:
        return Sanitized(None, True)
    return Sanitized(parsed, False)


def as_non_negative_integer(value: Any, fallback: int = 0) -> Sanitized:
    """정수 접두부를 읽는다 ("12abc" -> 12, "3.7" -> 3)"""
    parsed: Optional[int] = None
    if isinstance(value, bool) or is_missing(value):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, (float, Decimal)):
        number = to_decimal(value)
        parsed = int(number) if number is not None else None
    else:
        match = _INTEGER_PREFIX.match(str(value))
        parsed = int(match.group(1)) if match else None

    if parsed is None or parsed < 0:
        return Sanitized(fallback, not is_missing(value))
    return Sanitized(parsed, False)


def as_boolean(value: Any, fallback: bool = False) -> Sanitized:
    if is_missing(value):
        return Sanitized(fallback, False)
    if isinstance(value, bool):
        return Sanitized(value, False)
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return Sanitized(True, False)
    if normalized in _FALSE_VALUES:
        return Sanitized(False, False)
    return Sanitized(fallback, True)


def normalize_text(value: Any) -> str:
    """비교용 소문자 문자열"""
    return as_string(value).strip().lower()
