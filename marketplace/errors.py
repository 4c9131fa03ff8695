"""
도메인 예외 정의
검증 오류는 예외가 아니라 결과 객체의 오류 목록으로 반환된다
"""

from typing import Optional


class MarketplaceError(Exception):
    """마켓플레이스 기본 예외"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MarketplaceError):
    """참조 대상(벤더/상품/배송존/플랜) 없음"""

    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class ForbiddenError(MarketplaceError):
    """권한 없음"""

    status_code = 403


class StorageError(MarketplaceError):
    """저장소 작업 실패"""

    def __init__(self, operation: str, collection: str, cause: Optional[Exception] = None):
        super().__init__(f"Storage {operation} failed on {collection}: {cause}")
        self.operation = operation
        self.collection = collection
        self.cause = cause


class InvalidRequestError(MarketplaceError):
    """요청 입력 자체가 처리 불가 (필수값 누락, 허용되지 않은 상태값 등)"""

    status_code = 400
