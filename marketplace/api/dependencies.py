"""
API 의존성 주입
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.config import settings
from marketplace.errors import NotFoundError
from marketplace.monitoring import get_logger
from marketplace.storage.base import BaseStorage

logger = get_logger(__name__)

# Bearer 토큰 스키마
security = HTTPBearer()


async def get_storage(request: Request) -> BaseStorage:
    """앱 시작 시 생성된 저장소 반환"""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage not initialized"
        )
    return storage


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    storage: BaseStorage = Depends(get_storage),
) -> Dict[str, Any]:
    """현재 사용자 정보 반환"""
    token = credentials.credentials

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await storage.get("users", str(user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user


async def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """관리자 권한 요구"""
    if user.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def get_current_vendor(
    user: Dict[str, Any] = Depends(get_current_user),
    storage: BaseStorage = Depends(get_storage),
) -> Dict[str, Any]:
    """로그인 사용자의 벤더 프로필"""
    if user.get("role") not in ("vendor", "admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Vendor access required")

    vendor = await storage.find_one("vendors", {"user": user["id"]})
    if vendor is None:
        raise NotFoundError("Vendor profile")
    return vendor


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """액세스 토큰 생성"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=24))
    to_encode = {"user_id": user_id, "exp": expire}

    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
