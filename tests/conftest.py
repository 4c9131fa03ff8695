"""
pytest 공통 fixtures 및 설정
"""

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

# 프로젝트 루트를 Python 경로에 추가
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# 설정 모듈 import 전에 테스트 환경 변수 지정
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault(
    "LOCAL_DATA_PATH", str(Path(tempfile.gettempdir()) / "marketplace-test-data")
)

from tests.fixtures.mock_storage import MockStorage  # noqa: E402


@pytest.fixture
def storage():
    """빈 메모리 저장소"""
    return MockStorage()


@pytest.fixture
def now():
    """고정 기준 시각 (2024-05-15 UTC)"""
    return datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def vendor_a(storage):
    """벤더 A"""
    return storage.seed("vendors", {"id": "a" * 24, "storeName": "Vendor A", "user": "user-a"})[0]


@pytest.fixture
def vendor_b(storage):
    """벤더 B"""
    return storage.seed("vendors", {"id": "b" * 24, "storeName": "Vendor B", "user": "user-b"})[0]


@pytest.fixture
def sample_simple_product():
    """단일가 일반 상품 입력"""
    return {
        "title": "테스트 상품",
        "marketplaceType": "simple",
        "priceType": "single",
        "price": "1200",
        "stock": "10",
    }


@pytest.fixture
def sample_variations():
    """옵션 상품 입력"""
    return [
        {"label": "S", "price": 500, "salePrice": 450, "stock": 3, "isActive": True},
        {"label": "M", "price": 480, "stock": 2, "isActive": True},
        {"label": "L", "price": 300, "stock": 4, "isActive": False},
    ]
