"""
마켓플레이스 API
FastAPI 기반 RESTful API 서버
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
