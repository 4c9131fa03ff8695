"""
API 라우터 모듈
"""

from . import products, reports, shipping, subscriptions

__all__ = ["products", "shipping", "subscriptions", "reports"]
