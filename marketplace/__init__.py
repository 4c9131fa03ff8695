"""
멀티벤더 마켓플레이스 코어
상품 가격 정규화, 배송비 산정, 구독 한도, 정산 집계
"""

__version__ = "1.0.0"
