"""
모니터링 시스템
로깅, 메트릭 기능 제공
"""

from .logger import get_logger, setup_logging
from .metrics import MetricsCollector, PerformanceTracker

# 글로벌 인스턴스
global_metrics = MetricsCollector()
performance_tracker = PerformanceTracker(global_metrics)

__all__ = [
    "setup_logging",
    "get_logger",
    "MetricsCollector",
    "PerformanceTracker",
    "global_metrics",
    "performance_tracker",
]
