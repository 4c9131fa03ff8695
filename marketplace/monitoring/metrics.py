"""
성능 메트릭 시스템
API 처리량과 마켓플레이스 비즈니스 메트릭 추적
"""

import statistics
import time
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

from .logger import get_logger

logger = get_logger(__name__)


class MetricValue:
    """메트릭 값"""

    def __init__(self, value: float, timestamp: Optional[datetime] = None):
        self.value = value
        self.timestamp = timestamp or datetime.now()


class Metric:
    """개별 메트릭"""

    def __init__(self, name: str, metric_type: str = "gauge", window_size: int = 100):
        self.name = name
        self.metric_type = metric_type  # gauge, counter, histogram
        self.values = deque(maxlen=window_size)
        self._counter = 0
        self.created_at = datetime.now()

    def record(self, value: float):
        """값 기록"""
        if self.metric_type == "counter":
            self._counter += value
            self.values.append(MetricValue(self._counter))
        else:
            self.values.append(MetricValue(value))

    def increment(self, amount: float = 1):
        """카운터 증가"""
        if self.metric_type == "counter":
            self.record(amount)

    def get_value(self) -> float:
        """현재 값 조회"""
        if self.metric_type == "counter":
            return self._counter
        if not self.values:
            return 0
        return self.values[-1].value

    def get_stats(self) -> Dict[str, float]:
        """통계 정보"""
        if not self.values:
            return {"count": 0, "mean": 0, "min": 0, "max": 0, "p50": 0, "p95": 0}

        values = [v.value for v in self.values]
        sorted_values = sorted(values)
        count = len(values)

        return {
            "count": count,
            "mean": statistics.mean(values),
            "min": sorted_values[0],
            "max": sorted_values[-1],
            "p50": sorted_values[int(count * 0.5)],
            "p95": sorted_values[int(count * 0.95)] if count > 20 else sorted_values[-1],
        }


class MetricsCollector:
    """메트릭 수집기"""

    def __init__(self):
        self.metrics: Dict[str, Metric] = {}
        self._register_default_metrics()

    def _register_default_metrics(self):
        # API 메트릭
        self.register("api.requests", "counter")
        self.register("api.errors", "counter")
        self.register("api.latency", "histogram")

        # 비즈니스 메트릭
        self.register("shipping.estimates", "counter")
        self.register("shipping.fallbacks", "counter")
        self.register("products.normalized", "counter")
        self.register("products.rejected", "counter")
        self.register("uploads.allowed", "counter")
        self.register("uploads.denied", "counter")
        self.register("reports.generated", "counter")
        self.register("reports.latency", "histogram")

    def register(self, name: str, metric_type: str = "gauge", window_size: int = 100) -> Metric:
        """메트릭 등록"""
        if name not in self.metrics:
            self.metrics[name] = Metric(name, metric_type, window_size)
        return self.metrics[name]

    def record(self, name: str, value: float):
        """값 기록"""
        if name not in self.metrics:
            self.register(name)
        self.metrics[name].record(value)

    def increment(self, name: str, amount: float = 1):
        """카운터 증가"""
        if name not in self.metrics:
            self.register(name, "counter")
        self.metrics[name].increment(amount)

    def get_metric(self, name: str) -> Optional[Metric]:
        return self.metrics.get(name)

    def _value(self, name: str) -> float:
        metric = self.metrics.get(name)
        return metric.get_value() if metric else 0

    def get_summary(self) -> Dict[str, Any]:
        """메트릭 요약"""
        total_requests = self._value("api.requests")
        total_errors = self._value("api.errors")
        latency = self.metrics.get("api.latency")

        return {
            "timestamp": datetime.now().isoformat(),
            "api": {
                "total_requests": total_requests,
                "total_errors": total_errors,
                "error_rate": total_errors / max(total_requests, 1),
                "latency": latency.get_stats() if latency else {},
            },
            "business": {
                "shipping": {
                    "estimates": self._value("shipping.estimates"),
                    "fallbacks": self._value("shipping.fallbacks"),
                },
                "products": {
                    "normalized": self._value("products.normalized"),
                    "rejected": self._value("products.rejected"),
                },
                "uploads": {
                    "allowed": self._value("uploads.allowed"),
                    "denied": self._value("uploads.denied"),
                },
                "reports": self._value("reports.generated"),
            },
        }


class PerformanceTracker:
    """성능 추적기"""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()

    @asynccontextmanager
    async def track_async(self, operation: str, metric_name: Optional[str] = None):
        """비동기 작업 성능 추적"""
        start_time = time.time()
        error_occurred = False

        try:
            yield
        except Exception as e:
            error_occurred = True
            logger.error(f"Error in {operation}: {e}")
            raise
        finally:
            duration = time.time() - start_time
            if metric_name:
                self.metrics.record(metric_name, duration)
            logger.performance(operation, duration, error=error_occurred)
