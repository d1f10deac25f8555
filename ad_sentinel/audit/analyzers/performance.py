"""Performance monitoring for analyzer operations.

Records call counts and timings for the expensive stages of an analysis
(summary building, graph resolution, idle network analysis).
"""

import threading
import time
from functools import wraps
from typing import Any, Callable, Dict, TypeVar

from pydantic import BaseModel, Field


F = TypeVar('F', bound=Callable[..., Any])


class PerformanceMetrics(BaseModel):
    """Performance metrics for one analyzer operation."""

    operation_name: str = Field(description="Name of the operation")
    total_calls: int = Field(default=0, description="Total number of calls")
    total_time_ms: float = Field(default=0.0, description="Total processing time")
    average_time_ms: float = Field(default=0.0, description="Average processing time")
    min_time_ms: float = Field(default=float('inf'), description="Minimum processing time")
    max_time_ms: float = Field(default=0.0, description="Maximum processing time")

    def record_operation(self, processing_time_ms: float) -> None:
        """Record an operation execution."""
        self.total_calls += 1
        self.total_time_ms += processing_time_ms
        self.min_time_ms = min(self.min_time_ms, processing_time_ms)
        self.max_time_ms = max(self.max_time_ms, processing_time_ms)
        self.average_time_ms = self.total_time_ms / self.total_calls


class PerformanceMonitor:
    """Collects metrics for all monitored operations."""

    def __init__(self):
        self.metrics: Dict[str, PerformanceMetrics] = {}
        self.start_time = time.time()
        self._lock = threading.RLock()

    def get_metrics(self, operation_name: str) -> PerformanceMetrics:
        """Get or create metrics for an operation."""
        with self._lock:
            if operation_name not in self.metrics:
                self.metrics[operation_name] = PerformanceMetrics(operation_name=operation_name)
            return self.metrics[operation_name]

    def record_operation(self, operation_name: str, processing_time_ms: float) -> None:
        with self._lock:
            self.get_metrics(operation_name).record_operation(processing_time_ms)

    def get_summary(self) -> Dict[str, Any]:
        """Get performance summary for all operations."""
        with self._lock:
            return {
                "uptime_seconds": time.time() - self.start_time,
                "operations": {name: {
                    "total_calls": metrics.total_calls,
                    "average_time_ms": round(metrics.average_time_ms, 3),
                    "total_time_ms": round(metrics.total_time_ms, 3),
                    "min_time_ms": round(metrics.min_time_ms, 3) if metrics.min_time_ms != float('inf') else 0,
                    "max_time_ms": round(metrics.max_time_ms, 3)
                } for name, metrics in self.metrics.items()},
                "total_calls": sum(m.total_calls for m in self.metrics.values()),
                "total_time_ms": round(sum(m.total_time_ms for m in self.metrics.values()), 3)
            }


# Global performance monitor
performance_monitor = PerformanceMonitor()


def monitor_performance(operation_name: str) -> Callable[[F], F]:
    """Decorator to record the run time of an analyzer operation.

    Args:
        operation_name: Name of the operation for metrics

    Returns:
        Decorated function with performance monitoring
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                processing_time_ms = (time.perf_counter() - start_time) * 1000
                performance_monitor.record_operation(operation_name, processing_time_ms)
        return wrapper
    return decorator


def get_performance_summary() -> Dict[str, Any]:
    """Get performance summary for all monitored operations."""
    return performance_monitor.get_summary()


def reset_performance_metrics() -> None:
    """Reset all performance metrics."""
    global performance_monitor
    performance_monitor = PerformanceMonitor()
