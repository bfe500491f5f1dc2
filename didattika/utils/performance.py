"""Operation timing for services and routes."""

import time
import inspect
import logging
from typing import Dict, Any, Optional, Callable
from functools import wraps
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from collections import defaultdict, deque
import threading

from didattika.utils.logger import log_performance

logger = logging.getLogger(__name__)

SLOW_OPERATION_SECONDS = 1.0


@dataclass
class PerformanceMetrics:
    """Timing aggregate for a single operation name."""
    total_calls: int = 0
    total_time: float = 0.0
    min_time: float = float('inf')
    max_time: float = 0.0
    recent_times: deque = field(default_factory=lambda: deque(maxlen=100))
    error_count: int = 0

    def add_measurement(self, duration: float, success: bool = True):
        self.total_calls += 1
        self.total_time += duration
        self.min_time = min(self.min_time, duration)
        self.max_time = max(self.max_time, duration)
        self.recent_times.append(duration)

        if not success:
            self.error_count += 1

    def get_average_time(self) -> float:
        return self.total_time / self.total_calls if self.total_calls > 0 else 0.0

    def get_recent_average(self) -> float:
        if not self.recent_times:
            return 0.0
        return sum(self.recent_times) / len(self.recent_times)

    def get_error_rate(self) -> float:
        return self.error_count / self.total_calls if self.total_calls > 0 else 0.0


class PerformanceMonitor:
    """Thread-safe registry of operation timings."""

    def __init__(self):
        self.metrics: Dict[str, PerformanceMetrics] = defaultdict(PerformanceMetrics)
        self._lock = threading.Lock()

    def record_operation(self, operation_name: str, duration: float, success: bool = True):
        with self._lock:
            self.metrics[operation_name].add_measurement(duration, success)

    def get_metrics(self, operation_name: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            if operation_name:
                if operation_name not in self.metrics:
                    return {}
                metrics = self.metrics[operation_name]
                return {
                    "operation": operation_name,
                    "total_calls": metrics.total_calls,
                    "total_time": metrics.total_time,
                    "average_time": metrics.get_average_time(),
                    "recent_average": metrics.get_recent_average(),
                    "min_time": metrics.min_time if metrics.min_time != float('inf') else 0.0,
                    "max_time": metrics.max_time,
                    "error_count": metrics.error_count,
                    "error_rate": metrics.get_error_rate()
                }

            result = {}
            for name, metrics in self.metrics.items():
                result[name] = {
                    "total_calls": metrics.total_calls,
                    "average_time": metrics.get_average_time(),
                    "recent_average": metrics.get_recent_average(),
                    "error_rate": metrics.get_error_rate()
                }
            return result

    def reset_metrics(self, operation_name: Optional[str] = None):
        with self._lock:
            if operation_name:
                self.metrics.pop(operation_name, None)
            else:
                self.metrics.clear()


# Global monitor instance
performance_monitor = PerformanceMonitor()


def _finish(name: str, start_time: float, success: bool) -> None:
    duration = time.time() - start_time
    performance_monitor.record_operation(name, duration, success)
    if duration > SLOW_OPERATION_SECONDS:
        log_performance(name, duration, success=success)


def monitor_performance(operation_name: Optional[str] = None):
    """Decorator recording call duration and failures for sync or async callables."""
    def decorator(func: Callable):
        name = operation_name or f"{func.__module__}.{func.__name__}"

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                success = True
                try:
                    return await func(*args, **kwargs)
                except Exception:
                    success = False
                    raise
                finally:
                    _finish(name, start_time, success)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                _finish(name, start_time, success)

        return sync_wrapper

    return decorator


@asynccontextmanager
async def measure_time(operation_name: str):
    """Async context manager variant of monitor_performance."""
    start_time = time.time()
    success = True
    try:
        yield
    except Exception:
        success = False
        raise
    finally:
        _finish(operation_name, start_time, success)
