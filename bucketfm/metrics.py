"""
Metrics collection and reporting for bucketfm
"""

import time
import threading
from typing import Dict, Any
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class Metrics:
    """Application metrics container"""

    # Request metrics
    total_requests: int = 0
    active_requests: int = 0
    requests_by_method: Dict[str, int] = field(default_factory=dict)
    requests_by_status: Dict[int, int] = field(default_factory=dict)
    total_response_time: float = 0.0

    # File-manager operations
    operations: Dict[str, int] = field(default_factory=dict)
    operation_failures: Dict[str, int] = field(default_factory=dict)

    # Transfer and errors
    total_upload_bytes: int = 0
    total_errors: int = 0
    auth_failures: int = 0

    startup_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary"""
        answered = sum(self.requests_by_status.values())
        avg_response_time = self.total_response_time / answered if answered else 0.0

        return {
            "uptime_seconds": time.time() - self.startup_time,
            "requests": {
                "total": self.total_requests,
                "active": self.active_requests,
                "by_method": self.requests_by_method.copy(),
                "by_status": self.requests_by_status.copy(),
                "avg_response_time": avg_response_time,
            },
            "operations": {
                "total": self.operations.copy(),
                "failed": self.operation_failures.copy(),
            },
            "transfer": {
                "upload_bytes": self.total_upload_bytes,
            },
            "errors": {
                "total": self.total_errors,
                "auth_failures": self.auth_failures,
            },
        }


class MetricsManager:
    """Thread-safe metrics manager"""

    def __init__(self):
        self.metrics = Metrics()
        self._lock = threading.Lock()

    @contextmanager
    def request_context(self, method: str = "GET"):
        """Count a request while it is in flight"""
        with self._lock:
            self.metrics.total_requests += 1
            self.metrics.active_requests += 1
            self.metrics.requests_by_method[method] = self.metrics.requests_by_method.get(method, 0) + 1
        try:
            yield
        finally:
            with self._lock:
                self.metrics.active_requests = max(0, self.metrics.active_requests - 1)

    def record_response(self, status_code: int, response_time: float):
        """Record response metrics"""
        with self._lock:
            self.metrics.requests_by_status[status_code] = self.metrics.requests_by_status.get(status_code, 0) + 1
            self.metrics.total_response_time += response_time

    @contextmanager
    def operation_context(self, operation: str):
        """Count a file-manager operation and whether it failed"""
        with self._lock:
            self.metrics.operations[operation] = self.metrics.operations.get(operation, 0) + 1
        try:
            yield
        except Exception:
            with self._lock:
                failures = self.metrics.operation_failures
                failures[operation] = failures.get(operation, 0) + 1
            raise

    def add_upload_bytes(self, bytes_count: int):
        """Add to upload byte counter"""
        with self._lock:
            self.metrics.total_upload_bytes += bytes_count

    def increment_errors(self):
        """Increment error counter"""
        with self._lock:
            self.metrics.total_errors += 1

    def increment_auth_failures(self):
        """Increment auth failure counter"""
        with self._lock:
            self.metrics.auth_failures += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics snapshot"""
        with self._lock:
            return self.metrics.to_dict()

    def reset_metrics(self):
        """Reset all metrics (for testing)"""
        with self._lock:
            self.metrics = Metrics()


# Global metrics manager instance
metrics_manager = MetricsManager()
