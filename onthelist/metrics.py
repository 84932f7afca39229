"""Prometheus metrics shared by every app instance in the process.

Collectors register with the default registry at import time, so they live at
module level rather than inside ``create_app``.
"""
from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "onthelist_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
REQUEST_LATENCY = Histogram(
    "onthelist_request_latency_seconds", "Latency of HTTP requests", ["method", "path"]
)

# Application-level domain metrics
CLASSIFY_COUNT = Counter(
    "onthelist_classify_total", "Entry classification attempts", ["outcome"]
)
CLASSIFY_DURATION = Histogram(
    "onthelist_classify_duration_seconds", "Latency of entry classification"
)
TASK_WRITE_COUNT = Counter(
    "onthelist_task_writes_total", "Task writes by operation and outcome", ["operation", "outcome"]
)
