"""Prometheus metrics definitions for LocalS3.

Application-level metrics use the ``locals3_`` prefix. HTTP-level metrics
(request count, duration, sizes) come from
``prometheus-fastapi-instrumentator`` under the same namespace.

Metrics are opt-in: until :func:`init_metrics` runs, the module-level
references stay ``None`` and nothing is registered in the global registry.
"""

from __future__ import annotations

from prometheus_client import Counter

_initialized: bool = False

# ---------------------------------------------------------------------------
# Operation counter  (labels: operation, status)
# ---------------------------------------------------------------------------
operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_received_total: Counter | None = None
bytes_sent_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all LocalS3 metrics. Safe to call repeatedly."""
    global _initialized
    global operations_total, bytes_received_total, bytes_sent_total

    if _initialized:
        return

    operations_total = Counter(
        "locals3_operations_total",
        "Total S3 operations by type and outcome",
        ["operation", "status"],
    )

    bytes_received_total = Counter(
        "locals3_bytes_received_total",
        "Total bytes received in request bodies",
    )

    bytes_sent_total = Counter(
        "locals3_bytes_sent_total",
        "Total bytes sent in response bodies",
    )

    _initialized = True


def record_operation(operation: str, status: str = "success") -> None:
    """Count one S3 operation; no-op while metrics are disabled."""
    if operations_total is not None:
        operations_total.labels(operation=operation, status=status).inc()
