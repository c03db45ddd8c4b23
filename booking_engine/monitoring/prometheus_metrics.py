"""
Prometheus metrics for the booking engine.

Service timings come from @measure_operation; the domain counters record
lifecycle outcomes, constraint findings, and audit writes.
"""

from threading import Lock
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with default process metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "booking_engine_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "booking_engine_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "booking_engine_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_operations_total = Counter(
    "booking_engine_booking_operations_total",
    "Lifecycle operations by type and outcome",
    ["operation", "outcome"],
    registry=REGISTRY,
)

constraint_findings_total = Counter(
    "booking_engine_constraint_findings_total",
    "Constraint violations and warnings produced by validation",
    ["constraint", "violation_type", "severity"],
    registry=REGISTRY,
)

audit_writes_total = Counter(
    "booking_engine_audit_writes_total",
    "Booking operation audit rows written",
    ["operation", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

    _lock = Lock()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_operation(operation: str, outcome: str) -> None:
        booking_operations_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_constraint_finding(constraint: str, violation_type: str, mandatory: bool) -> None:
        severity = "violation" if mandatory else "warning"
        constraint_findings_total.labels(
            constraint=constraint, violation_type=violation_type, severity=severity
        ).inc()

    @staticmethod
    def record_audit_write(operation: str, outcome: str) -> None:
        audit_writes_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        with PrometheusMetrics._lock:
            return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
