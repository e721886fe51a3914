"""
Prometheus metrics for the booking engine.

Uses a dedicated registry so embedding services can expose it next to their
own metrics without name clashes.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

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

reservations_total = Counter(
    "booking_engine_reservations_total",
    "Reservation attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

reservation_lock_total = Counter(
    "booking_engine_reservation_lock_total",
    "Per provider/date reservation lock acquisitions",
    ["outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin recording facade over the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str,
        error_type: str | None = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_reservation(outcome: str) -> None:
        reservations_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_reservation_lock(outcome: str) -> None:
        reservation_lock_total.labels(outcome=outcome).inc()

    @staticmethod
    def export() -> bytes:
        return generate_latest(REGISTRY)


prometheus_metrics = PrometheusMetrics()
