"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking requests',
    ['outcome']  # started, reserved, rejected, failed
)

provisioning_requests = Counter(
    'provisioning_requests_total',
    'Requests sent to the provisioning service',
    ['operation', 'result']  # create/close, ok/overloaded/forbidden/...
)

provisioning_latency = Histogram(
    'provisioning_latency_seconds',
    'Provisioning request latency',
    ['operation'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Callback metrics
status_callbacks = Counter(
    'server_status_callbacks_total',
    'Server status callbacks received',
    ['status', 'result']  # idle/closed/failed, applied/ignored/unmatched
)

# Scheduler metrics
reservations_processed = Counter(
    'reservations_processed_total',
    'Reservations picked up by the scheduler',
    ['result']  # started, failed, skipped
)

scheduler_tick_duration = Histogram(
    'scheduler_tick_duration_seconds',
    'Reservation sweep duration',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]
)

# Notification metrics
notification_failures = Counter(
    'notification_failures_total',
    'Notification delivery failures',
    ['operation']  # send/edit/private
)

def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_booking_attempt(outcome: str):
    """Record booking request. Outcome: started, reserved, rejected, failed"""
    booking_attempts.labels(outcome=outcome).inc()

def record_provisioning(operation: str, result: str):
    """Record provisioning call. Operation: create, close"""
    provisioning_requests.labels(operation=operation, result=result).inc()

def record_callback(status: str, result: str):
    """Record status callback. Result: applied, ignored, unmatched"""
    status_callbacks.labels(status=status, result=result).inc()

def record_reservation(result: str):
    """Record reservation processing. Result: started, failed, skipped"""
    reservations_processed.labels(result=result).inc()

def record_notification_failure(operation: str):
    notification_failures.labels(operation=operation).inc()
