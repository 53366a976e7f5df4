"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, booking_closed, duplicate_booking, quota_exceeded, slot_full, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

cancellation_attempts = Counter(
    'cancellation_attempts_total',
    'Total cancellation attempts',
    ['status']  # success, not_found, not_owner, already_cancelled, error
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Transaction retries due to serialization failures or lock conflicts'
)

# Throttle metrics
rate_limit_checks = Counter(
    'rate_limit_checks_total',
    'Request throttle decisions',
    ['result']  # allowed, limited, degraded
)

rate_limit_fail_open = Counter(
    'rate_limit_fail_open_total',
    'Throttle checks that failed open because the attempt store was unavailable'
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, an error kind value, or error."""
    booking_attempts.labels(status=status).inc()


def record_cancellation(status: str):
    cancellation_attempts.labels(status=status).inc()


def record_rate_limit_check(result: str):
    """Record throttle decision. Result: allowed, limited, degraded"""
    rate_limit_checks.labels(result=result).inc()
