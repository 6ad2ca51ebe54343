"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from typing import Optional

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# Reservation metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total reservation attempts',
    ['status']  # success, conflict, timeout, invalid, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Reservation request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled and released back to availability'
)

# Per-key lock metrics (resource: listing, conversation)
lock_wait_latency = Histogram(
    'lock_wait_seconds',
    'Time spent waiting for a per-listing or per-conversation lock',
    ['resource'],
    buckets=[0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

lock_timeouts = Counter(
    'lock_timeouts_total',
    'Operations that gave up waiting for a per-listing or per-conversation lock',
    ['resource']
)

# Database metrics
db_retries = Counter(
    'reservation_retry_attempts_total',
    'Reservation retries caused by a concurrent writer bumping the listing version'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

# Ledger and add-ons
services_applied = Counter(
    'customer_services_applied_total',
    'Customer service applications recorded',
    ['service_type']
)

transport_bookings = Counter(
    'transport_bookings_total',
    'Transportation add-on bookings',
    ['transport_type']
)

messages_sent = Counter(
    'messages_sent_total',
    'Support messages appended to conversations',
    ['sender_type']  # customer, team
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

redis_circuit_breaker_open = Gauge(
    'redis_circuit_breaker_open',
    'Redis circuit breaker state (1=open, 0=closed)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record reservation attempt. Status: success, conflict, timeout, invalid, error"""
    booking_attempts.labels(status=status).inc()


def record_cache_operation(operation: str, hit: Optional[bool] = None):
    """Lookups record hit or miss; writes and invalidations record ok."""
    result = "ok" if hit is None else ("hit" if hit else "miss")
    cache_operations.labels(operation=operation, result=result).inc()


def record_redis_failure():
    """Count a Redis error and flag the fail-open state."""
    redis_connection_errors.inc()
    redis_circuit_breaker_open.set(1)


def record_redis_recovered():
    redis_circuit_breaker_open.set(0)
