"""
Prometheus metrics for the licensing service.

Custom metrics for business logic and performance monitoring.
"""

from prometheus_client import Counter, Histogram

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# License metrics
licenses_created_total = Counter(
    "licenses_created_total",
    "Total licenses created",
    ["license_type", "origin"],
)

license_validations_total = Counter(
    "license_validations_total",
    "License validation outcomes",
    ["outcome"],
)

license_transitions_total = Counter(
    "license_transitions_total",
    "License status transitions",
    ["from_status", "to_status", "automated"],
)

amendments_total = Counter(
    "license_amendments_total",
    "Amendment workflow events",
    ["outcome"],
)

extensions_total = Counter(
    "license_extensions_total",
    "Extension workflow events",
    ["outcome"],
)

renewal_offers_total = Counter(
    "license_renewal_offers_total",
    "Renewal offer events",
    ["outcome"],
)

# Sweep metrics
sweep_items_total = Counter(
    "license_sweep_items_total",
    "Items processed by scheduled sweeps",
    ["sweep", "result"],
)

sweep_duration_seconds = Histogram(
    "license_sweep_duration_seconds",
    "Sweep run duration in seconds",
    ["sweep"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

# Idempotency metrics
idempotent_replays_total = Counter(
    "idempotent_replays_total",
    "Requests answered from a stored idempotent result",
    ["operation"],
)

# Notification metrics
notifications_total = Counter(
    "notifications_total",
    "Notification delivery attempts",
    ["notice", "result"],
)

# Cache metrics
cache_hits_total = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["cache_key"],
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["cache_key"],
)

# Error metrics
errors_total = Counter(
    "errors_total",
    "Total errors",
    ["error_type", "endpoint"],
)
