# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Prometheus metrics, single source of truth for all metric objects.
Imported by services and middleware. Never instantiated in controllers.
"""

from prometheus_client import Counter, Gauge, Histogram

# ── HTTP Metrics (used by middleware) ──
REQUEST_COUNT = Counter(
    "collabtime_requests_total",
    "Total HTTP requests to the workspace service",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "collabtime_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
)
HTTP_ERRORS = Counter(
    "collabtime_http_errors_total",
    "Total HTTP error responses",
    ["method", "endpoint", "status"],
)

# ── Business Metrics (updated by service layer only) ──
REALTIME_EVENTS_APPLIED = Counter(
    "collabtime_realtime_events_applied_total",
    "Realtime events applied to a team state store",
    ["event"],
)
REALTIME_EVENTS_SUPPRESSED = Counter(
    "collabtime_realtime_events_suppressed_total",
    "Realtime events absorbed as duplicates or no-ops",
    ["event"],
)
REALTIME_EVENTS_REJECTED = Counter(
    "collabtime_realtime_events_rejected_total",
    "Realtime events dropped as unknown or malformed",
    ["reason"],
)
OPTIMISTIC_ROLLBACKS = Counter(
    "collabtime_optimistic_rollbacks_total",
    "Optimistic updates reverted after an upstream failure",
    ["action"],
)
UPSTREAM_CALLS = Counter(
    "collabtime_upstream_calls_total",
    "Calls to the upstream team API",
    ["action", "outcome"],
)
SESSIONS_CLEARED = Counter(
    "collabtime_sessions_cleared_total",
    "Team sessions cleared locally",
    ["reason"],
)
OVERLAP_COMPUTATIONS = Counter(
    "collabtime_overlap_computations_total",
    "Overlap views computed",
)
OPEN_WORKSPACES = Gauge(
    "collabtime_open_workspaces",
    "Number of team workspaces held in memory",
)
WORKSPACES_EVICTED = Counter(
    "collabtime_workspaces_evicted_total",
    "Workspaces closed to keep the registry bounded",
)
REALTIME_RECONNECTS = Counter(
    "collabtime_realtime_reconnects_total",
    "Realtime stream reconnection attempts",
    ["reason"],
)
