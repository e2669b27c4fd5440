"""
Prometheus Metrics for the docledger chaincode host.

This module defines all metrics exposed at the /metrics endpoint.
Metrics are categorized into:

1. Chaincode Metrics - invocation outcomes and latencies per function
2. Ledger Metrics - state API calls made by the contract
3. HTTP Metrics - the development host's REST surface
"""
from prometheus_client import Counter, Histogram, Info

# =============================================================================
# SERVICE INFO
# =============================================================================

SERVICE_INFO = Info(
    "docledger_service",
    "Service information"
)
SERVICE_INFO.info({
    "version": "0.1.0",
    "service": "docledger",
})

# =============================================================================
# CHAINCODE METRICS
# =============================================================================

# Counter: Invocations by function and outcome
INVOCATION_TOTAL = Counter(
    "docledger_invocation_total",
    "Total chaincode invocations",
    ["function", "outcome"]  # outcome: success, error
)

# Histogram: Invocation latency including commit
INVOCATION_LATENCY = Histogram(
    "docledger_invocation_latency_seconds",
    "Time to execute and commit a chaincode invocation",
    ["function"],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0]
)

# Counter: Writes applied to the ledger
COMMITTED_WRITES = Counter(
    "docledger_committed_writes_total",
    "Total key writes committed to the ledger"
)

# =============================================================================
# LEDGER METRICS
# =============================================================================

LEDGER_OPERATIONS = Counter(
    "docledger_ledger_operations_total",
    "Ledger state API calls made by the contract",
    ["operation"]  # get_state, put_state, get_state_by_range, ...
)

# =============================================================================
# HTTP METRICS (Standard)
# =============================================================================

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_invocation(
    function: str,
    success: bool,
    latency_seconds: float,
    write_count: int = 0,
) -> None:
    """
    Record all metrics for a single chaincode invocation.

    Args:
        function: The invoked chaincode function name
        success: Whether the contract returned a success response
        latency_seconds: Time taken to execute and commit
        write_count: Number of keys written by a committed invocation
    """
    outcome = "success" if success else "error"

    INVOCATION_TOTAL.labels(function=function, outcome=outcome).inc()
    INVOCATION_LATENCY.labels(function=function).observe(latency_seconds)

    if success and write_count:
        COMMITTED_WRITES.inc(write_count)


def record_ledger_operation(operation: str) -> None:
    """Record a single ledger API call."""
    LEDGER_OPERATIONS.labels(operation=operation).inc()


def record_http_request(method: str, endpoint: str, status: int, latency_seconds: float) -> None:
    """Record HTTP request metrics."""
    HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(latency_seconds)
