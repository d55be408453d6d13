"""Prometheus metrics middleware and auction-domain counters."""
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Bid-specific metrics
BID_COUNTER = Counter(
    "bids_total",
    "Bid attempts by outcome",
    ["outcome"],  # accepted, proxy, or the rejection code
)

BID_LATENCY = Histogram(
    "bid_latency_seconds",
    "Bid processing latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

# Lifecycle metrics
AUCTION_TRANSITIONS = Counter(
    "auction_transitions_total",
    "Auction status transitions",
    ["to"],
)

NOTIFICATIONS_FAILED = Counter(
    "notifications_failed_total",
    "Notifications that could not be stored",
    ["type"],
)

WS_ROOMS_ACTIVE = Gauge(
    "ws_auction_rooms_active",
    "Auction rooms with at least one WebSocket connection",
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Endpoints to normalize for metrics (reduce cardinality)
    ENDPOINT_PATTERNS = {
        "/api/v1/bids": "/api/v1/bids",
        "/api/v1/auto-bids": "/api/v1/auto-bids",
        "/api/v1/auctions": "/api/v1/auctions",
        "/api/v1/notifications": "/api/v1/notifications",
        "/api/v1/auth": "/api/v1/auth",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time

            endpoint = self._normalize_endpoint(request.url.path)

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

            if endpoint == "/api/v1/bids" and request.method == "POST":
                BID_LATENCY.observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS.items():
            if path.startswith(pattern):
                return normalized

        if path.startswith("/ws"):
            return "/ws"
        if path in ("/health", "/metrics"):
            return path

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_bid(outcome: str) -> None:
    BID_COUNTER.labels(outcome=outcome).inc()


def record_transition(to_status: str) -> None:
    AUCTION_TRANSITIONS.labels(to=to_status).inc()


def record_notification_failure(notification_type: str) -> None:
    NOTIFICATIONS_FAILED.labels(type=notification_type).inc()
