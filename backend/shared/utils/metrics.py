"""
Lightweight metrics collection for Matchcast.
Prometheus counters, histograms and gauges for the sync pipeline.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "mc_provider_requests_total",
    "Total upstream HTTP request attempts",
    ["provider", "status"],
)
SYNC_RUNS = Counter(
    "mc_sync_runs_total",
    "Synchronization runs by outcome",
    ["status"],
)
SYNC_MATCHES = Counter(
    "mc_sync_matches_total",
    "Matches handled by synchronization",
    ["outcome"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "mc_provider_latency_seconds",
    "Upstream request latency in seconds",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
SYNC_DURATION = Histogram(
    "mc_sync_duration_seconds",
    "Wall time of a full synchronization run",
    buckets=(1, 5, 10, 20, 30, 60, 120, 300),
)

# ── Gauges ──────────────────────────────────────────────────────────────
SYNC_RUNNING = Gauge(
    "mc_sync_running",
    "1 while a synchronization is in flight",
)
SCHEDULER_NEXT_RUN = Gauge(
    "mc_scheduler_next_run_timestamp_seconds",
    "Unix timestamp of the next scheduled sync (0 when none)",
)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
