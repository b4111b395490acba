"""
Prometheus metrics for sofacrawl.
Exposed over HTTP only when SC_METRICS_ENABLED is set.
"""
from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
CAPTURE_OUTCOMES = Counter(
    "sc_capture_outcomes_total",
    "Correlated network waits by outcome",
    ["outcome"],
)
CAPTURE_PARSE_FAILURES = Counter(
    "sc_capture_parse_failures_total",
    "Qualifying responses whose body could not be read or parsed",
)
MATCHER_RESULTS = Counter(
    "sc_matcher_results_total",
    "Fuzzy entity matcher results by winning strategy",
    ["strategy"],
)
PIPELINE_ITEMS = Counter(
    "sc_pipeline_items_total",
    "Pipeline work items by outcome",
    ["pipeline", "outcome"],
)
RETRY_ATTEMPTS = Counter(
    "sc_retry_attempts_total",
    "Failed attempts that triggered a retry",
)
DB_UPSERTS = Counter(
    "sc_db_upserts_total",
    "Row upserts by table and status",
    ["table", "status"],
)

# ── Histograms ──────────────────────────────────────────────────────────
CAPTURE_LATENCY = Histogram(
    "sc_capture_latency_seconds",
    "Time from subscription to resolution of a correlated wait",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 20.0, 30.0),
)
ITEM_PROCESSING = Histogram(
    "sc_item_processing_seconds",
    "Time to process a single pipeline work item (excluding pacing)",
    ["pipeline"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0),
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
