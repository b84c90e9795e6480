"""Prometheus metrics for the regeneration loop and the dispatcher.

The collectors are module-level singletons registered on the default
prometheus registry; ``start_metrics_server_if_enabled`` exposes them over HTTP
when ``METRICS_PORT`` is set.
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram, start_http_server

from .config import get_settings

logger = logging.getLogger(__name__)


producer_calls_total = Counter("rncp_producer_calls_total", "Producer calls", ["result"])
validation_failures_total = Counter("rncp_validation_failures_total", "Producer outputs that failed validation")
regeneration_attempts = Histogram(
    "rncp_regeneration_attempts",
    "Producer attempts needed per resolve() call",
    buckets=(1, 2, 3, 4, 5, 8, 13),
)
resolutions_total = Counter("rncp_resolutions_total", "Regeneration loop results", ["result"])
actions_dispatched_total = Counter("rncp_actions_dispatched_total", "Dispatch outcomes", ["code"])
pipeline_requests_total = Counter("rncp_pipeline_requests_total", "Pipeline requests", ["result"])


def start_metrics_server_if_enabled():
    cfg = get_settings()
    try:
        if cfg.METRICS_PORT:
            start_http_server(cfg.METRICS_PORT)
            logger.info("metrics server listening on :%d", cfg.METRICS_PORT)
    except Exception:
        logger.exception("failed to start metrics server")
