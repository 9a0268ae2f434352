"""
Observability Module
-------------------
Prometheus metrics for audit runs and the /metrics endpoint of the API.
"""

import time
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Generator, Optional

from fastapi import FastAPI
from prometheus_client import Counter, Histogram, Info
from starlette_exporter import PrometheusMiddleware, handle_metrics

from driftwatch.core.config import settings

# Set up logging
logger = logging.getLogger(__name__)

# Prometheus metrics
AUDIT_RUN_COUNTER = Counter(
    'driftwatch_audit_runs_total',
    'Total number of audit runs',
    ['mode', 'status']
)

DRIFT_ISSUE_COUNTER = Counter(
    'driftwatch_drift_issues_total',
    'Total number of drifted rules detected',
    ['drift_type']
)

AUDIT_EVENT_COUNTER = Counter(
    'driftwatch_audit_events_total',
    'Total number of audit events appended to the history'
)

AUDIT_RUN_DURATION = Histogram(
    'driftwatch_audit_run_duration_seconds',
    'Duration of audit runs in seconds',
    buckets=(0.05, 0.1, 0.5, 1, 5, 10, 30, 60)
)

SYSTEM_INFO = Info(
    'driftwatch_system_info',
    'Information about the DriftWatch installation'
)

SYSTEM_INFO.info({
    'version': settings.VERSION,
    'start_time': datetime.now().isoformat()
})


@contextmanager
def timed_execution(
    metric: Histogram,
    labels: Optional[Dict[str, str]] = None
) -> Generator[None, None, None]:
    """
    Context manager to measure execution time

    Args:
        metric: Prometheus histogram to record duration
        labels: Labels to apply to the metric
    """
    start_time = time.time()
    try:
        yield
    finally:
        duration = time.time() - start_time
        if labels:
            metric.labels(**labels).observe(duration)
        else:
            metric.observe(duration)


def initialize_metrics(app: FastAPI) -> None:
    """
    Initialize metrics and expose a /metrics endpoint

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(
        PrometheusMiddleware,
        app_name="driftwatch",
        prefix="driftwatch_http",
        group_paths=True
    )
    app.add_route("/metrics", handle_metrics)

    logger.info("Prometheus metrics initialized")
