"""Prometheus metrics for reconciliation.

Each reconcile increments ``opa_bundle_builder_reconcile_total`` once,
labelled with the controller identity, the result and the error kind.
"""

from __future__ import annotations

import time

from prometheus_client import Counter, Gauge, Histogram

from bundle_builder.config import CONTROLLER_NAME
from bundle_builder.reconcile.actions import ReconcileResult

reconcile_total = Counter(
    "opa_bundle_builder_reconcile_total",
    "Total number of reconciles, by result and error category",
    ["controller", "result", "category"],
)

publish_total = Counter(
    "opa_bundle_builder_publish_total",
    "Total number of bundles published",
    ["controller"],
)

build_duration = Histogram(
    "opa_bundle_builder_build_duration_seconds",
    "Time spent materializing, packaging and publishing one event",
    ["controller"],
)

last_publish_timestamp = Gauge(
    "opa_bundle_builder_last_publish_timestamp_seconds",
    "Unix time of the last successful publish",
    ["controller"],
)


def report_reconciled(result: ReconcileResult, controller: str = CONTROLLER_NAME) -> None:
    """Record one finished reconcile."""
    outcome = "error" if result.failed else "ok"
    reconcile_total.labels(
        controller=controller, result=outcome, category=result.category
    ).inc()
    build_duration.labels(controller=controller).observe(result.duration_ms / 1000.0)
    if result.published:
        publish_total.labels(controller=controller).inc()
        last_publish_timestamp.labels(controller=controller).set(time.time())
