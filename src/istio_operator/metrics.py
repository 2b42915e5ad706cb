from __future__ import annotations

from prometheus_client import Counter, Histogram

RECONCILE_TOTAL = Counter(
    "istio_operator_reconcile_total",
    "Number of IstioRevision reconciliations",
    labelnames=("result",),
)

RECONCILE_DURATION = Histogram(
    "istio_operator_reconcile_duration_seconds",
    "Duration of IstioRevision reconciliations in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 300),
)

RECONCILE_TRIGGERS_TOTAL = Counter(
    "istio_operator_reconcile_triggers_total",
    "Owned-object events routed to their IstioRevision",
    labelnames=("kind",),
)

CHART_OPERATIONS_TOTAL = Counter(
    "istio_operator_chart_operations_total",
    "Number of chart install/uninstall operations",
    labelnames=("operation", "result"),
)

EVENTS_FILTERED_TOTAL = Counter(
    "istio_operator_events_filtered_total",
    "Watch events dropped by the event filter",
    labelnames=("kind",),
)
